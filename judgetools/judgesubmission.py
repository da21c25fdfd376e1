#! /usr/bin/env python3
"""
Judge a single submission against a problem file, locally.

Goes through the same path as a deployed judge: the submission is
accepted by intake, published on the topic of its language, picked up by
a worker and judged, all in this process.
"""
import argparse
import sys

from . import logger
from .config import ConfigError
from .gateway import GatewayError, MemoryGateway, load_problem_file
from .intake import Intake, IntakeError
from .judge import Judge, is_internal_error
from .languages import LanguageConfigError, LanguageId, load_language_config
from .models import SubmissionKind, SubmissionStatus
from .registry import RunnerRegistry
from .settings import load_judge_settings
from .topics import LocalTopics
from .version import add_version_arg
from .worker import JudgeWorker


def argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Judge a submission against a problem.')
    parser.add_argument(
        '-L',
        '--language',
        choices=[str(lang) for lang in LanguageId],
        help='language of the submission (default: detected from the file name)',
    )
    parser.add_argument(
        '-k',
        '--kind',
        type=SubmissionKind,
        choices=list(SubmissionKind),
        default=SubmissionKind.SUBMIT,
        help='RUN judges on the example data of the problem (if it has any), SUBMIT on the full data',
    )
    parser.add_argument('-t', '--deadline', type=float, help='override the wall clock limit in seconds')
    parser.add_argument('-u', '--user', default='local', help='user id to submit as')
    parser.add_argument('-l', '--log_level', default='warning', help='set log level (debug, info, warning, error, critical)')
    parser.add_argument(
        '--max_additional_info',
        type=int,
        default=15,
        help='maximum number of lines of additional info (e.g. compiler output) to display (set to 0 to disable additional info)',
    )
    add_version_arg(parser)
    parser.add_argument('problem', help='problem file (YAML)')
    parser.add_argument('source', help='source file of the submission')
    return parser


def main() -> None:
    args = argparser().parse_args()

    logger.initialize_logging(args.log_level, args.max_additional_info)

    try:
        settings = load_judge_settings()
        if args.deadline is not None:
            if args.deadline <= 0:
                raise ConfigError('deadline must be positive')
            settings = settings.model_copy(update={'deadline': args.deadline})
        langs = load_language_config()

        if args.language is not None:
            language = args.language
        else:
            detected = langs.detect_language([args.source])
            if detected is None:
                raise IntakeError(f'could not detect the language of {args.source}, use -L')
            language = str(detected.lang_id)

        with open(args.source, 'r', encoding='utf-8') as f:
            code = f.read()
        problem = load_problem_file(args.problem)

        gateway = MemoryGateway([problem])
        topics = LocalTopics(settings.max_deliveries)
        judge = Judge(gateway, RunnerRegistry.from_languages(langs, settings), settings.deadline)
        intake = Intake(gateway, topics, settings)

        topic_names = [settings.topic_for(lang) for lang in LanguageId]
        with JudgeWorker(judge, topics, topic_names, settings.workers) as worker:
            submission = intake.submit(args.user, problem.id, language, code, args.kind)
            worker.join()
        submission = gateway.get_submission(submission.id)
    except (ConfigError, LanguageConfigError, GatewayError, IntakeError) as e:
        print(f'ERROR: {e}')
        sys.exit(2)
    except OSError as e:
        print(f'ERROR: could not read {args.source}: {e.strerror}')
        sys.exit(2)
    except KeyboardInterrupt:
        print('\naborting...')
        sys.exit(1)

    print(f'{submission.id}: {submission.status}')
    if submission.result:
        print(submission.result)
    if is_internal_error(submission.result):
        # The judge failed, not the submission.
        sys.exit(2)
    if submission.status != SubmissionStatus.COMPLETED:
        sys.exit(1)


if __name__ == '__main__':
    main()
