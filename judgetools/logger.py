"""
Logging for judgetools.

Modules log through plain module level loggers.  Messages about a
particular submission go through a SubmissionLogger, which prefixes them
with the submission id, so that the interleaved output of concurrent
judging can be told apart:

    INFO [3f2a...] compile error for solution.cpp (C++)

Compiler output and other long diagnostics are passed along in the
extra dict and appended by JudgeLogFormatter, truncated to a
configurable number of lines:

    log.info('compile error', extra={'additional_info': msg})
"""

import logging
import sys

import colorlog

FORMAT = '%(log_color)s%(levelname)s %(message)s'


class JudgeLogFormatter(colorlog.ColoredFormatter):
    """
    Colored formatter that appends the additional_info of a record, if any.
    """

    def __init__(self, fmt: str = FORMAT, max_additional_info: int = 15, **kwargs):
        super().__init__(fmt, **kwargs)
        self._max_additional_info = max_additional_info

    def __append_additional_info(self, msg: str, additional_info: str | None) -> str:
        if additional_info is None or self._max_additional_info <= 0:
            return msg
        additional_info = additional_info.rstrip()
        if not additional_info:
            return msg
        lines = additional_info.split("\n")
        if len(lines) == 1:
            return "%s (%s)" % (msg, lines[0])
        if len(lines) > self._max_additional_info:
            lines = lines[: self._max_additional_info] + [
                "[.....truncated to %d lines.....]" % self._max_additional_info
            ]
        return "%s:\n%s" % (msg, "\n".join(" " * 8 + line for line in lines))

    def format(self, record: logging.LogRecord) -> str:
        result = super().format(record)
        return self.__append_additional_info(result, getattr(record, "additional_info", None))


class SubmissionLogger(logging.LoggerAdapter):
    """
    Logger adapter tagging every message with a submission id.
    """

    def process(self, msg, kwargs):
        return "[%s] %s" % (self.extra["submission"], msg), kwargs


def get(submission_id: str, name: str = "judgetools.judge") -> SubmissionLogger:
    """Return a logger for messages about the given submission."""
    return SubmissionLogger(logging.getLogger(name), {"submission": submission_id})


def initialize_logging(log_level: str = "warning", max_additional_info: int = 15, stream=None) -> None:
    """
    Configure the root logger to write colored output to stream
    (stdout by default).  Colors are left out when stream is not a
    terminal.
    """
    stream = stream if stream is not None else sys.stdout
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JudgeLogFormatter(FORMAT, max_additional_info, stream=stream))
    logging.basicConfig(handlers=[handler], level=getattr(logging, log_level.upper()), force=True)
