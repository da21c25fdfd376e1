import io
import logging

from judgetools import logger


def record(msg, additional_info=None):
    rec = logging.LogRecord('judgetools', logging.INFO, __file__, 1, msg, None, None)
    if additional_info is not None:
        rec.additional_info = additional_info
    return rec


def test_additional_info():
    fmt = logger.JudgeLogFormatter('%(levelname)s %(message)s', max_additional_info=2, no_color=True)
    assert fmt.format(record('plain')) == 'INFO plain'
    assert fmt.format(record('one', 'line\n')) == 'INFO one (line)'
    assert fmt.format(record('two', 'a\nb')) == 'INFO two:\n        a\n        b'
    truncated = fmt.format(record('three', 'a\nb\nc'))
    assert truncated.endswith('[.....truncated to 2 lines.....]')
    assert '        c' not in truncated


def test_additional_info_disabled():
    fmt = logger.JudgeLogFormatter('%(message)s', max_additional_info=0, no_color=True)
    assert fmt.format(record('msg', 'details')) == 'msg'


def test_submission_logger(caplog):
    with caplog.at_level(logging.INFO, logger='judgetools.judge'):
        logger.get('abc').info('running %s', 'python')
    assert caplog.messages == ['[abc] running python']


def test_initialize_logging():
    out = io.StringIO()
    level = logging.getLogger().level
    logger.initialize_logging('info', stream=out)
    try:
        logging.getLogger('judgetools.test').info('hello', extra={'additional_info': 'details'})
        assert 'INFO hello (details)' in out.getvalue()
    finally:
        logging.getLogger().handlers.clear()
        logging.getLogger().setLevel(level)
