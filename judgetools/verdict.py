"""
Comparison of the output of a submission against the expected output.
"""
from enum import StrEnum


class Verdict(StrEnum):
    MATCH = 'match'
    MISMATCH = 'mismatch'


def normalize(text: str) -> str:
    """Strip leading and trailing whitespace, newlines included.

    Whitespace inside the text is left alone.
    """
    return text.strip()


def compare(actual: str, expected: str) -> Verdict:
    """Compare program output against the expected output.

    This is an exact judge: after normalize() the two texts must be
    identical, there is no tokenization and no numeric tolerance.
    """
    if normalize(actual) == normalize(expected):
        return Verdict.MATCH
    return Verdict.MISMATCH
