"""
identifiers.py - Municipality code normalization

Upstream datasets disagree on the IBGE municipality code: some carry the
7-digit form (6 digits plus a trailing check digit), some the 6-digit form,
and some pad with a spurious leading zero ("0110001"). Every identifier that
enters the pipeline goes through normalize_municipality_code(), which maps
all of these onto one 6-character key.

The 7th digit of an IBGE code is a check digit computed from the first six,
so truncating to the leftmost 6 characters never merges two municipalities.
That is a property of the IBGE code space, not something derived here.
"""

import math
import re
from typing import Optional, Union

from loguru import logger

from .errors import EmptyIdentifierError

CANONICAL_WIDTH = 6
DISPLAY_WIDTH = 7

_NON_DIGITS = re.compile(r"\D")

RawIdentifier = Union[str, int, float, None]


def _digits(raw: RawIdentifier) -> str:
    """Return the digit characters of raw, treating integral floats as integers."""
    if raw is None or isinstance(raw, bool):
        raise EmptyIdentifierError(raw)

    if isinstance(raw, float):
        if math.isnan(raw) or math.isinf(raw):
            raise EmptyIdentifierError(raw)
        # pandas hands integer columns with gaps back as floats (1100015.0)
        if raw.is_integer():
            raw = int(raw)

    digits = _NON_DIGITS.sub("", str(raw).strip())
    if not digits:
        raise EmptyIdentifierError(raw)
    return digits


def normalize_municipality_code(raw: RawIdentifier) -> str:
    """
    Canonicalize a municipality code to its 6-digit join key.

    Non-digit characters are stripped, the digits are round-tripped through
    int() to drop leading zeros, the result is left-padded to 6 characters
    and cut to the leftmost 6.

    Args:
        raw: Code as found in a CSV cell or a GeoJSON property

    Returns:
        Canonical 6-character identifier

    Raises:
        EmptyIdentifierError: if no digits remain
    """
    digits = _digits(raw)
    return str(int(digits)).zfill(CANONICAL_WIDTH)[:CANONICAL_WIDTH]


def try_normalize(raw: RawIdentifier) -> Optional[str]:
    """normalize_municipality_code() that returns None instead of raising."""
    try:
        return normalize_municipality_code(raw)
    except EmptyIdentifierError as e:
        logger.trace(f"Skipping identifier: {e}")
        return None


def display_municipality_code(raw: RawIdentifier) -> str:
    """Zero-padded 7-digit form shown to users; not a join key."""
    return str(int(_digits(raw))).zfill(DISPLAY_WIDTH)
