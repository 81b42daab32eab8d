import pytest

from processing.errors import EmptyIdentifierError
from processing.identifiers import (
    display_municipality_code,
    normalize_municipality_code,
    try_normalize,
)


@pytest.mark.parametrize(
    "raw",
    ["0110001", "110001", 110001, "1100015", 1100015, 1100015.0, " 110001-5 ", "cod:110001"],
)
def test_short_long_and_padded_codes_share_one_key(raw):
    assert normalize_municipality_code(raw) == "110001"


@pytest.mark.parametrize("raw", ["0110001", "1100015", "1234", 35, "5300108", "abc123def"])
def test_normalization_is_idempotent(raw):
    once = normalize_municipality_code(raw)
    assert normalize_municipality_code(once) == once
    assert len(once) == 6


def test_short_codes_are_left_padded():
    assert normalize_municipality_code("1234") == "001234"
    assert normalize_municipality_code("000011000") == "011000"


def test_long_codes_keep_leftmost_six_digits():
    assert normalize_municipality_code("355030812") == "355030"


@pytest.mark.parametrize("raw", ["", "   ", "abc", "--", None, float("nan"), True])
def test_codes_without_digits_are_rejected(raw):
    with pytest.raises(EmptyIdentifierError):
        normalize_municipality_code(raw)


def test_try_normalize_returns_none_instead_of_raising():
    assert try_normalize("n/a") is None
    assert try_normalize("0110002") == "110002"


def test_display_code_is_seven_digits():
    assert display_municipality_code("1100015") == "1100015"
    assert display_municipality_code(110001) == "0110001"
