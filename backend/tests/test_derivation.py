from datetime import date, datetime

import pytest

from census.services.derivation import (
    CONTACT_NUMBER_MESSAGE,
    DateParseError,
    age_or_none,
    check_contact_number,
    compute_age,
    contact_number_message,
    normalize_date,
    parse_date,
    uppercase_transform,
    validate_contact_number,
)


@pytest.mark.parametrize(
    ("reference", "expected"),
    [
        ("2024-06-14", 23),
        ("2024-06-15", 24),
        ("2024-06-16", 24),
    ],
)
def test_compute_age_birthday_boundary(reference: str, expected: int) -> None:
    assert compute_age("2000-06-15", reference) == expected


def test_compute_age_accepts_every_input_shape() -> None:
    reference = date(2024, 6, 15)
    assert compute_age("2000-06-15", reference) == 24
    assert compute_age("15/06/2000", reference) == 24
    assert compute_age(date(2000, 6, 15), reference) == 24
    assert compute_age(datetime(2000, 6, 15, 8, 30), reference) == 24
    assert compute_age("2000-06-15T00:00:00.000Z", reference) == 24


def test_compute_age_is_pure() -> None:
    first = compute_age("1980-01-01", "2024-01-01")
    second = compute_age("1980-01-01", "2024-01-01")
    assert first == second == 44
    assert compute_age("1980-01-01") >= 0


def test_compute_age_falls_back_to_zero() -> None:
    assert compute_age("") == 0
    assert compute_age(None) == 0
    assert compute_age("not a date") == 0
    assert compute_age("31/02/2000") == 0


def test_compute_age_clamps_future_dates() -> None:
    assert compute_age("2030-01-01", "2024-01-01") == 0


def test_age_or_none_distinguishes_missing_dates() -> None:
    assert age_or_none("", "2024-01-01") is None
    assert age_or_none("garbage", "2024-01-01") is None
    assert age_or_none("01/01/2000", "2024-01-01") == 24


def test_parse_date_is_strict() -> None:
    assert parse_date("  ") is None
    assert parse_date("29/02/2000") == date(2000, 2, 29)
    with pytest.raises(DateParseError):
        parse_date("2000/02/29")


def test_normalize_date_to_iso() -> None:
    assert normalize_date("05/11/1975") == "1975-11-05"
    assert normalize_date("1975-11-05") == "1975-11-05"
    assert normalize_date(date(1975, 11, 5)) == "1975-11-05"
    assert normalize_date("") is None
    assert normalize_date(None) is None


def test_validate_contact_number_only_accepts_digits() -> None:
    assert validate_contact_number("12345") is True
    assert validate_contact_number("123-45") is False
    assert validate_contact_number("+9112345") is False
    assert validate_contact_number("123 45") is False
    assert validate_contact_number("") is False


def test_contact_number_policies() -> None:
    assert check_contact_number("", required=True) is False
    assert check_contact_number("", required=False) is True
    assert check_contact_number("98765", required=True) is True
    assert check_contact_number("98a65", required=False) is False


def test_contact_number_message() -> None:
    assert contact_number_message("") is None
    assert contact_number_message("12345") is None
    assert contact_number_message("12-45") == CONTACT_NUMBER_MESSAGE


def test_uppercase_transform_only_touches_name_and_place_fields() -> None:
    assert uppercase_transform("first_name", "ram") == "RAM"
    assert uppercase_transform("last_name", "sharma") == "SHARMA"
    assert uppercase_transform("native_place", "nashik") == "NASHIK"
    assert uppercase_transform("current_place", "pune") == "PUNE"
    assert uppercase_transform("marital_status", "married") == "married"
    assert uppercase_transform("contact_number", "12345") == "12345"
    assert uppercase_transform("number_of_sons", 2) == 2
