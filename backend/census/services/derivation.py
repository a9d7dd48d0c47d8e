"""Pure derivations shared by the form, the validator and the persistence mapper.

Birth dates reach this module in whatever shape the input widget produced:
ISO ``yyyy-mm-dd`` strings, ``dd/mm/yyyy`` strings, or native ``date`` objects.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y")
TEXT_FIELDS = frozenset({"first_name", "last_name", "native_place", "current_place"})
CONTACT_FIELDS = frozenset({"contact_number", "phone_number"})
CONTACT_NUMBER_MESSAGE = "Contact number must contain only numbers"

_DIGITS_RE = re.compile(r"[0-9]+")


class DateParseError(ValueError):
    pass


def parse_date(value: Any) -> date | None:
    """Strict parse. Returns None for empty input, raises DateParseError otherwise."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    candidate = text.split("T", 1)[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    raise DateParseError(f"Unrecognised date '{text}'")


def _reference(reference_date: Any) -> date:
    parsed = parse_date(reference_date)
    return parsed if parsed is not None else date.today()


def compute_age(birth_date: Any, reference_date: Any = None) -> int:
    # Empty or unparseable input yields 0; future dates clamp to 0.
    try:
        born = parse_date(birth_date)
    except DateParseError:
        return 0
    if born is None:
        return 0

    today = _reference(reference_date)
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return max(age, 0)


def age_or_none(birth_date: Any, reference_date: Any = None) -> int | None:
    try:
        born = parse_date(birth_date)
    except DateParseError:
        return None
    if born is None:
        return None
    return compute_age(born, reference_date)


def normalize_date(value: Any) -> str | None:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed is not None else None


def validate_contact_number(value: str | None) -> bool:
    """True iff the value is a non-empty run of decimal digits."""
    if not value:
        return False
    return _DIGITS_RE.fullmatch(value) is not None


def check_contact_number(value: str | None, *, required: bool) -> bool:
    if not value:
        return not required
    return validate_contact_number(value)


def contact_number_message(value: str | None) -> str | None:
    if value and not validate_contact_number(value):
        return CONTACT_NUMBER_MESSAGE
    return None


def uppercase_transform(field: str, value: Any) -> Any:
    if field in TEXT_FIELDS and isinstance(value, str):
        return value.upper()
    return value

