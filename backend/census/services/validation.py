from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from census.models.enums import MaritalStatus
from census.schemas.family import FamilyTree, PersonForm
from census.services.derivation import DateParseError, check_contact_number, parse_date


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def _check_birth_date(person: PersonForm, label: str, today: date, errors: list[str]) -> None:
    if not person.date_of_birth:
        return
    try:
        born = parse_date(person.date_of_birth)
    except DateParseError:
        errors.append(f"{label} date of birth is not a valid date")
        return
    if born is not None and born > today:
        errors.append(f"{label} date of birth cannot be in the future")


def _check_optional_numbers(person: PersonForm, label: str, errors: list[str]) -> None:
    if not check_contact_number(person.contact_number, required=False):
        errors.append(f"{label} contact number must contain only numbers")
    phone_number = getattr(person, "phone_number", "")
    if not check_contact_number(phone_number, required=False):
        errors.append(f"{label} phone number must contain only numbers")


def validate_submission(tree: FamilyTree, *, reference_date: date | None = None) -> ValidationResult:
    """Collect every problem with the tree in one pass."""
    today = reference_date or date.today()
    errors: list[str] = []
    head = tree.family_head

    if not head.first_name.strip():
        errors.append("Family head first name is required")
    if not head.last_name.strip():
        errors.append("Family head last name is required")
    if not head.date_of_birth:
        errors.append("Family head date of birth is required")
    _check_birth_date(head, "Family head", today, errors)
    if not check_contact_number(head.contact_number, required=False):
        errors.append("Family head contact number must contain only numbers")

    spouse = tree.spouse
    if head.marital_status == MaritalStatus.MARRIED and spouse is not None:
        _check_birth_date(spouse, "Spouse", today, errors)
        if not check_contact_number(spouse.contact_number, required=False):
            errors.append("Spouse contact number must contain only numbers")

        for children in (spouse.sons, spouse.daughters):
            for index, child in enumerate(children):
                label = f"{child.child_type.value.capitalize()} {index + 1}"
                _check_birth_date(child, label, today, errors)
                _check_optional_numbers(child, label, errors)
                if child.spouse is None:
                    continue
                _check_birth_date(child.spouse, f"{label} spouse", today, errors)
                _check_optional_numbers(child.spouse, f"{label} spouse", errors)
                for grandchild_index, grandchild in enumerate(child.spouse.grandchildren):
                    grandchild_label = f"{label} grandchild {grandchild_index + 1}"
                    _check_birth_date(grandchild, grandchild_label, today, errors)
                    _check_optional_numbers(grandchild, grandchild_label, errors)

    return ValidationResult(is_valid=not errors, errors=errors)
