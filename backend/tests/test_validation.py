from datetime import date

from census.schemas.family import FamilyTree
from census.services.form_state import FamilyForm
from census.services.validation import validate_submission

REFERENCE = date(2024, 6, 15)


def complete_head(form: FamilyForm) -> None:
    form.set_family_head_field("first_name", "ram")
    form.set_family_head_field("last_name", "sharma")
    form.set_family_head_field("date_of_birth", "1980-01-01")


def test_empty_tree_reports_every_required_field() -> None:
    result = validate_submission(FamilyTree(), reference_date=REFERENCE)
    assert result.is_valid is False
    assert result.errors == [
        "Family head first name is required",
        "Family head last name is required",
        "Family head date of birth is required",
    ]


def test_complete_head_is_valid_without_contact_number() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    complete_head(form)
    result = validate_submission(form.tree, reference_date=REFERENCE)
    assert result.is_valid is True
    assert result.errors == []


def test_errors_accumulate_instead_of_failing_fast() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    form.set_family_head_field("last_name", "sharma")
    form.set_family_head_field("contact_number", "98-76")
    form.set_family_head_field("marital_status", "married")
    form.set_spouse_field("contact_number", "phone")

    result = validate_submission(form.tree, reference_date=REFERENCE)
    assert result.errors == [
        "Family head first name is required",
        "Family head date of birth is required",
        "Family head contact number must contain only numbers",
        "Spouse contact number must contain only numbers",
    ]


def test_spouse_contact_is_ignored_once_head_is_not_married() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    complete_head(form)
    form.set_family_head_field("marital_status", "married")
    form.set_spouse_field("contact_number", "abc")
    form.set_family_head_field("marital_status", "single")
    assert validate_submission(form.tree, reference_date=REFERENCE).is_valid is True


def test_birth_dates_must_parse_and_not_be_in_the_future() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    complete_head(form)
    form.set_family_head_field("marital_status", "married")
    form.set_spouse_field("date_of_birth", "2025-01-01")
    form.set_spouse_field("number_of_daughters", 2)
    form.set_child_field("daughters", 1, "date_of_birth", "30/30/2000")

    result = validate_submission(form.tree, reference_date=REFERENCE)
    assert result.errors == [
        "Spouse date of birth cannot be in the future",
        "Daughter 2 date of birth is not a valid date",
    ]


def test_descendant_numbers_are_optional_but_must_be_digits() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    complete_head(form)
    form.set_family_head_field("marital_status", "married")
    form.set_spouse_field("number_of_sons", 1)
    form.set_child_field("sons", 0, "phone_number", "12 34")
    form.set_child_field("sons", 0, "marital_status", "married")
    form.set_child_spouse_field("sons", 0, "number_of_children", 1)
    form.set_grandchild_field("sons", 0, 0, "contact_number", "x1")

    result = validate_submission(form.tree, reference_date=REFERENCE)
    assert result.errors == [
        "Son 1 phone number must contain only numbers",
        "Son 1 grandchild 1 contact number must contain only numbers",
    ]
