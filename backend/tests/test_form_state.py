from datetime import date, datetime, timedelta

import pytest

from census.models.enums import ChildType, MaritalStatus, OccupationType
from census.schemas.family import FamilyHeadForm, FamilyTree, SpouseForm
from census.services.derivation import CONTACT_NUMBER_MESSAGE
from census.services.form_state import (
    FUTURE_DATE_MESSAGE,
    INVALID_DATE_MESSAGE,
    FamilyForm,
    FormFieldError,
    FormSectionUnavailable,
    FormSessionNotFound,
    FormSessionRegistry,
    ResizePolicy,
    SubmissionState,
    normalize_tree,
)

REFERENCE = date(2024, 6, 15)


def married_form(**kwargs) -> FamilyForm:
    form = FamilyForm(reference_date=REFERENCE, **kwargs)
    form.set_family_head_field("marital_status", "married")
    return form


def test_text_fields_are_uppercased_and_enums_are_not() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    form.set_family_head_field("first_name", "ram")
    form.set_family_head_field("native_place", "nashik")
    form.set_family_head_field("occupation", "Business")

    head = form.tree.family_head
    assert head.first_name == "RAM"
    assert head.native_place == "NASHIK"
    assert head.occupation is OccupationType.BUSINESS


def test_date_of_birth_refreshes_and_resets_age() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    form.set_family_head_field("date_of_birth", "2000-06-16")
    assert form.tree.family_head.age == 23

    form.set_family_head_field("date_of_birth", "15/06/2000")
    assert form.tree.family_head.age == 24

    form.set_family_head_field("date_of_birth", "")
    assert form.tree.family_head.age is None
    assert "date_of_birth" not in form.tree.family_head.field_errors


def test_bad_and_future_dates_are_flagged_on_edit() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    form.set_family_head_field("date_of_birth", "someday")
    assert form.tree.family_head.field_errors["date_of_birth"] == INVALID_DATE_MESSAGE
    assert form.tree.family_head.age is None

    form.set_family_head_field("date_of_birth", "2030-01-01")
    assert form.tree.family_head.field_errors["date_of_birth"] == FUTURE_DATE_MESSAGE


def test_contact_number_message_follows_the_input() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    form.set_family_head_field("contact_number", "98-765")
    assert form.tree.family_head.field_errors["contact_number"] == CONTACT_NUMBER_MESSAGE

    form.set_family_head_field("contact_number", "98765")
    assert "contact_number" not in form.tree.family_head.field_errors


def test_married_then_single_clears_spouse_and_descendants() -> None:
    form = married_form()
    assert form.tree.spouse is not None

    form.set_spouse_field("first_name", "sita")
    form.set_spouse_field("number_of_sons", 2)
    form.set_child_field("sons", 0, "first_name", "lav")
    form.set_child_field("sons", 0, "marital_status", "married")
    form.set_child_spouse_field("sons", 0, "number_of_children", 1)
    form.set_grandchild_field("sons", 0, 0, "first_name", "kush")

    form.set_family_head_field("marital_status", "single")
    assert form.tree.spouse is None
    assert form.tree.children() == []

    form.set_family_head_field("marital_status", "married")
    assert form.tree.spouse is not None
    assert form.tree.spouse.first_name == ""
    assert form.tree.spouse.sons == []


def test_staying_married_keeps_spouse() -> None:
    form = married_form()
    form.set_spouse_field("first_name", "sita")
    form.set_family_head_field("marital_status", "MARRIED")
    assert form.tree.spouse.first_name == "SITA"


def test_spouse_edits_require_a_married_head() -> None:
    form = FamilyForm(reference_date=REFERENCE)
    with pytest.raises(FormSectionUnavailable):
        form.set_spouse_field("first_name", "sita")


def test_preserving_resize_keeps_overlap_and_never_resurrects() -> None:
    form = married_form()
    form.set_spouse_field("number_of_sons", "3")
    for index, name in enumerate(["lav", "kush", "bharat"]):
        form.set_child_field("sons", index, "first_name", name)

    form.set_spouse_field("number_of_sons", 1)
    assert [son.first_name for son in form.tree.spouse.sons] == ["LAV"]

    form.set_spouse_field("number_of_sons", 3)
    sons = form.tree.spouse.sons
    assert len(sons) == 3
    assert sons[0].first_name == "LAV"
    assert sons[1].first_name == ""
    assert sons[2].first_name == ""
    assert all(son.child_type is ChildType.SON for son in sons)


def test_reset_resize_discards_every_entry() -> None:
    form = married_form(resize_policy=ResizePolicy.RESET)
    form.set_spouse_field("number_of_daughters", 3)
    for index, name in enumerate(["sita", "gita", "rita"]):
        form.set_child_field("daughters", index, "first_name", name)

    form.set_spouse_field("number_of_daughters", 1)
    form.set_spouse_field("number_of_daughters", 3)
    daughters = form.tree.spouse.daughters
    assert len(daughters) == 3
    assert all(daughter.first_name == "" for daughter in daughters)
    assert all(daughter.child_type is ChildType.DAUGHTER for daughter in daughters)


def test_setting_the_same_count_is_a_no_op() -> None:
    form = married_form(resize_policy="reset")
    form.set_spouse_field("number_of_sons", 2)
    form.set_child_field("son", 1, "first_name", "kush")
    form.set_spouse_field("number_of_sons", 2)
    assert form.tree.spouse.sons[1].first_name == "KUSH"


def test_count_bounds_are_enforced() -> None:
    form = married_form()
    with pytest.raises(FormFieldError):
        form.set_spouse_field("number_of_sons", 11)
    with pytest.raises(FormFieldError):
        form.set_spouse_field("number_of_sons", "many")
    form.set_spouse_field("number_of_sons", "")
    assert form.tree.spouse.number_of_sons == 0


def test_child_marriage_toggles_child_spouse_and_grandchildren() -> None:
    form = married_form()
    form.set_spouse_field("number_of_daughters", 1)
    form.set_child_field("daughters", 0, "marital_status", "married")
    form.set_child_spouse_field("daughters", 0, "first_name", "arjun")
    form.set_child_spouse_field("daughters", 0, "number_of_children", 2)
    form.set_grandchild_field("daughters", 0, 1, "date_of_birth", "2020-06-15")

    child = form.tree.spouse.daughters[0]
    assert child.spouse.first_name == "ARJUN"
    assert len(child.spouse.grandchildren) == 2
    assert child.spouse.grandchildren[1].age == 4

    form.set_child_field("daughters", 0, "marital_status", "divorced")
    assert child.marital_status is MaritalStatus.DIVORCED
    assert child.spouse is None
    with pytest.raises(FormSectionUnavailable):
        form.set_grandchild_field("daughters", 0, 0, "first_name", "x")


def test_grandchild_index_must_exist() -> None:
    form = married_form()
    form.set_spouse_field("number_of_sons", 1)
    form.set_child_field("sons", 0, "marital_status", "married")
    with pytest.raises(FormSectionUnavailable):
        form.set_grandchild_field("sons", 0, 0, "first_name", "kush")


def test_unknown_and_derived_fields_are_rejected() -> None:
    form = married_form()
    with pytest.raises(FormFieldError):
        form.set_family_head_field("nickname", "x")
    with pytest.raises(FormFieldError):
        form.set_family_head_field("age", 40)
    with pytest.raises(FormFieldError):
        form.set_spouse_field("sons", [])


def test_unknown_child_type_and_index() -> None:
    form = married_form()
    form.set_spouse_field("number_of_sons", 1)
    with pytest.raises(FormFieldError):
        form.set_child_field("cousins", 0, "first_name", "x")
    with pytest.raises(FormSectionUnavailable):
        form.set_child_field("sons", 1, "first_name", "x")


def test_occupation_is_limited_per_role() -> None:
    form = married_form()
    form.set_spouse_field("occupation", "housewife")
    form.set_spouse_field("number_of_sons", 1)
    with pytest.raises(FormFieldError):
        form.set_child_field("sons", 0, "occupation", "retired")
    form.set_child_field("sons", 0, "occupation", "student")
    form.set_child_field("sons", 0, "marital_status", "married")
    with pytest.raises(FormFieldError):
        form.set_child_spouse_field("sons", 0, "occupation", "student")
    form.set_child_spouse_field("sons", 0, "occupation", "")
    assert form.tree.spouse.sons[0].spouse.occupation is None


def test_reset_returns_to_empty_tree() -> None:
    form = married_form()
    form.set_family_head_field("first_name", "ram")
    form.reset()
    assert form.tree == FamilyTree()


def test_normalize_tree_applies_edit_rules() -> None:
    tree = FamilyTree(
        family_head=FamilyHeadForm(first_name="ram", marital_status="married", date_of_birth="1980-01-01"),
        spouse=SpouseForm.model_validate(
            {
                "first_name": "sita",
                "number_of_sons": 2,
                "sons": [{"first_name": "lav", "marital_status": "single", "spouse": {"first_name": "x"}}],
            }
        ),
    )
    normalize_tree(tree, reference_date=REFERENCE)

    assert tree.family_head.first_name == "RAM"
    assert tree.family_head.age == 44
    assert tree.spouse.first_name == "SITA"
    assert len(tree.spouse.sons) == 2
    assert tree.spouse.sons[0].first_name == "LAV"
    assert tree.spouse.sons[0].spouse is None


def test_normalize_tree_drops_spouse_of_unmarried_head() -> None:
    tree = FamilyTree(family_head=FamilyHeadForm(marital_status="widowed"), spouse=SpouseForm(first_name="x"))
    assert normalize_tree(tree).spouse is None


def test_normalize_tree_rejects_lists_longer_than_their_count() -> None:
    tree = FamilyTree(
        family_head=FamilyHeadForm(marital_status="married"),
        spouse=SpouseForm.model_validate({"number_of_daughters": 0, "daughters": [{"first_name": "a"}]}),
    )
    with pytest.raises(FormFieldError):
        normalize_tree(tree)


def test_registry_evicts_idle_sessions_but_not_submitting_ones() -> None:
    now = [datetime(2024, 6, 15, 9, 0)]
    registry = FormSessionRegistry(ttl=timedelta(hours=1), clock=lambda: now[0])
    idle = registry.create()
    busy = registry.create()
    busy.state = SubmissionState.PERSISTING

    now[0] += timedelta(hours=2)
    fresh = registry.create()

    with pytest.raises(FormSessionNotFound):
        registry.get(idle.id)
    assert registry.get(busy.id) is busy
    assert registry.get(fresh.id) is fresh


def test_registry_without_ttl_keeps_sessions() -> None:
    now = [datetime(2024, 6, 15, 9, 0)]
    registry = FormSessionRegistry(clock=lambda: now[0])
    session = registry.create()
    now[0] += timedelta(days=30)
    assert registry.get(session.id) is session
