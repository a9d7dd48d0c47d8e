from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID, uuid4

from pydantic import ValidationError

from census.models.enums import ChildType, MaritalStatus
from census.schemas.family import (
    ChildForm,
    ChildSpouseForm,
    FamilyTree,
    GrandchildForm,
    PersonForm,
    SpouseForm,
)
from census.services.derivation import (
    CONTACT_FIELDS,
    DateParseError,
    compute_age,
    contact_number_message,
    parse_date,
    uppercase_transform,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=PersonForm)

INVALID_DATE_MESSAGE = "Enter a valid date of birth"
FUTURE_DATE_MESSAGE = "Date of birth cannot be in the future"


class FormFieldError(ValueError):
    pass


class FormSectionUnavailable(FormFieldError):
    pass


class FormSessionNotFound(LookupError):
    pass


class ResizePolicy(str, Enum):
    PRESERVE = "preserve"
    RESET = "reset"


class SubmissionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PERSISTING = "persisting"


class SubmissionOutcome(str, Enum):
    INVALID = "invalid"
    SUCCESS = "success"
    FAILURE = "failure"


def coerce_child_type(raw: str | ChildType) -> ChildType:
    value = str(raw.value if isinstance(raw, ChildType) else raw).strip().lower()
    if value in {"son", "sons"}:
        return ChildType.SON
    if value in {"daughter", "daughters"}:
        return ChildType.DAUGHTER
    raise FormFieldError(f"Unknown child type '{raw}'")


def refresh_derived(person: PersonForm, field_name: str, reference_date: date | None = None) -> None:
    """Recompute the display values that depend on ``field_name``."""
    if field_name == "date_of_birth":
        person.field_errors.pop("date_of_birth", None)
        if not person.date_of_birth:
            person.age = None
            return
        try:
            born = parse_date(person.date_of_birth)
        except DateParseError:
            person.age = None
            person.field_errors["date_of_birth"] = INVALID_DATE_MESSAGE
            return
        if born > (reference_date or date.today()):
            person.field_errors["date_of_birth"] = FUTURE_DATE_MESSAGE
        person.age = compute_age(born, reference_date)
    elif field_name in CONTACT_FIELDS:
        message = contact_number_message(getattr(person, field_name))
        if message:
            person.field_errors[field_name] = message
        else:
            person.field_errors.pop(field_name, None)


def _resize(items: list[T], count: int, factory: Callable[[], T], policy: ResizePolicy) -> list[T]:
    if policy is ResizePolicy.RESET:
        return [factory() for _ in range(count)]
    kept = items[:count]
    return kept + [factory() for _ in range(count - len(kept))]


class FamilyForm:
    """Owns one in-progress family tree and keeps its existence rules intact.

    A spouse exists only while the family head is married, a child's spouse
    only while that child is married, and child/grandchild lists always have
    exactly as many entries as their count field says.
    """

    def __init__(
        self,
        *,
        resize_policy: ResizePolicy | str = ResizePolicy.PRESERVE,
        reference_date: date | None = None,
    ) -> None:
        self.resize_policy = ResizePolicy(resize_policy)
        self.reference_date = reference_date
        self.tree = FamilyTree()

    def reset(self) -> None:
        self.tree = FamilyTree()

    def set_family_head_field(self, field_name: str, raw_value: Any) -> PersonForm:
        head = self.tree.family_head
        self._assign(head, field_name, raw_value)
        if field_name == "marital_status":
            if head.marital_status == MaritalStatus.MARRIED:
                if self.tree.spouse is None:
                    self.tree.spouse = SpouseForm()
            else:
                self.tree.spouse = None
        return head

    def set_spouse_field(self, field_name: str, raw_value: Any) -> PersonForm:
        spouse = self._spouse()
        if field_name in {"number_of_sons", "number_of_daughters"}:
            previous = getattr(spouse, field_name)
            self._assign(spouse, field_name, raw_value)
            count = getattr(spouse, field_name)
            if count != previous:
                child_type = ChildType.SON if field_name == "number_of_sons" else ChildType.DAUGHTER
                attr = "sons" if child_type is ChildType.SON else "daughters"
                setattr(
                    spouse,
                    attr,
                    _resize(
                        getattr(spouse, attr),
                        count,
                        lambda: ChildForm(child_type=child_type),
                        self.resize_policy,
                    ),
                )
            return spouse
        self._assign(spouse, field_name, raw_value)
        return spouse

    def set_child_field(
        self,
        child_type: str | ChildType,
        index: int,
        field_name: str,
        raw_value: Any,
    ) -> PersonForm:
        child = self._child(child_type, index)
        self._assign(child, field_name, raw_value)
        if field_name == "marital_status":
            if child.marital_status == MaritalStatus.MARRIED:
                if child.spouse is None:
                    child.spouse = ChildSpouseForm()
            else:
                child.spouse = None
        return child

    def set_child_spouse_field(
        self,
        child_type: str | ChildType,
        child_index: int,
        field_name: str,
        raw_value: Any,
    ) -> PersonForm:
        child_spouse = self._child_spouse(child_type, child_index)
        if field_name == "number_of_children":
            previous = child_spouse.number_of_children
            self._assign(child_spouse, field_name, raw_value)
            if child_spouse.number_of_children != previous:
                child_spouse.grandchildren = _resize(
                    child_spouse.grandchildren,
                    child_spouse.number_of_children,
                    GrandchildForm,
                    self.resize_policy,
                )
            return child_spouse
        self._assign(child_spouse, field_name, raw_value)
        return child_spouse

    def set_grandchild_field(
        self,
        child_type: str | ChildType,
        child_index: int,
        grandchild_index: int,
        field_name: str,
        raw_value: Any,
    ) -> PersonForm:
        grandchildren = self._child_spouse(child_type, child_index).grandchildren
        if not 0 <= grandchild_index < len(grandchildren):
            raise FormSectionUnavailable(f"Grandchild {grandchild_index + 1} does not exist")
        grandchild = grandchildren[grandchild_index]
        self._assign(grandchild, field_name, raw_value)
        return grandchild

    def _assign(self, person: PersonForm, field_name: str, raw_value: Any) -> None:
        if field_name not in person.editable_fields():
            raise FormFieldError(f"Unknown field '{field_name}'")
        try:
            setattr(person, field_name, uppercase_transform(field_name, raw_value))
        except ValidationError as exc:
            message = exc.errors()[0].get("msg", "invalid value")
            raise FormFieldError(f"Invalid value for {field_name}: {message}") from exc
        refresh_derived(person, field_name, self.reference_date)

    def _spouse(self) -> SpouseForm:
        if self.tree.spouse is None:
            raise FormSectionUnavailable("Spouse details are only available when the family head is married")
        return self.tree.spouse

    def _child(self, child_type: str | ChildType, index: int) -> ChildForm:
        kind = coerce_child_type(child_type)
        spouse = self._spouse()
        children = spouse.sons if kind is ChildType.SON else spouse.daughters
        if not 0 <= index < len(children):
            raise FormSectionUnavailable(f"{kind.value.capitalize()} {index + 1} does not exist")
        return children[index]

    def _child_spouse(self, child_type: str | ChildType, child_index: int) -> ChildSpouseForm:
        child = self._child(child_type, child_index)
        if child.spouse is None:
            raise FormSectionUnavailable("Spouse details are only available for a married child")
        return child.spouse


def _normalize_person(person: PersonForm, reference_date: date | None) -> None:
    for field_name in person.editable_fields():
        value = getattr(person, field_name)
        transformed = uppercase_transform(field_name, value)
        if transformed is not value:
            setattr(person, field_name, transformed)
    person.field_errors.clear()
    for field_name in ("date_of_birth", *sorted(CONTACT_FIELDS)):
        if field_name in type(person).model_fields:
            refresh_derived(person, field_name, reference_date)


def _fit_list(items: list[T], count: int, factory: Callable[[], T], label: str) -> list[T]:
    if len(items) > count:
        raise FormFieldError(f"{label} lists {len(items)} entries but its count is {count}")
    return items + [factory() for _ in range(count - len(items))]


def normalize_tree(tree: FamilyTree, *, reference_date: date | None = None) -> FamilyTree:
    """Apply the form's edit-time rules to a tree that arrived in one piece."""
    head = tree.family_head
    _normalize_person(head, reference_date)
    if head.marital_status != MaritalStatus.MARRIED:
        tree.spouse = None
        return tree
    if tree.spouse is None:
        tree.spouse = SpouseForm()

    spouse = tree.spouse
    _normalize_person(spouse, reference_date)
    spouse.sons = _fit_list(spouse.sons, spouse.number_of_sons, lambda: ChildForm(child_type=ChildType.SON), "sons")
    spouse.daughters = _fit_list(
        spouse.daughters,
        spouse.number_of_daughters,
        lambda: ChildForm(child_type=ChildType.DAUGHTER),
        "daughters",
    )
    for child_type, children in ((ChildType.SON, spouse.sons), (ChildType.DAUGHTER, spouse.daughters)):
        for child in children:
            child.child_type = child_type
            _normalize_person(child, reference_date)
            if child.marital_status != MaritalStatus.MARRIED:
                child.spouse = None
                continue
            if child.spouse is None:
                child.spouse = ChildSpouseForm()
            _normalize_person(child.spouse, reference_date)
            child.spouse.grandchildren = _fit_list(
                child.spouse.grandchildren,
                child.spouse.number_of_children,
                GrandchildForm,
                "grandchildren",
            )
            for grandchild in child.spouse.grandchildren:
                _normalize_person(grandchild, reference_date)
    return tree


def _utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass
class FormSession:
    form: FamilyForm
    id: UUID = field(default_factory=uuid4)
    state: SubmissionState = SubmissionState.IDLE
    last_outcome: SubmissionOutcome | None = None
    errors: list[str] = field(default_factory=list)
    touched_at: datetime = field(default_factory=_utc_now_naive)


class FormSessionRegistry:
    """Editing sessions keyed by id. Each session owns its own tree.

    Idle sessions untouched for longer than ``ttl`` are dropped on the next
    ``create`` or ``get``. A session that is mid-submit is never evicted.
    """

    def __init__(
        self,
        *,
        resize_policy: ResizePolicy | str = ResizePolicy.PRESERVE,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _utc_now_naive,
    ) -> None:
        self.resize_policy = ResizePolicy(resize_policy)
        self.ttl = ttl
        self.clock = clock
        self._sessions: dict[UUID, FormSession] = {}

    def _evict_expired(self, now: datetime) -> None:
        if self.ttl is None:
            return
        cutoff = now - self.ttl
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.state is SubmissionState.IDLE and session.touched_at < cutoff
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info("Evicted %d expired form sessions", len(expired))

    def create(self) -> FormSession:
        now = self.clock()
        self._evict_expired(now)
        session = FormSession(
            form=FamilyForm(resize_policy=self.resize_policy),
            touched_at=now,
        )
        self._sessions[session.id] = session
        logger.debug("Opened form session %s", session.id)
        return session

    def get(self, session_id: UUID) -> FormSession:
        now = self.clock()
        self._evict_expired(now)
        session = self._sessions.get(session_id)
        if session is None:
            raise FormSessionNotFound(str(session_id))
        session.touched_at = now
        return session

    def discard(self, session_id: UUID) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise FormSessionNotFound(str(session_id))
        logger.debug("Discarded form session %s", session_id)
