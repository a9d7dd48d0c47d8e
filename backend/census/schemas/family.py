from datetime import date
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from census.models.enums import ChildType, MaritalStatus, OccupationType

MAX_CHILDREN = 10

# Maintained by the form, never edited directly.
DERIVED_FIELDS = frozenset({"age", "field_errors"})
STRUCTURAL_FIELDS = frozenset({"child_type", "sons", "daughters", "spouse", "grandchildren"})
COUNT_FIELDS = frozenset({"number_of_sons", "number_of_daughters", "number_of_children"})

CHILD_OCCUPATIONS = frozenset(
    {
        OccupationType.SALARIED,
        OccupationType.BUSINESS,
        OccupationType.STUDENT,
        OccupationType.UNEMPLOYED,
    }
)
CHILD_SPOUSE_OCCUPATIONS = frozenset(
    {
        OccupationType.RETIRED,
        OccupationType.HOUSEWIFE,
        OccupationType.SALARIED,
        OccupationType.BUSINESS,
    }
)


def _blank_enum(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip().lower()
        return cleaned or None
    return value


class PersonForm(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    allowed_occupations: ClassVar[frozenset[OccupationType]] = frozenset(OccupationType)

    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    contact_number: str = ""
    occupation: OccupationType | None = None
    age: int | None = None
    field_errors: dict[str, str] = Field(default_factory=dict)

    @field_validator(
        "first_name",
        "last_name",
        "contact_number",
        "native_place",
        "current_place",
        "phone_number",
        mode="before",
        check_fields=False,
    )
    @classmethod
    def _text_or_empty(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _date_as_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, date):
            return value.isoformat()
        return str(value).strip()

    @field_validator("occupation", mode="before")
    @classmethod
    def _blank_occupation(cls, value: Any) -> Any:
        return _blank_enum(value)

    @field_validator("occupation")
    @classmethod
    def _occupation_allowed_for_role(cls, value: OccupationType | None) -> OccupationType | None:
        if value is not None and value not in cls.allowed_occupations:
            allowed = ", ".join(sorted(item.value for item in cls.allowed_occupations))
            raise ValueError(f"occupation must be one of: {allowed}")
        return value

    @field_validator("marital_status", mode="before", check_fields=False)
    @classmethod
    def _blank_marital_status(cls, value: Any) -> Any:
        return _blank_enum(value)

    @field_validator(*sorted(COUNT_FIELDS), mode="before", check_fields=False)
    @classmethod
    def _blank_count(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0
        return value

    @classmethod
    def editable_fields(cls) -> frozenset[str]:
        return frozenset(cls.model_fields) - DERIVED_FIELDS - STRUCTURAL_FIELDS

    @computed_field
    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def has_identity(self) -> bool:
        return bool(self.first_name or self.last_name)


class GrandchildForm(PersonForm):
    allowed_occupations: ClassVar[frozenset[OccupationType]] = CHILD_OCCUPATIONS

    current_place: str = ""
    phone_number: str = ""


class ChildSpouseForm(PersonForm):
    allowed_occupations: ClassVar[frozenset[OccupationType]] = CHILD_SPOUSE_OCCUPATIONS

    native_place: str = ""
    number_of_children: int = Field(default=0, ge=0, le=MAX_CHILDREN)
    grandchildren: list[GrandchildForm] = Field(default_factory=list)


class ChildForm(PersonForm):
    allowed_occupations: ClassVar[frozenset[OccupationType]] = CHILD_OCCUPATIONS

    child_type: ChildType = ChildType.SON
    current_place: str = ""
    phone_number: str = ""
    marital_status: MaritalStatus | None = None
    spouse: ChildSpouseForm | None = None


class SpouseForm(PersonForm):
    native_place: str = ""
    current_place: str = ""
    number_of_sons: int = Field(default=0, ge=0, le=MAX_CHILDREN)
    number_of_daughters: int = Field(default=0, ge=0, le=MAX_CHILDREN)
    sons: list[ChildForm] = Field(default_factory=list)
    daughters: list[ChildForm] = Field(default_factory=list)


class FamilyHeadForm(PersonForm):
    native_place: str = ""
    current_place: str = ""
    marital_status: MaritalStatus | None = None


class FamilyTree(BaseModel):
    """One family record as it is being edited."""

    model_config = ConfigDict(validate_assignment=True)

    family_head: FamilyHeadForm = Field(default_factory=FamilyHeadForm)
    spouse: SpouseForm | None = None

    def children(self) -> list[ChildForm]:
        if self.spouse is None:
            return []
        return [*self.spouse.sons, *self.spouse.daughters]
