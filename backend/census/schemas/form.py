from pydantic import BaseModel, Field

from census.schemas.family import FamilyHeadForm, FamilyTree, SpouseForm


class FieldUpdateRequest(BaseModel):
    field: str = Field(min_length=1, max_length=60)
    value: str | int | None = None


class FormSessionResponse(BaseModel):
    id: str
    state: str
    last_outcome: str | None = None
    errors: list[str] = Field(default_factory=list)
    tree: FamilyTree


class SubmitRequest(BaseModel):
    submission_key: str | None = Field(default=None, min_length=8, max_length=120)


class FamilySubmissionRequest(BaseModel):
    family_head: FamilyHeadForm
    spouse: SpouseForm | None = None
    submission_key: str | None = Field(default=None, min_length=8, max_length=120)


class SubmissionResponse(BaseModel):
    family_head_id: str
    idempotent_replay: bool
    row_counts: dict[str, int]
    message: str
