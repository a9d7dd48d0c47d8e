from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from census.models.enums import MaritalStatus, OccupationType


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class FamilyHead(SQLModel, table=True):
    __tablename__ = "family_heads"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    first_name: str = Field(nullable=False, max_length=120)
    last_name: str = Field(nullable=False, max_length=120)
    date_of_birth: date = Field(nullable=False)
    age: int = Field(nullable=False)
    native_place: str | None = Field(default=None, max_length=120)
    current_place: str | None = Field(default=None, max_length=120)
    contact_number: str | None = Field(default=None, max_length=20)
    marital_status: MaritalStatus | None = Field(default=None)
    occupation: OccupationType | None = Field(default=None)
    submission_key: str | None = Field(
        default=None,
        sa_column=Column(String(120), nullable=True, unique=True, index=True),
    )
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
