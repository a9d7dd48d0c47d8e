from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from census.models.enums import MaritalStatus, OccupationType


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Child(SQLModel, table=True):
    __tablename__ = "children"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    family_head_id: UUID = Field(foreign_key="family_heads.id", nullable=False, index=True)
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    date_of_birth: date | None = Field(default=None)
    age: int | None = Field(default=None)
    contact_number: str | None = Field(default=None, max_length=20)
    current_place: str | None = Field(default=None, max_length=120)
    phone_number: str | None = Field(default=None, max_length=20)
    occupation: OccupationType | None = Field(default=None)
    marital_status: MaritalStatus | None = Field(default=None)
    # "son" or "daughter"
    child_type: str = Field(sa_column=Column(String(16), nullable=False, index=True))
    child_index: int = Field(nullable=False)
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
