from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from census.models.enums import OccupationType


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class ChildSpouse(SQLModel, table=True):
    __tablename__ = "child_spouses"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    child_id: UUID = Field(foreign_key="children.id", nullable=False, index=True)
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    date_of_birth: date | None = Field(default=None)
    age: int | None = Field(default=None)
    native_place: str | None = Field(default=None, max_length=120)
    contact_number: str | None = Field(default=None, max_length=20)
    occupation: OccupationType | None = Field(default=None)
    number_of_children: int = Field(default=0, nullable=False)
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
