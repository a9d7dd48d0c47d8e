"""Flattens a family tree into ordered inserts across the five census tables.

Each insert returns the generated id of its row, which becomes the foreign key
of the next level down, so the inserts run strictly one after another. A
failure stops the sequence. Rows written before the failure are left to the
store: the SQL store keeps them inside the caller's transaction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from census.models.child import Child
from census.models.child_spouse import ChildSpouse
from census.models.enums import MaritalStatus
from census.models.family_head import FamilyHead
from census.models.grandchild import Grandchild
from census.models.spouse import Spouse
from census.schemas.family import (
    ChildForm,
    ChildSpouseForm,
    FamilyHeadForm,
    FamilyTree,
    GrandchildForm,
    SpouseForm,
)
from census.services.derivation import age_or_none, compute_age, normalize_date

logger = logging.getLogger(__name__)

FAMILY_HEADS = "family_heads"
SPOUSES = "spouses"
CHILDREN = "children"
CHILD_SPOUSES = "child_spouses"
GRANDCHILDREN = "grandchildren"

TABLE_MODELS: dict[str, type[SQLModel]] = {
    FAMILY_HEADS: FamilyHead,
    SPOUSES: Spouse,
    CHILDREN: Child,
    CHILD_SPOUSES: ChildSpouse,
    GRANDCHILDREN: Grandchild,
}


class StoreError(Exception):
    """Raised by a store when it cannot persist a row."""


class PersistenceError(Exception):
    def __init__(self, table: str, detail: str) -> None:
        self.table = table
        self.detail = detail
        super().__init__(f"Insert into {table} failed: {detail}")


class CensusStore(ABC):
    @abstractmethod
    async def insert(self, table: str, row: dict[str, Any]) -> str:
        """Persist one row and return its generated identifier."""
        raise NotImplementedError


class SqlModelCensusStore(CensusStore):
    """Writes rows through an AsyncSession. The caller owns commit/rollback."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, table: str, row: dict[str, Any]) -> str:
        model = TABLE_MODELS.get(table)
        if model is None:
            raise StoreError(f"Unknown table '{table}'")
        try:
            record = model.model_validate(row)
            self.session.add(record)
            await self.session.flush()
        except (SQLAlchemyError, ValidationError) as exc:
            raise StoreError(str(exc)) from exc
        return str(record.id)


@dataclass
class PersistenceResult:
    family_head_id: str
    row_counts: dict[str, int] = field(default_factory=dict)


def _text(value: str) -> str | None:
    return value or None


def _enum(value: Any) -> str | None:
    return value.value if value is not None else None


def build_family_head_row(
    head: FamilyHeadForm,
    *,
    reference_date: date | None = None,
    submission_key: str | None = None,
) -> dict[str, Any]:
    row = {
        "first_name": head.first_name,
        "last_name": head.last_name,
        "date_of_birth": normalize_date(head.date_of_birth),
        "age": compute_age(head.date_of_birth, reference_date),
        "native_place": _text(head.native_place),
        "current_place": _text(head.current_place),
        "contact_number": _text(head.contact_number),
        "marital_status": _enum(head.marital_status),
        "occupation": _enum(head.occupation),
    }
    if submission_key:
        row["submission_key"] = submission_key
    return row


def build_spouse_row(
    spouse: SpouseForm,
    family_head_id: str,
    *,
    reference_date: date | None = None,
) -> dict[str, Any]:
    return {
        "family_head_id": family_head_id,
        "first_name": _text(spouse.first_name),
        "last_name": _text(spouse.last_name),
        "date_of_birth": normalize_date(spouse.date_of_birth),
        "age": age_or_none(spouse.date_of_birth, reference_date),
        "native_place": _text(spouse.native_place),
        "current_place": _text(spouse.current_place),
        "contact_number": _text(spouse.contact_number),
        "occupation": _enum(spouse.occupation),
        "number_of_sons": spouse.number_of_sons,
        "number_of_daughters": spouse.number_of_daughters,
    }


def build_child_row(
    child: ChildForm,
    family_head_id: str,
    child_index: int,
    *,
    reference_date: date | None = None,
) -> dict[str, Any]:
    return {
        "family_head_id": family_head_id,
        "first_name": _text(child.first_name),
        "last_name": _text(child.last_name),
        "date_of_birth": normalize_date(child.date_of_birth),
        "age": age_or_none(child.date_of_birth, reference_date),
        "contact_number": _text(child.contact_number),
        "current_place": _text(child.current_place),
        "phone_number": _text(child.phone_number),
        "occupation": _enum(child.occupation),
        "marital_status": _enum(child.marital_status),
        "child_type": child.child_type.value,
        "child_index": child_index,
    }


def build_child_spouse_row(
    child_spouse: ChildSpouseForm,
    child_id: str,
    *,
    reference_date: date | None = None,
) -> dict[str, Any]:
    return {
        "child_id": child_id,
        "first_name": _text(child_spouse.first_name),
        "last_name": _text(child_spouse.last_name),
        "date_of_birth": normalize_date(child_spouse.date_of_birth),
        "age": age_or_none(child_spouse.date_of_birth, reference_date),
        "native_place": _text(child_spouse.native_place),
        "contact_number": _text(child_spouse.contact_number),
        "occupation": _enum(child_spouse.occupation),
        "number_of_children": child_spouse.number_of_children,
    }


def build_grandchild_row(
    grandchild: GrandchildForm,
    child_spouse_id: str,
    grandchild_index: int,
    *,
    reference_date: date | None = None,
) -> dict[str, Any]:
    return {
        "child_spouse_id": child_spouse_id,
        "first_name": _text(grandchild.first_name),
        "last_name": _text(grandchild.last_name),
        "date_of_birth": normalize_date(grandchild.date_of_birth),
        "age": age_or_none(grandchild.date_of_birth, reference_date),
        "contact_number": _text(grandchild.contact_number),
        "current_place": _text(grandchild.current_place),
        "phone_number": _text(grandchild.phone_number),
        "occupation": _enum(grandchild.occupation),
        "grandchild_index": grandchild_index,
    }


async def _insert(store: CensusStore, table: str, row: dict[str, Any], counts: Counter) -> str:
    try:
        row_id = await store.insert(table, row)
    except StoreError as exc:
        logger.warning("Insert into %s failed after %d rows", table, sum(counts.values()))
        raise PersistenceError(table, str(exc)) from exc
    counts[table] += 1
    logger.debug("Inserted %s row %s", table, row_id)
    return row_id


async def persist_family_tree(
    store: CensusStore,
    tree: FamilyTree,
    *,
    reference_date: date | None = None,
    submission_key: str | None = None,
) -> PersistenceResult:
    counts: Counter = Counter()
    head = tree.family_head
    head_id = await _insert(
        store,
        FAMILY_HEADS,
        build_family_head_row(head, reference_date=reference_date, submission_key=submission_key),
        counts,
    )

    spouse = tree.spouse
    if head.marital_status == MaritalStatus.MARRIED and spouse is not None:
        if spouse.has_identity():
            await _insert(
                store,
                SPOUSES,
                build_spouse_row(spouse, head_id, reference_date=reference_date),
                counts,
            )

        for children in (spouse.sons, spouse.daughters):
            for child_index, child in enumerate(children):
                if not child.has_identity():
                    continue
                child_id = await _insert(
                    store,
                    CHILDREN,
                    build_child_row(child, head_id, child_index, reference_date=reference_date),
                    counts,
                )
                child_spouse = child.spouse
                if child.marital_status != MaritalStatus.MARRIED or child_spouse is None:
                    continue
                child_spouse_id = await _insert(
                    store,
                    CHILD_SPOUSES,
                    build_child_spouse_row(child_spouse, child_id, reference_date=reference_date),
                    counts,
                )
                for grandchild_index, grandchild in enumerate(child_spouse.grandchildren):
                    if not grandchild.has_identity():
                        continue
                    await _insert(
                        store,
                        GRANDCHILDREN,
                        build_grandchild_row(
                            grandchild,
                            child_spouse_id,
                            grandchild_index,
                            reference_date=reference_date,
                        ),
                        counts,
                    )

    return PersistenceResult(
        family_head_id=head_id,
        row_counts={table: counts.get(table, 0) for table in TABLE_MODELS},
    )
