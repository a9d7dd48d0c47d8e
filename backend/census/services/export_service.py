"""Bulk export of the five census tables.

The export password is a shared speed-bump value from settings. It keeps
casual visitors away from the download buttons and is not an access-control
boundary.
"""

from __future__ import annotations

import csv
import io
import logging
import secrets
from collections import Counter
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from census.core.config import Settings
from census.models.enums import ChildType, MaritalStatus
from census.schemas.export import FamilyStats
from census.services.persistence import (
    CHILD_SPOUSES,
    CHILDREN,
    FAMILY_HEADS,
    GRANDCHILDREN,
    SPOUSES,
    TABLE_MODELS,
)

logger = logging.getLogger(__name__)

ExportRows = dict[str, list[dict[str, Any]]]

AGE_GROUPS = ("0-18", "19-35", "36-50", "51-65", "65+", "Unknown")

# (section title, sheet name, [(column label, column name), ...]) per table.
EXPORT_LAYOUT: dict[str, tuple[str, str, list[tuple[str, str]]]] = {
    FAMILY_HEADS: (
        "FAMILY HEADS",
        "Family Heads",
        [
            ("ID", "id"),
            ("First Name", "first_name"),
            ("Last Name", "last_name"),
            ("Date of Birth", "date_of_birth"),
            ("Age", "age"),
            ("Native Place", "native_place"),
            ("Current Place", "current_place"),
            ("Contact Number", "contact_number"),
            ("Marital Status", "marital_status"),
            ("Occupation", "occupation"),
            ("Created At", "created_at"),
        ],
    ),
    SPOUSES: (
        "SPOUSES",
        "Spouses",
        [
            ("ID", "id"),
            ("Family Head ID", "family_head_id"),
            ("First Name", "first_name"),
            ("Last Name", "last_name"),
            ("Date of Birth", "date_of_birth"),
            ("Age", "age"),
            ("Native Place", "native_place"),
            ("Current Place", "current_place"),
            ("Contact Number", "contact_number"),
            ("Occupation", "occupation"),
            ("Number of Sons", "number_of_sons"),
            ("Number of Daughters", "number_of_daughters"),
            ("Created At", "created_at"),
        ],
    ),
    CHILDREN: (
        "CHILDREN",
        "Children",
        [
            ("ID", "id"),
            ("Family Head ID", "family_head_id"),
            ("Child Type", "child_type"),
            ("Child Index", "child_index"),
            ("First Name", "first_name"),
            ("Last Name", "last_name"),
            ("Date of Birth", "date_of_birth"),
            ("Age", "age"),
            ("Contact Number", "contact_number"),
            ("Current Place", "current_place"),
            ("Phone Number", "phone_number"),
            ("Occupation", "occupation"),
            ("Marital Status", "marital_status"),
            ("Created At", "created_at"),
        ],
    ),
    CHILD_SPOUSES: (
        "CHILD SPOUSES",
        "Child Spouses",
        [
            ("ID", "id"),
            ("Child ID", "child_id"),
            ("First Name", "first_name"),
            ("Last Name", "last_name"),
            ("Date of Birth", "date_of_birth"),
            ("Age", "age"),
            ("Native Place", "native_place"),
            ("Contact Number", "contact_number"),
            ("Occupation", "occupation"),
            ("Number of Children", "number_of_children"),
            ("Created At", "created_at"),
        ],
    ),
    GRANDCHILDREN: (
        "GRANDCHILDREN",
        "Grandchildren",
        [
            ("ID", "id"),
            ("Child Spouse ID", "child_spouse_id"),
            ("Grandchild Index", "grandchild_index"),
            ("First Name", "first_name"),
            ("Last Name", "last_name"),
            ("Date of Birth", "date_of_birth"),
            ("Age", "age"),
            ("Contact Number", "contact_number"),
            ("Current Place", "current_place"),
            ("Phone Number", "phone_number"),
            ("Occupation", "occupation"),
            ("Created At", "created_at"),
        ],
    ),
}


class ExportAccessDenied(Exception):
    pass


class ExportError(Exception):
    pass


def verify_export_password(password: str, settings: Settings) -> None:
    if not secrets.compare_digest(password.encode("utf-8"), settings.export_password.encode("utf-8")):
        logger.warning("Rejected export request with an invalid password")
        raise ExportAccessDenied("Invalid password")


def export_date() -> date:
    return datetime.now(UTC).date()


def csv_filename(on: date) -> str:
    return f"family_data_{on.isoformat()}.csv"


def xlsx_filename(on: date) -> str:
    return f"Family_Database_Complete_{on.isoformat()}.xlsx"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


def _serialize_csv_value(value: object) -> str:
    value = _plain(value)
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


async def load_export_rows(session: AsyncSession) -> ExportRows:
    """Read every table in dependency order, oldest rows first."""
    rows: ExportRows = {}
    try:
        for table_name, model in TABLE_MODELS.items():
            result = await session.execute(select(model).order_by(model.created_at))
            columns = [column.name for column in model.__table__.columns]
            rows[table_name] = [
                {column: _plain(getattr(record, column)) for column in columns}
                for record in result.scalars().all()
            ]
    except SQLAlchemyError as exc:
        logger.exception("Export read failed")
        raise ExportError("Failed to read family data for export") from exc
    return rows


def age_group(age: int | None) -> str:
    if age is None:
        return "Unknown"
    if age <= 18:
        return "0-18"
    if age <= 35:
        return "19-35"
    if age <= 50:
        return "36-50"
    if age <= 65:
        return "51-65"
    return "65+"


def compute_family_stats(rows: ExportRows) -> FamilyStats:
    heads = rows.get(FAMILY_HEADS, [])
    children = rows.get(CHILDREN, [])
    people = [person for table_name in TABLE_MODELS for person in rows.get(table_name, [])]

    occupations: Counter = Counter(
        str(person["occupation"]) for person in people if person.get("occupation")
    )
    ages: Counter = Counter({group: 0 for group in AGE_GROUPS})
    ages.update(age_group(person.get("age")) for person in people)

    return FamilyStats(
        total_families=len(heads),
        total_family_heads=len(heads),
        total_spouses=len(rows.get(SPOUSES, [])),
        total_children=len(children),
        total_sons=sum(1 for child in children if child.get("child_type") == ChildType.SON.value),
        total_daughters=sum(
            1 for child in children if child.get("child_type") == ChildType.DAUGHTER.value
        ),
        married_children=sum(
            1 for child in children if child.get("marital_status") == MaritalStatus.MARRIED.value
        ),
        total_child_spouses=len(rows.get(CHILD_SPOUSES, [])),
        total_grandchildren=len(rows.get(GRANDCHILDREN, [])),
        occupation_breakdown=dict(sorted(occupations.items())),
        age_groups={group: ages[group] for group in AGE_GROUPS},
    )


def build_csv_export(rows: ExportRows) -> str:
    buffer = io.StringIO(newline="")
    plain = csv.writer(buffer, lineterminator="\n")
    quoted = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for position, (table_name, (title, _sheet, columns)) in enumerate(EXPORT_LAYOUT.items()):
        if position:
            buffer.write("\n\n")
        plain.writerow([title])
        plain.writerow([label for label, _ in columns])
        for record in rows.get(table_name, []):
            quoted.writerow([_serialize_csv_value(record.get(name)) for _, name in columns])
    return buffer.getvalue()


def _summary_rows(stats: FamilyStats, on: date) -> list[list[Any]]:
    summary: list[list[Any]] = [
        ["Family Database Summary", ""],
        ["Export Date", on.isoformat()],
        ["", ""],
        ["OVERALL COUNTS", ""],
        ["Total Families", stats.total_families],
        ["Total Family Heads", stats.total_family_heads],
        ["Total Spouses", stats.total_spouses],
        ["Total Children", stats.total_children],
        ["- Sons", stats.total_sons],
        ["- Daughters", stats.total_daughters],
        ["Total Married Children", stats.married_children],
        ["Total Child Spouses", stats.total_child_spouses],
        ["Total Grandchildren", stats.total_grandchildren],
        ["Total Members", stats.total_members],
        ["", ""],
        ["OCCUPATION BREAKDOWN", ""],
    ]
    summary.extend([occupation.capitalize(), count] for occupation, count in stats.occupation_breakdown.items())
    summary.append(["", ""])
    summary.append(["AGE GROUP BREAKDOWN", ""])
    summary.extend([group, count] for group, count in stats.age_groups.items())
    return summary


def build_xlsx_export(rows: ExportRows, stats: FamilyStats, on: date) -> bytes:
    buffer = io.BytesIO()
    try:
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            pd.DataFrame(_summary_rows(stats, on)).to_excel(
                writer, sheet_name="Summary", index=False, header=False
            )
            for table_name, (_title, sheet_name, columns) in EXPORT_LAYOUT.items():
                frame = pd.DataFrame(
                    [[record.get(name) for _, name in columns] for record in rows.get(table_name, [])],
                    columns=[label for label, _ in columns],
                )
                frame.to_excel(writer, sheet_name=sheet_name, index=False)
    except (ValueError, TypeError, OSError) as exc:
        logger.exception("Workbook serialisation failed")
        raise ExportError("Failed to export family data") from exc
    return buffer.getvalue()
