from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from census.models.family_head import FamilyHead
from census.schemas.family import FamilyTree
from census.services.form_state import FormSession, SubmissionOutcome, SubmissionState
from census.services.persistence import (
    FAMILY_HEADS,
    PersistenceError,
    SqlModelCensusStore,
    TABLE_MODELS,
    persist_family_tree,
)
from census.services.validation import validate_submission

logger = logging.getLogger(__name__)


class SubmissionValidationError(Exception):
    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


class SubmissionInProgress(Exception):
    pass


@dataclass
class SubmissionResult:
    family_head_id: str
    idempotent_replay: bool = False
    row_counts: dict[str, int] = field(default_factory=dict)


def ensure_valid(tree: FamilyTree, *, reference_date: date | None = None) -> None:
    result = validate_submission(tree, reference_date=reference_date)
    if not result.is_valid:
        raise SubmissionValidationError(result.errors)


async def _find_replay(session: AsyncSession, submission_key: str) -> FamilyHead | None:
    result = await session.execute(
        select(FamilyHead).where(FamilyHead.submission_key == submission_key)
    )
    return result.scalar_one_or_none()


def _replay(existing: FamilyHead) -> SubmissionResult:
    return SubmissionResult(
        family_head_id=str(existing.id),
        idempotent_replay=True,
        row_counts={table: 0 for table in TABLE_MODELS},
    )


def _lost_key_race(exc: PersistenceError) -> bool:
    """True when the head insert hit the unique submission_key index."""
    if exc.table != FAMILY_HEADS:
        return False
    cause = exc.__cause__
    while cause is not None:
        if isinstance(cause, IntegrityError):
            return True
        cause = cause.__cause__
    return False


async def persist_submission(
    session: AsyncSession,
    tree: FamilyTree,
    *,
    submission_key: str | None = None,
    reference_date: date | None = None,
) -> SubmissionResult:
    """Write the tree inside one transaction. Any failed insert rolls all of it back."""
    key = (submission_key or "").strip() or None
    if key:
        existing = await _find_replay(session, key)
        if existing:
            logger.info("Submission key already used, returning family head %s", existing.id)
            return _replay(existing)

    store = SqlModelCensusStore(session)
    try:
        persisted = await persist_family_tree(
            store,
            tree,
            reference_date=reference_date,
            submission_key=key,
        )
    except PersistenceError as exc:
        await session.rollback()
        if key and _lost_key_race(exc):
            existing = await _find_replay(session, key)
            if existing:
                logger.info("Submission key claimed concurrently, returning family head %s", existing.id)
                return _replay(existing)
        logger.warning("Submission rolled back: %s", exc)
        raise
    await session.commit()
    logger.info("Saved family head %s (%s)", persisted.family_head_id, persisted.row_counts)
    return SubmissionResult(
        family_head_id=persisted.family_head_id,
        row_counts=persisted.row_counts,
    )


async def submit_family_tree(
    session: AsyncSession,
    tree: FamilyTree,
    *,
    submission_key: str | None = None,
    reference_date: date | None = None,
) -> SubmissionResult:
    ensure_valid(tree, reference_date=reference_date)
    return await persist_submission(
        session,
        tree,
        submission_key=submission_key,
        reference_date=reference_date,
    )


async def submit_form_session(
    session: AsyncSession,
    form_session: FormSession,
    *,
    submission_key: str | None = None,
) -> SubmissionResult:
    """Idle -> Validating -> Persisting -> Idle, resetting the form only on success."""
    if form_session.state is not SubmissionState.IDLE:
        raise SubmissionInProgress(f"Form session {form_session.id} is already submitting")

    form = form_session.form
    form_session.state = SubmissionState.VALIDATING
    try:
        try:
            ensure_valid(form.tree, reference_date=form.reference_date)
        except SubmissionValidationError as exc:
            form_session.last_outcome = SubmissionOutcome.INVALID
            form_session.errors = list(exc.errors)
            raise

        form_session.state = SubmissionState.PERSISTING
        try:
            result = await persist_submission(
                session,
                form.tree,
                submission_key=submission_key,
                reference_date=form.reference_date,
            )
        except PersistenceError as exc:
            form_session.last_outcome = SubmissionOutcome.FAILURE
            form_session.errors = [f"Failed to save family information: {exc}"]
            raise
    finally:
        form_session.state = SubmissionState.IDLE

    form.reset()
    form_session.last_outcome = SubmissionOutcome.SUCCESS
    form_session.errors = []
    return result
