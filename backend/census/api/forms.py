from collections.abc import Callable
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from census.api.deps import get_form_registry, get_form_session, submission_http_error
from census.core.db import get_session
from census.schemas.form import (
    FieldUpdateRequest,
    FormSessionResponse,
    SubmissionResponse,
    SubmitRequest,
)
from census.services.form_state import (
    FormFieldError,
    FormSession,
    FormSessionNotFound,
    FormSessionRegistry,
    FormSectionUnavailable,
    SubmissionState,
)
from census.services.persistence import PersistenceError
from census.services.submission_service import (
    SubmissionInProgress,
    SubmissionValidationError,
    submit_form_session,
)

router = APIRouter(prefix="/forms", tags=["forms"])


def _to_form_response(form_session: FormSession) -> FormSessionResponse:
    return FormSessionResponse(
        id=str(form_session.id),
        state=form_session.state.value,
        last_outcome=form_session.last_outcome.value if form_session.last_outcome else None,
        errors=list(form_session.errors),
        tree=form_session.form.tree,
    )


def _apply_edit(form_session: FormSession, edit: Callable[[], object]) -> FormSessionResponse:
    if form_session.state is not SubmissionState.IDLE:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Form session {form_session.id} is submitting and cannot be edited",
        )
    try:
        edit()
    except FormSectionUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except FormFieldError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    return _to_form_response(form_session)


@router.post("", response_model=FormSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_form(
    registry: FormSessionRegistry = Depends(get_form_registry),
) -> FormSessionResponse:
    return _to_form_response(registry.create())


@router.get("/{form_id}", response_model=FormSessionResponse)
async def get_form(
    form_session: FormSession = Depends(get_form_session),
) -> FormSessionResponse:
    return _to_form_response(form_session)


@router.delete("/{form_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_form(
    form_id: UUID,
    registry: FormSessionRegistry = Depends(get_form_registry),
) -> None:
    try:
        registry.discard(form_id)
    except FormSessionNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Form session not found.",
        ) from exc


@router.patch("/{form_id}/head", response_model=FormSessionResponse)
async def update_family_head(
    payload: FieldUpdateRequest,
    form_session: FormSession = Depends(get_form_session),
) -> FormSessionResponse:
    form = form_session.form
    return _apply_edit(
        form_session,
        lambda: form.set_family_head_field(payload.field, payload.value),
    )


@router.patch("/{form_id}/spouse", response_model=FormSessionResponse)
async def update_spouse(
    payload: FieldUpdateRequest,
    form_session: FormSession = Depends(get_form_session),
) -> FormSessionResponse:
    form = form_session.form
    return _apply_edit(
        form_session,
        lambda: form.set_spouse_field(payload.field, payload.value),
    )


@router.patch("/{form_id}/children/{child_type}/{child_index}", response_model=FormSessionResponse)
async def update_child(
    child_type: str,
    child_index: int,
    payload: FieldUpdateRequest,
    form_session: FormSession = Depends(get_form_session),
) -> FormSessionResponse:
    form = form_session.form
    return _apply_edit(
        form_session,
        lambda: form.set_child_field(child_type, child_index, payload.field, payload.value),
    )


@router.patch(
    "/{form_id}/children/{child_type}/{child_index}/spouse",
    response_model=FormSessionResponse,
)
async def update_child_spouse(
    child_type: str,
    child_index: int,
    payload: FieldUpdateRequest,
    form_session: FormSession = Depends(get_form_session),
) -> FormSessionResponse:
    form = form_session.form
    return _apply_edit(
        form_session,
        lambda: form.set_child_spouse_field(child_type, child_index, payload.field, payload.value),
    )


@router.patch(
    "/{form_id}/children/{child_type}/{child_index}/grandchildren/{grandchild_index}",
    response_model=FormSessionResponse,
)
async def update_grandchild(
    child_type: str,
    child_index: int,
    grandchild_index: int,
    payload: FieldUpdateRequest,
    form_session: FormSession = Depends(get_form_session),
) -> FormSessionResponse:
    form = form_session.form
    return _apply_edit(
        form_session,
        lambda: form.set_grandchild_field(
            child_type,
            child_index,
            grandchild_index,
            payload.field,
            payload.value,
        ),
    )


@router.post("/{form_id}/submit", response_model=SubmissionResponse)
async def submit_form(
    payload: SubmitRequest | None = None,
    form_session: FormSession = Depends(get_form_session),
    session: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    submission_key = payload.submission_key if payload else None
    try:
        result = await submit_form_session(session, form_session, submission_key=submission_key)
    except (SubmissionValidationError, SubmissionInProgress, PersistenceError) as exc:
        raise submission_http_error(exc) from exc

    return SubmissionResponse(
        family_head_id=result.family_head_id,
        idempotent_replay=result.idempotent_replay,
        row_counts=result.row_counts,
        message="Family information has been saved successfully!",
    )
