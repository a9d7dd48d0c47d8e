from datetime import timedelta
from functools import lru_cache
from uuid import UUID

from fastapi import Depends, HTTPException, status

from census.core.config import get_settings
from census.services.form_state import FormSession, FormSessionNotFound, FormSessionRegistry
from census.services.submission_service import SubmissionInProgress, SubmissionValidationError


@lru_cache
def get_form_registry() -> FormSessionRegistry:
    settings = get_settings()
    return FormSessionRegistry(
        resize_policy=settings.child_resize_policy,
        ttl=timedelta(minutes=settings.form_session_ttl_minutes),
    )


def get_form_session(
    form_id: UUID,
    registry: FormSessionRegistry = Depends(get_form_registry),
) -> FormSession:
    try:
        return registry.get(form_id)
    except FormSessionNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Form session not found.",
        ) from exc


def submission_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, SubmissionValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"errors": exc.errors},
        )
    if isinstance(exc, SubmissionInProgress):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to save family information: {exc}",
    )
