from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from census.api.deps import submission_http_error
from census.core.db import get_session
from census.schemas.family import FamilyTree
from census.schemas.form import FamilySubmissionRequest, SubmissionResponse
from census.services.form_state import FormFieldError, normalize_tree
from census.services.persistence import PersistenceError
from census.services.submission_service import SubmissionValidationError, submit_family_tree

router = APIRouter(prefix="/families", tags=["families"])


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_family(
    payload: FamilySubmissionRequest,
    session: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    try:
        tree = normalize_tree(FamilyTree(family_head=payload.family_head, spouse=payload.spouse))
    except FormFieldError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    try:
        result = await submit_family_tree(session, tree, submission_key=payload.submission_key)
    except (SubmissionValidationError, PersistenceError) as exc:
        raise submission_http_error(exc) from exc

    return SubmissionResponse(
        family_head_id=result.family_head_id,
        idempotent_replay=result.idempotent_replay,
        row_counts=result.row_counts,
        message="Family information has been saved successfully!",
    )
