from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from census.core.config import Settings, get_settings
from census.core.db import get_session
from census.schemas.export import ExportRequest, FamilyStats
from census.services.export_service import (
    ExportAccessDenied,
    ExportError,
    ExportRows,
    build_csv_export,
    build_xlsx_export,
    compute_family_stats,
    csv_filename,
    export_date,
    load_export_rows,
    verify_export_password,
    xlsx_filename,
)

router = APIRouter(prefix="/export", tags=["export"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def _load_rows(
    payload: ExportRequest,
    session: AsyncSession,
    settings: Settings,
) -> ExportRows:
    try:
        verify_export_password(payload.password, settings)
    except ExportAccessDenied as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid password",
        ) from exc
    try:
        return await load_export_rows(session)
    except ExportError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc


@router.post("/csv")
async def export_csv(
    payload: ExportRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Response:
    rows = await _load_rows(payload, session, settings)
    return Response(
        content=build_csv_export(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(export_date())}"'},
    )


@router.post("/xlsx")
async def export_xlsx(
    payload: ExportRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Response:
    rows = await _load_rows(payload, session, settings)
    on = export_date()
    try:
        content = build_xlsx_export(rows, compute_family_stats(rows), on)
    except ExportError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{xlsx_filename(on)}"'},
    )


@router.post("/summary", response_model=FamilyStats)
async def export_summary(
    payload: ExportRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> FamilyStats:
    rows = await _load_rows(payload, session, settings)
    return compute_family_stats(rows)
