"""Endpoints for spreadsheet product imports, templates and error reports."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.dependencies.db import get_session
from app.api.dependencies.imports import (
    get_actor_id,
    get_import_repository,
    get_import_service,
)
from app.api.schemas.product_import import ErrorReportRequest, ImportResultRead
from app.core.config import get_settings
from app.core.exceptions import (
    ImportCancelledError,
    ImportPipelineError,
    InputShapeError,
)
from app.db.models.import_job import ImportJob
from app.services.error_report import ErrorReport, compile_error_report
from app.services.import_repository import SqlAlchemyImportRepository
from app.services.import_template import TEMPLATE_FILENAME, build_import_template
from app.services.import_types import ImportResult
from app.services.product_import import CancellationToken, ProductImportService
from app.services.spreadsheet_ingest import (
    XLSX_MEDIA_TYPE,
    is_supported_filename,
    read_product_rows,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ReportFormat = Literal["xlsx", "csv"]


def _report_response(report: ErrorReport, report_format: ReportFormat) -> Response:
    if report_format == "csv":
        content, media_type, filename = report.to_csv(), "text/csv", "import-errors.csv"
    else:
        content, media_type, filename = report.to_xlsx(), XLSX_MEDIA_TYPE, "import-errors.xlsx"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/",
    summary="Import products from a spreadsheet",
    response_model=ImportResultRead,
)
async def upload_product_import(
    file: UploadFile = File(...),
    actor_id: str = Depends(get_actor_id),
    service: ProductImportService = Depends(get_import_service),
) -> ImportResultRead:
    """Validate every row, insert the valid ones and report the rest.

    The whole job runs inside the request; the response carries final counts
    and the row errors (``null`` when every row was imported).
    """
    settings = get_settings()

    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )
    if not is_supported_filename(file.filename):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only .xlsx spreadsheets are supported",
        )

    content = await file.read(settings.import_max_upload_bytes + 1)
    if len(content) > settings.import_max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.import_max_upload_bytes} bytes",
        )

    cancel_token = None
    if settings.import_timeout_seconds:
        cancel_token = CancellationToken(settings.import_timeout_seconds)

    def decode_and_import() -> ImportResult:
        rows = read_product_rows(content)
        return service.run(rows, created_by=actor_id, cancel_token=cancel_token)

    try:
        result = await run_in_threadpool(decode_and_import)
    except InputShapeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ImportCancelledError as exc:
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"error": str(exc), "job_id": exc.job_id},
        )
    except ImportPipelineError as exc:
        logger.error(f"Import failed for {file.filename}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Import failed", "job_id": exc.job_id},
        )

    logger.info(
        f"Import job {result.job_id} for {file.filename}: "
        f"{result.success_count}/{result.total_rows} rows imported"
    )
    return ImportResultRead.model_validate(result.to_dict())


@router.get(
    "/template",
    summary="Download the spreadsheet import template",
)
async def download_template(
    repository: SqlAlchemyImportRepository = Depends(get_import_repository),
) -> Response:
    """Headers, an example row and the list of importable subcatalogs."""
    settings = get_settings()
    try:
        catalog_names = repository.load_catalog_names(settings.import_catalog_level)
    except SQLAlchemyError as exc:
        logger.error(f"Database error loading catalogs for template: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate template",
        ) from exc

    return Response(
        content=build_import_template(catalog_names),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@router.post(
    "/errors/export",
    summary="Export a posted error list as a spreadsheet",
)
async def export_errors(payload: ErrorReportRequest) -> Response:
    report = compile_error_report(error.model_dump() for error in payload.errors)
    return _report_response(report, payload.format)


@router.get(
    "/{job_id}/errors",
    summary="Download the error report of an import job",
)
async def download_job_errors(
    job_id: str,
    report_format: ReportFormat = Query("xlsx", alias="format"),
    db: Session = Depends(get_session),
) -> Response:
    job = db.get(ImportJob, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    report = compile_error_report(job.errors or [])
    return _report_response(report, report_format)
