"""Import job tracking endpoints."""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.dependencies.db import get_session
from app.api.dependencies.imports import get_progress_reader
from app.api.routers.job_helpers import serialize_job
from app.api.schemas.job import ImportJobRead
from app.db.models.import_job import ImportJob, ImportJobStatus

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/",
    summary="List import jobs",
    response_model=list[ImportJobRead],
)
async def list_jobs(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    status: ImportJobStatus | None = Query(
        None, description="Filter by status (pending, processing, completed, failed)"
    ),
    db: Session = Depends(get_session),
    read_progress: Callable[[str], dict[str, Any]] = Depends(get_progress_reader),
) -> list[ImportJobRead]:
    """Return import jobs, newest first, optionally filtered by status."""
    query = select(ImportJob)
    if status:
        query = query.where(ImportJob.status == status.value)
    query = query.order_by(ImportJob.created_at.desc()).limit(limit)

    try:
        jobs = db.scalars(query).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list import jobs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve jobs") from e

    return [serialize_job(job, read_progress(job.id)) for job in jobs]


@router.get(
    "/{job_id}",
    summary="Fetch job metadata and latest progress",
    response_model=ImportJobRead,
)
async def get_job(
    job_id: str,
    db: Session = Depends(get_session),
    read_progress: Callable[[str], dict[str, Any]] = Depends(get_progress_reader),
) -> ImportJobRead:
    """Expose job state for polling dashboards and audit logs."""
    job = db.get(ImportJob, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return serialize_job(job, read_progress(job_id))
