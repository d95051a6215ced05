"""Shared helpers for shaping job responses."""
from __future__ import annotations

from app.api.schemas.job import ImportJobRead
from app.db.models.import_job import ImportJob, ImportJobStatus


def serialize_job(job: ImportJob, progress_payload: dict | None) -> ImportJobRead:
    """Combine DB state + cached progress snapshot into a response schema.

    The database row is authoritative for status and counts; the Redis
    snapshot only contributes the progress message while the job runs.
    """
    progress_payload = progress_payload or {}
    status_value = job.status.value if isinstance(job.status, ImportJobStatus) else job.status

    if job.total_rows:
        calculated_progress = job.processed_rows / job.total_rows
    else:
        calculated_progress = progress_payload.get("progress")

    message = progress_payload.get("message")
    if ImportJobStatus(status_value).is_terminal or not message:
        if status_value == ImportJobStatus.FAILED.value and job.error_message:
            message = job.error_message
        else:
            total_display = job.total_rows if job.total_rows else "?"
            message = f"Processed {job.processed_rows}/{total_display} rows"

    return ImportJobRead(
        id=job.id,
        status=status_value,
        progress=calculated_progress,
        message=message,
        total_rows=job.total_rows,
        processed_rows=job.processed_rows,
        success_count=job.success_count,
        error_count=job.error_count,
        errors=job.errors or None,
        error_message=job.error_message,
        created_by=job.created_by,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )
