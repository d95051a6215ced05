"""Lifecycle of one product import job record.

``ImportJobStateMachine`` is the only code that writes job progress. The
orchestrator holds one instance per job and drives it through
``create -> checkpoint* -> finalize`` (or ``fail`` on a pipeline fault).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from app.core.exceptions import JobStateError
from app.db.models.import_job import ImportJobStatus
from app.services.import_types import RowError

logger = logging.getLogger(__name__)

ProgressPublisher = Callable[..., None]


class JobStore(Protocol):
    def create_job(self, **fields: Any) -> tuple[str, datetime | None]: ...

    def update_job(self, job_id: str, **fields: Any) -> None: ...


@dataclass
class ImportJobState:
    id: str
    status: ImportJobStatus
    total_rows: int
    created_by: str | None = None
    processed_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    errors: list[RowError] = field(default_factory=list)
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


class ImportJobStateMachine:
    def __init__(self, store: JobStore, progress_publisher: ProgressPublisher | None = None):
        self.store = store
        self._publish = progress_publisher
        self._state: ImportJobState | None = None

    @property
    def state(self) -> ImportJobState:
        if self._state is None:
            raise JobStateError("Import job has not been created yet")
        return self._state

    @property
    def job_id(self) -> str:
        return self.state.id

    def create(self, total_rows: int, created_by: str | None) -> ImportJobState:
        """Persist a new job directly in ``processing``."""
        if self._state is not None:
            raise JobStateError(f"Import job {self._state.id} already created")
        if total_rows < 1:
            raise JobStateError("An import job needs at least one row")

        job_id, created_at = self.store.create_job(
            status=ImportJobStatus.PROCESSING.value,
            total_rows=total_rows,
            processed_rows=0,
            created_by=created_by,
        )
        self._state = ImportJobState(
            id=job_id,
            status=ImportJobStatus.PROCESSING,
            total_rows=total_rows,
            created_by=created_by,
            created_at=created_at,
        )
        logger.info(f"Created import job {job_id} for {total_rows} rows")
        self._publish_snapshot("Import started")
        return self._state

    def checkpoint(self, processed_rows: int) -> None:
        """Record mid-run progress. Best-effort: never raises on store failures."""
        state = self.state
        if state.status is not ImportJobStatus.PROCESSING:
            logger.warning(
                f"Ignoring checkpoint for import job {state.id} in status {state.status.value}"
            )
            return

        if processed_rows > state.total_rows:
            logger.warning(
                f"Checkpoint {processed_rows} exceeds total rows {state.total_rows} "
                f"for import job {state.id}, clamping"
            )
            processed_rows = state.total_rows
        if processed_rows <= state.processed_rows:
            return

        try:
            self.store.update_job(state.id, processed_rows=processed_rows)
        except Exception as e:
            logger.warning(
                f"Checkpoint for import job {state.id} at row {processed_rows} failed: {e}"
            )
            return

        state.processed_rows = processed_rows
        self._publish_snapshot()

    def finalize(
        self,
        success_count: int,
        error_count: int,
        errors: Iterable[RowError],
        completed_at: datetime | None = None,
    ) -> ImportJobState:
        """Write the authoritative terminal result.

        Finalizing an already completed job with the same values is a no-op,
        so callers may retry after a transient write failure.
        """
        state = self.state
        errors = list(errors)

        if state.status is ImportJobStatus.COMPLETED:
            if (
                state.success_count == success_count
                and state.error_count == error_count
                and state.errors == errors
            ):
                logger.info(f"Import job {state.id} already finalized, skipping write")
                return state
            raise JobStateError(
                f"Import job {state.id} is already completed with different totals"
            )
        if state.status is not ImportJobStatus.PROCESSING:
            raise JobStateError(
                f"Cannot finalize import job {state.id} in status {state.status.value}"
            )
        if success_count < 0 or error_count < 0:
            raise JobStateError("Import counts must not be negative")
        if success_count + error_count != state.total_rows:
            raise JobStateError(
                f"Import job {state.id}: success ({success_count}) + errors "
                f"({error_count}) does not match total rows ({state.total_rows})"
            )

        completed_at = completed_at or datetime.now(timezone.utc)
        self.store.update_job(
            state.id,
            status=ImportJobStatus.COMPLETED.value,
            processed_rows=state.total_rows,
            success_count=success_count,
            error_count=error_count,
            errors=[error.to_dict() for error in errors] or None,
            completed_at=completed_at,
        )

        state.status = ImportJobStatus.COMPLETED
        state.processed_rows = state.total_rows
        state.success_count = success_count
        state.error_count = error_count
        state.errors = errors
        state.completed_at = completed_at
        logger.info(
            f"Import job {state.id} completed: {success_count} imported, "
            f"{error_count} rejected"
        )
        self._publish_snapshot("Import complete")
        return state

    def fail(self, message: str) -> ImportJobState:
        """Mark the job ``failed`` after a pipeline fault or cancellation."""
        state = self.state
        if state.status is ImportJobStatus.FAILED:
            return state
        if state.status is ImportJobStatus.COMPLETED:
            raise JobStateError(f"Import job {state.id} is already completed")

        completed_at = datetime.now(timezone.utc)
        try:
            self.store.update_job(
                state.id,
                status=ImportJobStatus.FAILED.value,
                error_message=message,
                completed_at=completed_at,
            )
        except Exception as e:
            logger.error(
                f"Could not record failure for import job {state.id}: {e}", exc_info=True
            )

        state.status = ImportJobStatus.FAILED
        state.error_message = message
        state.completed_at = completed_at
        self._publish_snapshot(f"Import failed: {message}")
        return state

    def _publish_snapshot(self, message: str | None = None) -> None:
        if self._publish is None or self._state is None:
            return
        state = self._state
        progress = state.processed_rows / state.total_rows if state.total_rows else 0.0
        try:
            self._publish(
                state.id,
                progress,
                message or f"Processed {state.processed_rows}/{state.total_rows} rows",
                status=state.status.value,
                meta={
                    "processed": state.processed_rows,
                    "total": state.total_rows,
                    "success_count": state.success_count,
                    "error_count": state.error_count,
                },
            )
        except Exception as e:
            logger.warning(f"Failed to publish progress for import job {state.id}: {e}")
