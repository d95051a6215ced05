"""Bulk product import: validate, cross-reference and persist spreadsheet rows.

Rows are processed sequentially in source order. Bad rows are recorded as
``RowError`` entries and skipped; they never abort the job. Only
infrastructure faults (reference data, batch insert, job writes) do, and
those surface as ``ImportPipelineError``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Protocol

from app.core.config import get_settings
from app.core.exceptions import (
    ImportCancelledError,
    ImportPipelineError,
    InputShapeError,
    JobStateError,
    RowRejectedError,
    RowValidationError,
)
from app.services.duplicate_detector import DuplicateDetector
from app.services.import_job_state import (
    ImportJobStateMachine,
    JobStore,
    ProgressPublisher,
)
from app.services.import_types import (
    CandidateProduct,
    Dimensions,
    ImportResult,
    RowError,
)
from app.services.reference_data import (
    CatalogResolver,
    ReferenceSnapshot,
    ReferenceSource,
    load_reference_data,
)
from app.services.storefront_revalidation import CATALOG_TAGS
from app.utils.row_validator import ProductImportRow, RawRow, validate_row

logger = logging.getLogger(__name__)

# Data starts on sheet row 2: row 1 is the header and rows are 1-based.
HEADER_ROW_OFFSET = 2


def source_row_number(index: int) -> int:
    """Spreadsheet row number for the zero-based index of a decoded data row."""
    return index + HEADER_ROW_OFFSET


class ImportRepository(ReferenceSource, JobStore, Protocol):
    def insert_products(
        self, candidates: Sequence[CandidateProduct], created_by: str | None = None
    ) -> int: ...


class CancellationToken:
    """Thread-safe cancellation flag with an optional deadline."""

    def __init__(
        self,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout_seconds if timeout_seconds is not None else None
        self._reason = "Import cancelled"

    def cancel(self, reason: str = "Import cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self.cancel("Import timed out")
            return True
        return False

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ImportCancelledError(self._reason)


def build_candidate(row: ProductImportRow, catalog_id: str | None) -> CandidateProduct:
    """Assemble the persistence shape, including the all-or-nothing dimensions."""
    dimensions = None
    if (
        row.dimensions_width is not None
        and row.dimensions_height is not None
        and row.dimensions_depth is not None
        and row.dimensions_unit is not None
    ):
        dimensions = Dimensions(
            width=row.dimensions_width,
            height=row.dimensions_height,
            depth=row.dimensions_depth,
            unit=row.dimensions_unit,
        )
    return CandidateProduct(
        name=row.name,
        slug=row.slug,
        description=row.description,
        short_description=row.short_description,
        base_price=str(row.base_price),
        catalog_id=catalog_id,
        is_active=row.is_active,
        dimensions=dimensions,
    )


class ProductImportService:
    """Drive one spreadsheet import from decoded rows to a finalized job."""

    def __init__(
        self,
        repository: ImportRepository,
        *,
        checkpoint_interval: int | None = None,
        catalog_level: int | None = None,
        finalize_attempts: int | None = None,
        progress_publisher: ProgressPublisher | None = None,
        on_catalog_changed: Callable[[list[str]], None] | None = None,
    ):
        settings = get_settings()
        self.repository = repository
        self.checkpoint_interval = max(
            1, checkpoint_interval or settings.import_checkpoint_interval
        )
        self.catalog_level = (
            catalog_level if catalog_level is not None else settings.import_catalog_level
        )
        self.finalize_attempts = max(
            1, finalize_attempts or settings.import_finalize_attempts
        )
        self.progress_publisher = progress_publisher
        self.on_catalog_changed = on_catalog_changed

    def run(
        self,
        rows: Sequence[RawRow],
        created_by: str | None,
        cancel_token: CancellationToken | None = None,
    ) -> ImportResult:
        rows = list(rows)
        if not rows:
            raise InputShapeError("No data rows found in the file")

        job = ImportJobStateMachine(self.repository, self.progress_publisher)
        try:
            job.create(len(rows), created_by)
        except Exception as exc:
            logger.error(f"Failed to create import job: {exc}", exc_info=True)
            raise ImportPipelineError("Failed to create import job") from exc

        try:
            snapshot = load_reference_data(self.repository, self.catalog_level)
        except Exception as exc:
            self._abort(job, f"Failed to load reference data: {exc}")
            raise ImportPipelineError("Failed to load reference data", job.job_id) from exc

        try:
            candidates, errors, rejected_rows = self._process_rows(
                rows, snapshot, job, cancel_token
            )
        except ImportCancelledError as exc:
            logger.warning(f"Import job {job.job_id} cancelled: {exc}")
            job.fail(str(exc))
            exc.job_id = job.job_id
            raise

        success_count = self._persist(job, candidates, created_by)
        self._finalize(job, success_count, rejected_rows, errors)
        self._notify_catalog_changed(job.job_id)

        return ImportResult(
            job_id=job.job_id,
            total_rows=len(rows),
            success_count=success_count,
            error_count=rejected_rows,
            errors=errors,
        )

    def _process_rows(
        self,
        rows: list[RawRow],
        snapshot: ReferenceSnapshot,
        job: ImportJobStateMachine,
        cancel_token: CancellationToken | None,
    ) -> tuple[list[CandidateProduct], list[RowError], int]:
        detector = DuplicateDetector(snapshot.existing_slugs)
        resolver = CatalogResolver(snapshot.catalog_ids_by_name)
        candidates: list[CandidateProduct] = []
        errors: list[RowError] = []
        rejected_rows = 0

        for index, raw_row in enumerate(rows):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            row_number = source_row_number(index)
            try:
                parsed = validate_row(raw_row, row_number)
                detector.check_and_register(parsed.slug)
                catalog_id = resolver.resolve(parsed.catalog_name)
            except RowValidationError as exc:
                errors.extend(exc.errors)
                rejected_rows += 1
                logger.debug(f"Row {row_number} rejected: {exc}")
            except RowRejectedError as exc:
                errors.append(RowError(row=row_number, field=exc.field, message=str(exc)))
                rejected_rows += 1
                logger.debug(f"Row {row_number} rejected: {exc}")
            else:
                candidates.append(build_candidate(parsed, catalog_id))

            if (index + 1) % self.checkpoint_interval == 0:
                job.checkpoint(index + 1)

        logger.info(
            f"Import job {job.job_id}: {len(candidates)} valid rows, "
            f"{rejected_rows} rejected ({len(errors)} errors), "
            f"{len(detector.registered)} slugs claimed"
        )
        return candidates, errors, rejected_rows

    def _persist(
        self,
        job: ImportJobStateMachine,
        candidates: list[CandidateProduct],
        created_by: str | None,
    ) -> int:
        if not candidates:
            return 0
        try:
            inserted = self.repository.insert_products(candidates, created_by)
        except Exception as exc:
            # Rows were validated already, so this is always an infrastructure
            # fault (including a slug taken by a concurrent import).
            self._abort(job, f"Batch insert failed: {exc}")
            raise ImportPipelineError("Batch insert failed", job.job_id) from exc

        if inserted != len(candidates):
            message = f"Batch insert stored {inserted} of {len(candidates)} products"
            self._abort(job, message)
            raise ImportPipelineError(message, job.job_id)
        return inserted

    def _finalize(
        self,
        job: ImportJobStateMachine,
        success_count: int,
        rejected_rows: int,
        errors: list[RowError],
    ) -> None:
        completed_at = datetime.now(timezone.utc)
        last_error: Exception | None = None

        for attempt in range(1, self.finalize_attempts + 1):
            try:
                job.finalize(success_count, rejected_rows, errors, completed_at)
                return
            except JobStateError as exc:
                last_error = exc
                break
            except Exception as exc:
                last_error = exc
                logger.warning(
                    f"Finalizing import job {job.job_id} failed "
                    f"(attempt {attempt}/{self.finalize_attempts}): {exc}"
                )

        self._abort(job, f"Failed to record import result: {last_error}")
        raise ImportPipelineError("Failed to record import result", job.job_id) from last_error

    def _abort(self, job: ImportJobStateMachine, message: str) -> None:
        logger.error(f"Import job {job.job_id} failed: {message}")
        try:
            job.fail(message)
        except JobStateError as exc:
            logger.error(f"Could not mark import job {job.job_id} as failed: {exc}")

    def _notify_catalog_changed(self, job_id: str) -> None:
        if self.on_catalog_changed is None:
            return
        try:
            self.on_catalog_changed(list(CATALOG_TAGS))
        except Exception as exc:
            logger.warning(
                f"Storefront revalidation signal for import job {job_id} failed: {exc}"
            )
