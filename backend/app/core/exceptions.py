"""Exception taxonomy for the product import pipeline.

Three families are kept apart so callers can tell "my data had bad rows"
from "the import itself broke":

* row-level rejections (``RowValidationError``, ``RowRejectedError``) are
  caught by the orchestrator and turned into ``RowError`` entries;
* ``InputShapeError`` is raised before any job record exists;
* ``ImportPipelineError`` aborts a running job and leaves it ``failed``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.import_types import RowError


class ProductImportError(Exception):
    """Base class for failures surfaced to the import caller."""


class InputShapeError(ProductImportError, ValueError):
    """Upload rejected before processing started (no sheet, no rows, unreadable)."""


class ImportPipelineError(ProductImportError):
    """Infrastructure fault that aborted a running import job."""

    def __init__(self, message: str, job_id: str | None = None):
        super().__init__(message)
        self.job_id = job_id


class ImportCancelledError(ImportPipelineError):
    """The import was cancelled (explicitly or by deadline) before completion."""


class JobStateError(ProductImportError):
    """Illegal transition or inconsistent write on an import job."""


class RowValidationError(ValueError):
    """A row failed schema validation; carries every error found for it."""

    def __init__(self, errors: list[RowError]):
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in errors))
        self.errors = errors


class RowRejectedError(ValueError):
    """A schema-valid row was rejected by a later stage (duplicate, reference)."""

    field: str = ""


class DuplicateSlugError(RowRejectedError):
    field = "slug"


class CatalogNotFoundError(RowRejectedError):
    field = "catalog_name"
