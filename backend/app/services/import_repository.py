"""SQLAlchemy-backed storage gateway used by the product import pipeline."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models.catalog import Catalog
from app.db.models.import_job import ImportJob
from app.db.models.product import Product
from app.services.import_types import CandidateProduct

logger = logging.getLogger(__name__)


class SqlAlchemyImportRepository:
    """Reference lookups, job writes and the batch product insert.

    Every write commits on its own so checkpoints are visible to other
    sessions while the import is still running.
    """

    def __init__(self, db: Session):
        self.db = db

    def load_catalogs(self, level: int) -> list[tuple[str, str]]:
        rows = self.db.execute(
            select(Catalog.name, Catalog.id)
            .where(Catalog.level == level)
            .order_by(Catalog.created_at, Catalog.id)
        ).all()
        return [(name, catalog_id) for name, catalog_id in rows]

    def load_catalog_names(self, level: int) -> list[str]:
        return [name for name, _ in self.load_catalogs(level)]

    def load_existing_slugs(self) -> set[str]:
        return set(self.db.scalars(select(Product.slug)).all())

    def create_job(self, **fields: Any) -> tuple[str, datetime | None]:
        job = ImportJob(**fields)
        try:
            self.db.add(job)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error creating import job: {e}", exc_info=True)
            raise
        return job.id, job.created_at

    def update_job(self, job_id: str, **fields: Any) -> None:
        try:
            result = self.db.execute(
                update(ImportJob).where(ImportJob.id == job_id).values(**fields)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error updating import job {job_id}: {e}", exc_info=True)
            raise
        if result.rowcount == 0:
            raise LookupError(f"Import job {job_id} not found")

    def insert_products(
        self, candidates: Sequence[CandidateProduct], created_by: str | None = None
    ) -> int:
        """Insert all candidates in one transaction; nothing is kept on failure."""
        if not candidates:
            return 0
        products = [
            Product(**candidate.to_record(), created_by=created_by)
            for candidate in candidates
        ]
        try:
            self.db.add_all(products)
            self.db.flush()
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error during batch product insert: {e}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error during batch product insert: {e}", exc_info=True)
            raise
        return len(products)
