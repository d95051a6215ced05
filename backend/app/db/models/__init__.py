"""Database models package."""
from app.db.models.catalog import Catalog
from app.db.models.product import Product
from app.db.models.import_job import ImportJob, ImportJobStatus

__all__ = ["Catalog", "Product", "ImportJob", "ImportJobStatus"]
