"""SQLAlchemy model for product records."""

import uuid

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import DateTime

from app.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    catalog_id = Column(String(36), ForeignKey("catalogs.id", ondelete="SET NULL"))
    description = Column(Text)
    short_description = Column(Text)
    base_price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # {width, height, depth, unit} or NULL, never partial
    dimensions = Column(JSON().with_variant(JSONB(), "postgresql"))
    created_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
