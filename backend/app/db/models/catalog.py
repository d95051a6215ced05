"""SQLAlchemy model for the two-level catalog tree."""

import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, Text, func
from sqlalchemy.types import DateTime

from app.db.base import Base


class Catalog(Base):
    __tablename__ = "catalogs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    parent_id = Column(String(36), ForeignKey("catalogs.id", ondelete="CASCADE"))
    # 1 = parent catalog, 2 = subcatalog
    level = Column(Integer, nullable=False, default=1, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
