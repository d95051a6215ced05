"""Import job status payloads."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.api.schemas.product_import import RowErrorSchema


class ImportJobRead(BaseModel):
    id: str
    status: str = Field(..., description="pending|processing|completed|failed")
    progress: float | None = Field(None, description="0-1 range for UI progress bars")
    message: str | None = None
    total_rows: int
    processed_rows: int
    success_count: int
    error_count: int
    errors: list[RowErrorSchema] | None = None
    error_message: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
