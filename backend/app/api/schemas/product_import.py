"""Pydantic models describing product import payloads."""

from typing import Literal

from pydantic import BaseModel, Field


class RowErrorSchema(BaseModel):
    row: int = Field(..., description="1-based spreadsheet row (header is row 1)")
    field: str = Field(..., description="Dotted path of the offending field")
    message: str


class ImportResultRead(BaseModel):
    job_id: str
    total_rows: int
    success_count: int
    error_count: int = Field(..., description="Number of rejected rows")
    errors: list[RowErrorSchema] | None = None


class ErrorReportRequest(BaseModel):
    errors: list[RowErrorSchema]
    format: Literal["xlsx", "csv"] = "xlsx"
