"""Value objects passed between the import pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class RowError:
    """One validation failure attributed to a spreadsheet row and field."""

    row: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "field": self.field, "message": self.message}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> RowError:
        return cls(
            row=int(payload["row"]),
            field=str(payload["field"]),
            message=str(payload["message"]),
        )


def _json_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


@dataclass(frozen=True)
class Dimensions:
    width: Decimal
    height: Decimal
    depth: Decimal
    unit: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": _json_number(self.width),
            "height": _json_number(self.height),
            "depth": _json_number(self.depth),
            "unit": self.unit,
        }


@dataclass(frozen=True)
class CandidateProduct:
    """A validated, resolved product ready for the batch insert."""

    name: str
    slug: str
    base_price: str
    is_active: bool
    description: str | None = None
    short_description: str | None = None
    catalog_id: str | None = None
    dimensions: Dimensions | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "short_description": self.short_description,
            "base_price": Decimal(self.base_price),
            "catalog_id": self.catalog_id,
            "is_active": self.is_active,
            "dimensions": self.dimensions.to_dict() if self.dimensions else None,
        }


@dataclass
class ImportResult:
    job_id: str
    total_rows: int
    success_count: int
    error_count: int
    errors: list[RowError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "total_rows": self.total_rows,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": [e.to_dict() for e in self.errors] if self.errors else None,
        }
