"""Validate decoded spreadsheet rows against the product import schema."""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic_core import PydanticCustomError

from app.core.exceptions import RowValidationError
from app.services.import_types import RowError

IMPORT_COLUMNS = (
    "name",
    "slug",
    "catalog_name",
    "description",
    "short_description",
    "base_price",
    "is_active",
    "dimensions_width",
    "dimensions_height",
    "dimensions_depth",
    "dimensions_unit",
)
REQUIRED_COLUMNS = ("name", "slug", "base_price", "is_active")
DIMENSION_COLUMNS = (
    "dimensions_width",
    "dimensions_height",
    "dimensions_depth",
    "dimensions_unit",
)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
TRUTHY_TOKENS = frozenset({"true", "yes", "y", "1"})
FALSY_TOKENS = frozenset({"false", "no", "n", "0"})
PRICE_PLACES = Decimal("0.01")
# products.base_price is NUMERIC(10, 2)
MAX_PRICE = Decimal("100000000")
DIMENSION_PLACES = Decimal("0.001")
MAX_DIMENSION = Decimal("1000000")

DIMENSIONS_MESSAGE = (
    "If any dimension field is provided, all dimension fields "
    "(width, height, depth, unit) are required"
)


def normalize_header(header: Any) -> str:
    """Map a header cell to the column key used by ``RawRow``."""
    if header is None:
        return ""
    return str(header).strip().lower()


def cell_to_text(value: Any) -> str | None:
    """Convert a decoded cell value to trimmed text; blank cells become ``None``."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    text = str(value).replace("\xa0", " ").strip()
    return text or None


class RawRow(BaseModel):
    """One decoded row: known column keys mapped to optional cell text."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None
    slug: str | None = None
    catalog_name: str | None = None
    description: str | None = None
    short_description: str | None = None
    base_price: str | None = None
    is_active: str | None = None
    dimensions_width: str | None = None
    dimensions_height: str | None = None
    dimensions_depth: str | None = None
    dimensions_unit: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str | None:
        return cell_to_text(value)

    @classmethod
    def from_cells(cls, cells: Mapping[Any, Any]) -> RawRow:
        """Build a row from a header -> cell mapping, dropping unknown columns."""
        values: dict[str, Any] = {}
        for header, value in cells.items():
            column = normalize_header(header)
            if column in IMPORT_COLUMNS:
                values[column] = value
        return cls(**values)

    def is_blank(self) -> bool:
        return all(getattr(self, column) is None for column in IMPORT_COLUMNS)


def _non_negative_decimal(value: str, label: str) -> Decimal:
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise PydanticCustomError("decimal_parsing", f"{label} must be a number")
    if not number.is_finite():
        raise PydanticCustomError("decimal_parsing", f"{label} must be a number")
    if number < 0:
        raise PydanticCustomError(
            "greater_than_equal", f"{label} must be a non-negative number"
        )
    return number


class ProductImportRow(BaseModel):
    """Schema-valid import row with coerced types."""

    model_config = ConfigDict(frozen=True)

    name: str
    slug: str
    catalog_name: str | None = None
    description: str | None = None
    short_description: str | None = None
    base_price: Decimal
    is_active: bool
    dimensions_width: Decimal | None = None
    dimensions_height: Decimal | None = None
    dimensions_depth: Decimal | None = None
    dimensions_unit: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _check_name(cls, value: str | None) -> str:
        if not value:
            raise PydanticCustomError("missing", "Name is required")
        return value

    @field_validator("slug", mode="before")
    @classmethod
    def _check_slug(cls, value: str | None) -> str:
        if not value:
            raise PydanticCustomError("missing", "Slug is required")
        if not SLUG_PATTERN.match(value):
            raise PydanticCustomError(
                "string_pattern_mismatch",
                "Slug must be lowercase, numbers and hyphens only",
            )
        return value

    @field_validator("base_price", mode="before")
    @classmethod
    def _check_price(cls, value: str | None) -> Decimal:
        if value is None:
            raise PydanticCustomError("missing", "Price is required")
        price = _non_negative_decimal(value, "Price")
        if price >= MAX_PRICE:
            raise PydanticCustomError("less_than", "Price must be less than 100000000")
        if price != price.quantize(PRICE_PLACES):
            raise PydanticCustomError(
                "decimal_max_places", "Price must have at most 2 decimal places"
            )
        return price.quantize(PRICE_PLACES)

    @field_validator("is_active", mode="before")
    @classmethod
    def _check_active(cls, value: str | None) -> bool:
        if value is None:
            raise PydanticCustomError("missing", "Active flag is required")
        token = value.lower()
        if token in TRUTHY_TOKENS:
            return True
        if token in FALSY_TOKENS:
            return False
        raise PydanticCustomError(
            "bool_parsing", "Active flag must be one of: true, false, yes, no, 1, 0"
        )

    @field_validator(
        "dimensions_width", "dimensions_height", "dimensions_depth", mode="before"
    )
    @classmethod
    def _check_dimension(
        cls, value: str | None, info: ValidationInfo
    ) -> Decimal | None:
        if value is None:
            return None
        label = info.field_name.removeprefix("dimensions_").capitalize()
        number = _non_negative_decimal(value, label)
        if number >= MAX_DIMENSION:
            raise PydanticCustomError("less_than", f"{label} must be less than 1000000")
        if number != number.quantize(DIMENSION_PLACES):
            raise PydanticCustomError(
                "decimal_max_places", f"{label} must have at most 3 decimal places"
            )
        return number


def check_dimension_set(raw_row: RawRow) -> str | None:
    """Return an error message when only some of the dimension cells are filled."""
    present = [getattr(raw_row, column) is not None for column in DIMENSION_COLUMNS]
    if any(present) and not all(present):
        return DIMENSIONS_MESSAGE
    return None


def validate_row(raw_row: RawRow, row_number: int) -> ProductImportRow:
    """Validate one decoded row, collecting every schema error before raising.

    Raises:
        RowValidationError: with all ``RowError`` entries found for the row.
    """
    errors: list[RowError] = []
    parsed: ProductImportRow | None = None

    try:
        parsed = ProductImportRow.model_validate(raw_row.model_dump())
    except ValidationError as exc:
        for issue in exc.errors():
            errors.append(
                RowError(
                    row=row_number,
                    field=".".join(str(part) for part in issue["loc"]),
                    message=issue["msg"],
                )
            )

    dimension_error = check_dimension_set(raw_row)
    if dimension_error:
        errors.append(RowError(row=row_number, field="dimensions", message=dimension_error))

    if errors:
        raise RowValidationError(errors)
    return parsed
