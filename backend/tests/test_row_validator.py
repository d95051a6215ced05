from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import RowValidationError
from app.utils.row_validator import (
    DIMENSIONS_MESSAGE,
    RawRow,
    cell_to_text,
    normalize_header,
    validate_row,
)


def _errors(raw_row, row_number=2):
    with pytest.raises(RowValidationError) as exc_info:
        validate_row(raw_row, row_number)
    return [(e.field, e.message) for e in exc_info.value.errors]


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("  ", None),
        ("  Oak\xa0Chair ", "Oak Chair"),
        (True, "true"),
        (False, "false"),
        (12, "12"),
        (12.0, "12"),
        (19.99, "19.99"),
        (Decimal("5.50"), "5.50"),
        (date(2024, 5, 1), "2024-05-01"),
    ],
)
def test_cell_to_text(value, expected):
    assert cell_to_text(value) == expected


def test_normalize_header():
    assert normalize_header(" Base_Price ") == "base_price"
    assert normalize_header(None) == ""


def test_raw_row_ignores_unknown_columns_and_blank_cells():
    row = RawRow.from_cells({"Name": "Lamp", "Colour": "red", "slug": "  "})
    assert row.name == "Lamp"
    assert row.slug is None
    assert not row.is_blank()
    assert RawRow.from_cells({"name": None, "extra": "x"}).is_blank()


def test_valid_row_is_coerced(row_factory):
    parsed = validate_row(
        row_factory(
            base_price=19.9,
            is_active="Yes",
            catalog_name="Chairs",
            dimensions_width="40",
            dimensions_height=80,
            dimensions_depth="35.5",
            dimensions_unit="cm",
        ),
        row_number=2,
    )
    assert parsed.base_price == Decimal("19.90")
    assert parsed.is_active is True
    assert parsed.catalog_name == "Chairs"
    assert parsed.dimensions_depth == Decimal("35.5")


@pytest.mark.parametrize("token, expected", [("0", False), ("N", False), ("y", True), (1, True)])
def test_active_flag_tokens(row_factory, token, expected):
    assert validate_row(row_factory(is_active=token), 3).is_active is expected


def test_missing_required_fields_are_all_reported():
    errors = _errors(RawRow.from_cells({"description": "orphan"}))
    assert errors == [
        ("name", "Name is required"),
        ("slug", "Slug is required"),
        ("base_price", "Price is required"),
        ("is_active", "Active flag is required"),
    ]


@pytest.mark.parametrize(
    "price, message",
    [
        ("abc", "Price must be a number"),
        ("NaN", "Price must be a number"),
        ("-1", "Price must be a non-negative number"),
        ("12.345", "Price must have at most 2 decimal places"),
        ("100000000", "Price must be less than 100000000"),
    ],
)
def test_invalid_price(row_factory, price, message):
    assert _errors(row_factory(base_price=price)) == [("base_price", message)]


@pytest.mark.parametrize("slug", ["Oak-Chair", "oak chair", "oak--chair", "-oak", "oak_chair"])
def test_invalid_slug(row_factory, slug):
    assert _errors(row_factory(slug=slug)) == [
        ("slug", "Slug must be lowercase, numbers and hyphens only")
    ]


def test_invalid_active_flag(row_factory):
    assert _errors(row_factory(is_active="maybe")) == [
        ("is_active", "Active flag must be one of: true, false, yes, no, 1, 0")
    ]


def test_partial_dimensions_yield_single_error(row_factory):
    raw_row = row_factory(
        dimensions_width="10", dimensions_height="20", dimensions_depth="30"
    )
    assert _errors(raw_row, row_number=7) == [("dimensions", DIMENSIONS_MESSAGE)]


def test_negative_dimension_is_reported_on_its_field(row_factory):
    raw_row = row_factory(
        dimensions_width="-1",
        dimensions_height="20",
        dimensions_depth="30",
        dimensions_unit="cm",
    )
    assert _errors(raw_row) == [
        ("dimensions_width", "Width must be a non-negative number")
    ]


def test_errors_carry_row_number(row_factory):
    with pytest.raises(RowValidationError) as exc_info:
        validate_row(row_factory(name=None), row_number=42)
    assert [e.row for e in exc_info.value.errors] == [42]


@pytest.mark.parametrize(
    "width, message",
    [
        ("1e5000", "Width must be less than 1000000"),
        ("1e999999999", "Width must be less than 1000000"),
        ("1000000", "Width must be less than 1000000"),
        ("1e-400", "Width must have at most 3 decimal places"),
        ("0.0005", "Width must have at most 3 decimal places"),
    ],
)
def test_dimension_bounds(row_factory, width, message):
    raw_row = row_factory(
        dimensions_width=width,
        dimensions_height="20",
        dimensions_depth="30",
        dimensions_unit="cm",
    )
    assert _errors(raw_row) == [("dimensions_width", message)]


def test_dimension_precision_within_bounds(row_factory):
    parsed = validate_row(
        row_factory(
            dimensions_width="999999.999",
            dimensions_height="0.125",
            dimensions_depth="1e2",
            dimensions_unit="mm",
        ),
        row_number=2,
    )
    assert parsed.dimensions_width == Decimal("999999.999")
    assert parsed.dimensions_depth == Decimal("100")
