"""Generate the downloadable product import template workbook."""

from __future__ import annotations

import io
from collections.abc import Sequence

from openpyxl import Workbook

from app.utils.row_validator import IMPORT_COLUMNS

TEMPLATE_FILENAME = "product-import-template.xlsx"
PLACEHOLDER_CATALOG = "Subcatalog Name"
WIDE_COLUMNS = {"description": 40, "short_description": 30}


def _example_row(catalog_name: str) -> dict[str, object]:
    return {
        "name": "Example Product Name",
        "slug": "example-product-name",
        "catalog_name": catalog_name,
        "description": "Full product description here",
        "short_description": "Short description",
        "base_price": 199.99,
        "is_active": "true",
        "dimensions_width": 100,
        "dimensions_height": 50,
        "dimensions_depth": 30,
        "dimensions_unit": "cm",
    }


def _instructions(catalog_names: Sequence[str]) -> list[str]:
    lines = [
        "Product Import Template Instructions",
        "",
        "Required Fields:",
        "- name: Product name",
        "- slug: URL-friendly identifier, lowercase letters, numbers and hyphens",
        "- base_price: Product price, non-negative number with up to 2 decimals",
        "- is_active: true/false (also accepts yes/no, y/n, 1/0)",
        "",
        "Optional Fields:",
        "- catalog_name: Must match an existing subcatalog name (case-insensitive)",
        "- description: Full product description",
        "- short_description: Brief summary",
        "- dimensions_*: If any dimension is provided, all 4 fields are required",
        "- dimensions_width/height/depth: non-negative, below 1000000, up to 3 decimals",
        "",
        "Available Catalogs:",
    ]
    lines.extend(f"- {name}" for name in catalog_names)
    lines.extend(
        [
            "",
            "Notes:",
            "- Images can be added via the product edit page after import",
            "- Duplicate slugs will cause validation errors",
        ]
    )
    return lines


def build_import_template(catalog_names: Sequence[str]) -> bytes:
    """Return an xlsx with a ``Products`` sheet and an ``Instructions`` sheet."""
    workbook = Workbook()

    products = workbook.active
    products.title = "Products"
    products.append(list(IMPORT_COLUMNS))
    example = _example_row(catalog_names[0] if catalog_names else PLACEHOLDER_CATALOG)
    products.append([example[column] for column in IMPORT_COLUMNS])
    for index, column in enumerate(IMPORT_COLUMNS, start=1):
        letter = products.cell(row=1, column=index).column_letter
        products.column_dimensions[letter].width = WIDE_COLUMNS.get(column, 20)

    instructions = workbook.create_sheet("Instructions")
    for line in _instructions(catalog_names):
        instructions.append([line])
    instructions.column_dimensions["A"].width = 60

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
