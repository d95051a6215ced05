"""Decode uploaded product spreadsheets into ``RawRow`` records."""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.core.exceptions import InputShapeError
from app.utils.row_validator import IMPORT_COLUMNS, RawRow, normalize_header

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = (".xlsx", ".xlsm")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def is_supported_filename(filename: str | None) -> bool:
    return bool(filename) and filename.lower().endswith(SPREADSHEET_EXTENSIONS)


def read_product_rows(content: bytes) -> list[RawRow]:
    """Return the data rows of the first worksheet, header row excluded.

    Fully blank rows are skipped, so the n-th returned row is the n-th
    non-blank data row of the sheet.

    Raises:
        InputShapeError: unreadable workbook, no worksheet or no header row.
    """
    if not content:
        raise InputShapeError("The uploaded file is empty")

    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise InputShapeError(f"Could not read the spreadsheet: {e}") from e

    try:
        if not workbook.sheetnames:
            raise InputShapeError("No sheets found in the file")
        worksheet = workbook[workbook.sheetnames[0]]

        values_iter = worksheet.iter_rows(values_only=True)
        header_cells = next(values_iter, None)
        if header_cells is None or all(cell is None for cell in header_cells):
            raise InputShapeError("No header row found in the first sheet")

        headers = [normalize_header(cell) for cell in header_cells]
        unknown = [h for h in headers if h and h not in IMPORT_COLUMNS]
        if unknown:
            logger.debug(f"Ignoring unknown spreadsheet columns: {', '.join(unknown)}")

        rows: list[RawRow] = []
        for values in values_iter:
            raw_row = RawRow.from_cells(
                {header: value for header, value in zip(headers, values) if header}
            )
            if raw_row.is_blank():
                continue
            rows.append(raw_row)
    finally:
        workbook.close()

    logger.info(f"Decoded {len(rows)} data rows from sheet '{worksheet.title}'")
    return rows
