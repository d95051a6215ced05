"""Compile import row errors into a downloadable report and read it back."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from app.core.exceptions import InputShapeError
from app.services.import_types import RowError

ERROR_REPORT_HEADERS = ("Row", "Field", "Error Message")
ERROR_SHEET_TITLE = "Errors"
COLUMN_WIDTHS = (8, 24, 80)


@dataclass(frozen=True)
class ErrorReport:
    """Ordered ``Row | Field | Error Message`` table."""

    headers: tuple[str, ...]
    rows: tuple[tuple[int, str, str], ...]

    def to_csv(self) -> bytes:
        """Render as UTF-8 CSV; identical input always yields identical bytes."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(self.headers)
        writer.writerows(self.rows)
        return buffer.getvalue().encode("utf-8")

    def to_xlsx(self) -> bytes:
        """Render as a single-sheet workbook.

        The xlsx container stores its save time, so use ``to_csv`` when a
        byte-stable rendering is needed.
        """
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = ERROR_SHEET_TITLE
        worksheet.append(list(self.headers))
        for row_index, values in enumerate(self.rows, start=2):
            for column_index, value in enumerate(values, start=1):
                if isinstance(value, str):
                    # Control characters are not allowed in sheet XML.
                    value = ILLEGAL_CHARACTERS_RE.sub("", value)
                cell = worksheet.cell(row=row_index, column=column_index, value=value)
                # Messages echo user input; never let them become formulas.
                if isinstance(value, str) and cell.data_type == "f":
                    cell.data_type = "s"

        for column_index, width in enumerate(COLUMN_WIDTHS, start=1):
            letter = worksheet.cell(row=1, column=column_index).column_letter
            worksheet.column_dimensions[letter].width = width

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()


def _as_row_error(error: RowError | dict[str, Any]) -> RowError:
    return error if isinstance(error, RowError) else RowError.from_dict(error)


def compile_error_report(errors: Iterable[RowError | dict[str, Any]]) -> ErrorReport:
    """Sort errors by row number; errors of the same row keep detection order."""
    ordered = sorted((_as_row_error(e) for e in errors), key=lambda e: e.row)
    return ErrorReport(
        headers=ERROR_REPORT_HEADERS,
        rows=tuple((e.row, e.field, e.message) for e in ordered),
    )


def _parse_rows(records: Iterable[tuple[Any, ...]]) -> list[RowError]:
    records = iter(records)
    header = next(records, None)
    labels = tuple("" if h is None else str(h).strip() for h in (header or ())[:3])
    if labels != ERROR_REPORT_HEADERS:
        raise InputShapeError("Not an import error report (unexpected header row)")

    errors: list[RowError] = []
    for record in records:
        if not record or all(value in (None, "") for value in record):
            continue
        padded = list(record[:3]) + [None] * (3 - len(record[:3]))
        row, field, message = padded
        try:
            row_number = int(row)
        except (TypeError, ValueError) as e:
            raise InputShapeError(f"Invalid row number in error report: {row!r}") from e
        errors.append(
            RowError(
                row=row_number,
                field="" if field is None else str(field),
                message="" if message is None else str(message),
            )
        )
    return errors


def read_error_report(content: bytes) -> list[RowError]:
    """Parse an exported report (xlsx or csv) back into ``RowError`` entries."""
    if zipfile_signature(content):
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        try:
            worksheet = workbook[workbook.sheetnames[0]]
            return _parse_rows(worksheet.iter_rows(values_only=True))
        finally:
            workbook.close()

    text = content.decode("utf-8-sig")
    return _parse_rows(tuple(record) for record in csv.reader(io.StringIO(text)))


def zipfile_signature(content: bytes) -> bool:
    return content[:4] == b"PK\x03\x04"
