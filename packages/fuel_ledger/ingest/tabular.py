"""Reading spreadsheet exports (``.xlsx`` and delimited text) into rows.

Both provider spreadsheets arrive either as Excel workbooks or as CSV with a
``;`` or ``,`` delimiter. Rows are returned as tuples of raw cell values;
workbook cells keep their native types (``datetime``, ``float``) so the value
parsers can short-circuit them.
"""

from __future__ import annotations

import csv
import io
import zipfile
from collections.abc import Iterator, Sequence
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import UnsupportedFileError
from ..logging_setup import get_logger
from ..models import RawRow
from .columns import ProviderColumns, map_headers, require_fields, score_header_row

_logger = get_logger("fuel_ledger.ingest.tabular")

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0"
_PDF_MAGIC = b"%PDF"

HEADER_SCAN_ROWS = 15

type Row = tuple[Any, ...]


def detect_delimiter(first_line: str) -> str:
    """Pick ``;`` or ``,`` by majority on the first line (tabs when dominant)."""

    semicolons = first_line.count(";")
    commas = first_line.count(",")
    tabs = first_line.count("\t")
    if tabs > semicolons and tabs > commas:
        return "\t"
    return ";" if semicolons > commas else ","


def _decode(file_bytes: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1250"):
        try:
            return file_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    return file_bytes.decode("latin-1")


def _read_xlsx(file_bytes: bytes) -> list[Row]:
    try:
        wb = load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise UnsupportedFileError(f"cannot open workbook: {e}") from e
    try:
        ws = wb.worksheets[0]
        return [tuple(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _read_delimited(file_bytes: bytes) -> list[Row]:
    text = _decode(file_bytes)
    first_line = text.split("\n", 1)[0]
    delimiter = detect_delimiter(first_line)
    _logger.debug(
        "detected CSV delimiter %r (semicolons=%d, commas=%d)",
        delimiter,
        first_line.count(";"),
        first_line.count(","),
    )
    try:
        return [tuple(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    except csv.Error as e:
        raise UnsupportedFileError(f"cannot read delimited text: {e}") from e


def read_rows(file_bytes: bytes) -> list[Row]:
    """Return all rows of the first sheet (or of the delimited text)."""

    if not file_bytes:
        raise UnsupportedFileError("file is empty")
    if file_bytes.startswith(_ZIP_MAGIC):
        return _read_xlsx(file_bytes)
    if file_bytes.startswith(_OLE_MAGIC):
        raise UnsupportedFileError("legacy .xls workbooks are not supported; save as .xlsx")
    if file_bytes.startswith(_PDF_MAGIC):
        raise UnsupportedFileError("expected a spreadsheet, got a PDF")
    return _read_delimited(file_bytes)


def is_blank(row: Sequence[Any]) -> bool:
    return all(c is None or (isinstance(c, str) and not c.strip()) for c in row)


def locate_header_row(rows: Sequence[Row], columns: ProviderColumns) -> int:
    """Index of the header row within the first :data:`HEADER_SCAN_ROWS` rows.

    The first row satisfying every required field wins; otherwise the row
    satisfying the most. Defaults to the first non-blank row so the caller's
    required-field check reports what it actually saw.
    """

    best_index: int | None = None
    best_score = 0
    first_non_blank: int | None = None
    for index, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if is_blank(row):
            continue
        if first_non_blank is None:
            first_non_blank = index
        score = score_header_row(row, columns)
        if score == len(columns.required):
            return index
        if score > best_score:
            best_index, best_score = index, score
    if best_index is not None:
        return best_index
    return first_non_blank if first_non_blank is not None else 0


class Table:
    """A sheet with its header row located and mapped onto canonical fields."""

    def __init__(self, rows: Sequence[Row], columns: ProviderColumns) -> None:
        header_index = locate_header_row(rows, columns)
        header_row = rows[header_index] if rows else ()
        self.header_index = header_index
        self.headers: tuple[str, ...] = tuple(
            str(h).strip() if h is not None else "" for h in header_row
        )
        self.mapping = map_headers(header_row, columns.as_table())
        require_fields(self.mapping, columns.required, header_row)
        self._rows = rows

    def data_rows(self) -> Iterator[tuple[int, Row]]:
        """Yield ``(row_number, row)`` after the header, skipping blank rows.

        ``row_number`` is 1-based, as shown in a spreadsheet application.
        """

        for index in range(self.header_index + 1, len(self._rows)):
            row = self._rows[index]
            if is_blank(row):
                continue
            yield index + 1, row

    def raw(self, row_number: int, row: Row) -> RawRow:
        return RawRow(row_number=row_number, headers=self.headers, cells=tuple(row))

    def value(self, raw: RawRow, field: str) -> Any:
        return raw.cell(self.mapping.get(field))


__all__ = [
    "HEADER_SCAN_ROWS",
    "Table",
    "detect_delimiter",
    "is_blank",
    "locate_header_row",
    "read_rows",
]
