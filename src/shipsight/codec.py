"""Ledger workbook codec.

The ledger is a single-sheet xlsx workbook whose first row is the fixed
header ``Date, StartTime, EndTime, OrderID, Mode, File``. Decoding is
lenient about columns: missing columns read as empty strings and unknown
columns are ignored, so a workbook edited by hand still loads.
"""

import io
import logging
import zipfile
import zlib
from datetime import date, datetime, time
from typing import Iterable, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException

from .errors import LedgerFormatError
from .models.ledger import LEDGER_HEADER, LedgerRow, Mode

logger = logging.getLogger(__name__)

SHEET_TITLE = "Log"

_FIELD_BY_COLUMN = {
    "Date": "date",
    "StartTime": "start_time",
    "EndTime": "end_time",
    "OrderID": "identifier",
    "Mode": "mode",
    "File": "file_path",
}


def _cell_text(value) -> str:
    """Render a cell value the way it would have been typed."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet apps turn numeric barcodes into floats
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value).strip()


def _parse_mode(raw: str) -> Optional[Mode]:
    text = raw.strip().lower()
    if not text:
        return Mode.FORWARD
    try:
        return Mode(text)
    except ValueError:
        return None


def _read_rows(sheet) -> list[LedgerRow]:
    rows_iter = sheet.iter_rows(values_only=True)

    header = next(rows_iter, None)
    if header is None:
        return []

    columns: dict[int, str] = {}
    for index, name in enumerate(header):
        field = _FIELD_BY_COLUMN.get(_cell_text(name))
        if field and field not in columns.values():
            columns[index] = field

    rows: list[LedgerRow] = []
    skipped = 0
    for values in rows_iter:
        fields = {field: "" for field in _FIELD_BY_COLUMN.values()}
        for index, field in columns.items():
            if index < len(values):
                fields[field] = _cell_text(values[index])

        if not any(fields.values()):
            continue

        mode = _parse_mode(fields.pop("mode"))
        if not fields["identifier"] or mode is None:
            skipped += 1
            continue

        rows.append(LedgerRow(mode=mode, **fields))

    if skipped:
        logger.warning(f"Skipped {skipped} malformed ledger row(s)")
    return rows


def decode(data: Optional[bytes]) -> list[LedgerRow]:
    """Decode workbook bytes into ledger rows, in sheet order.

    Args:
        data: Raw workbook bytes; None or empty means "no ledger yet"

    Returns:
        Rows in file order. Rows without an OrderID or with an unknown Mode
        are skipped with a warning.

    Raises:
        LedgerFormatError: If the bytes are not a readable workbook
    """
    if not data:
        return []

    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, SyntaxError, KeyError, ValueError, OSError) as e:
        raise LedgerFormatError(f"Unreadable ledger workbook: {e}") from e

    try:
        if not workbook.sheetnames:
            return []
        # Read-only sheets parse their XML lazily, so damage surfaces here
        return _read_rows(workbook[workbook.sheetnames[0]])
    except (SyntaxError, zipfile.BadZipFile, zlib.error, KeyError, ValueError, OSError) as e:
        # ElementTree and lxml parse errors both derive from SyntaxError
        raise LedgerFormatError(f"Unreadable ledger sheet: {e}") from e
    finally:
        workbook.close()


def _sanitize(value: str):
    if value == "":
        return None
    return ILLEGAL_CHARACTERS_RE.sub("", value)


def encode(rows: Iterable[LedgerRow]) -> bytes:
    """Encode ledger rows as a fresh workbook with the fixed header row."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    sheet.append(list(LEDGER_HEADER))

    for row in rows:
        sheet.append([_sanitize(value) for value in row.as_cells()])

    # Barcodes such as "=12" must stay text, not turn into formulas
    for cells in sheet.iter_rows(min_row=2):
        for cell in cells:
            if cell.data_type == "f":
                cell.data_type = "s"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def empty_ledger() -> bytes:
    """Header-only workbook written when a location has no ledger yet."""
    return encode([])
