"""Bulk import — read spreadsheet rows, build records, skip bad rows.

Rows are plain ``{header: value}`` dicts. A row builder raises
:class:`ImportValidationError` to reject a row; rejected rows are logged and
skipped. The callers send the surviving records as one batched insert and
only report how many rows made it through.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from datetime import date, datetime
from pathlib import PurePath
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional, TypeVar

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from workdesk.common.exceptions import ImportValidationError, ValidationException

if TYPE_CHECKING:
    from workdesk.notifications.service import Notifier

logger = logging.getLogger(__name__)

R = TypeVar("R")

SPREADSHEET_SUFFIXES = (".xlsx", ".xlsm")
UNREADABLE_FILE = "Could not read the uploaded file."

# A non-UTF-8 CSV raises UnicodeDecodeError (a ValueError); a corrupt or renamed
# workbook raises BadZipFile, InvalidFileException or KeyError.
_READ_ERRORS = (
    csv.Error,
    zipfile.BadZipFile,
    InvalidFileException,
    KeyError,
    ValueError,
    OSError,
)


# ── Reading ─────────────────────────────────────────────────────────

def read_rows(
    filename: str,
    content: bytes,
    notifier: Optional[Notifier] = None,
) -> list[dict[str, Any]]:
    """Parse an uploaded ``.csv`` / ``.xlsx`` file into row dicts keyed by header.

    An unsupported or unreadable file raises :class:`ValidationException`,
    toasted as "Import Failed" when *notifier* is given.
    """
    suffix = PurePath(filename or "").suffix.lower()
    try:
        if suffix == ".csv":
            return _read_csv(content)
        if suffix in SPREADSHEET_SUFFIXES:
            return _read_workbook(content)
        message = f"Unsupported file type '{suffix or filename}'. Upload a .csv or .xlsx file."
    except _READ_ERRORS as exc:
        logger.warning("Unreadable import file %r: %s", filename, exc)
        message = UNREADABLE_FILE

    if notifier is not None:
        notifier.push("Import Failed", message, variant="destructive")
    raise ValidationException({"file": [message]})


def _read_csv(content: bytes) -> list[dict[str, Any]]:
    text = content.decode("utf-8-sig")
    reader = csv.DictReader(io.StringIO(text))
    return [
        {k.strip(): v for k, v in row.items() if k}
        for row in reader
        if any((v or "").strip() for v in row.values() if isinstance(v, str))
    ]


def _read_workbook(content: bytes) -> list[dict[str, Any]]:
    workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        names = [str(h).strip() if h is not None else "" for h in header]
        records = []
        for values in rows:
            if all(v is None or v == "" for v in values):
                continue
            records.append({n: v for n, v in zip(names, values) if n})
        return records
    finally:
        workbook.close()


# ── Cell helpers ────────────────────────────────────────────────────

def pick(row: dict[str, Any], *names: str) -> Optional[Any]:
    """First non-blank value among the alternative header spellings *names*."""
    for name in names:
        value = row.get(name)
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            return value
    return None


def as_date(value: Any, row_number: int, column: str) -> date:
    """Spreadsheet cell → ``date``; workbooks hand back datetimes, CSV hands back ISO text."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        raise ImportValidationError(row_number, f"missing {column}")
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ImportValidationError(row_number, f"invalid {column} {value!r}") from None


# ── Applying ────────────────────────────────────────────────────────

async def collect(
    rows: Iterable[dict[str, Any]],
    build: Callable[[int, dict[str, Any]], Awaitable[R]],
) -> tuple[list[R], int]:
    """Run *build* on every row (numbered from 1); return the built records and the skip count."""
    built: list[R] = []
    skipped = 0
    for number, row in enumerate(rows, start=1):
        try:
            built.append(await build(number, row))
        except ImportValidationError as exc:
            skipped += 1
            logger.info("Import skipped %s", exc)
    return built, skipped
