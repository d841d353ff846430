"""CSV report export — build the file in memory and hand it back as a download."""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from fastapi.responses import Response
from pydantic import BaseModel


class CsvExport(BaseModel):
    filename: str
    content: str
    rows: int


def report_filename(prefix: str, today: Optional[date] = None) -> str:
    """``<prefix>_report_<YYYY-MM-DD>.csv``."""
    return f"{prefix}_report_{(today or date.today()).isoformat()}.csv"


def to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> tuple[str, int]:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    count = 0
    for row in rows:
        writer.writerow(row)
        count += 1
    return buffer.getvalue(), count


def csv_response(export: CsvExport) -> Response:
    return Response(
        content=export.content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
