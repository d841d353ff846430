"""Tests for common utilities — import readers, CSV export, query descriptors, error bodies.

Exercises the spreadsheet readers, row builders and CSV helpers shared by the
leave and employee pages, plus the RFC 7807 error responses.
"""

from __future__ import annotations

import io
import uuid
from datetime import date, datetime

import openpyxl
import pytest

from workdesk.common.exceptions import ImportValidationError, ValidationException
from workdesk.common.export import CsvExport, csv_response, report_filename, to_csv
from workdesk.common.importer import as_date, collect, pick, read_rows
from workdesk.notifications.service import Notifier
from workdesk.sync.remote import Query


# ═════════════════════════════════════════════════════════════════════
# IMPORT READERS
# ═════════════════════════════════════════════════════════════════════


class TestReadRows:
    """Tests for read_rows over CSV and workbook uploads."""

    def test_csv_rows_keyed_by_trimmed_header(self):
        """Header whitespace and a UTF-8 BOM are stripped; blank lines dropped."""
        content = "\ufeffemail , type\nada@workdesk.io,Sick\n,\n".encode("utf-8")
        rows = read_rows("leaves.CSV", content)
        assert rows == [{"email": "ada@workdesk.io", "type": "Sick"}]

    def test_workbook_rows_skip_blank_lines(self):
        """First sheet, first row as header, empty rows skipped."""
        workbook = openpyxl.Workbook()
        sheet = workbook.active
        sheet.append(["email", "start_date", None])
        sheet.append(["eve@workdesk.io", datetime(2024, 5, 6), "ignored"])
        sheet.append([None, None, None])
        buffer = io.BytesIO()
        workbook.save(buffer)

        rows = read_rows("leaves.xlsx", buffer.getvalue())

        assert rows == [{"email": "eve@workdesk.io", "start_date": datetime(2024, 5, 6)}]

    def test_unsupported_extension(self):
        with pytest.raises(ValidationException) as exc_info:
            read_rows("leaves.pdf", b"%PDF")
        assert "file" in exc_info.value.errors

    def test_corrupt_workbook_is_a_validation_error_and_toast(self):
        notifier = Notifier()
        with pytest.raises(ValidationException) as exc_info:
            read_rows("leaves.xlsx", b"PK\x03\x04 truncated", notifier)
        assert exc_info.value.errors == {"file": ["Could not read the uploaded file."]}
        assert notifier.latest().title == "Import Failed"


class TestCellHelpers:
    """Tests for pick / as_date."""

    def test_pick_takes_first_non_blank_alternative(self):
        row = {"type": "  ", "LeaveType": " Casual "}
        assert pick(row, "type", "LeaveType") == "Casual"
        assert pick(row, "missing") is None

    @pytest.mark.parametrize(
        "value, expected",
        [
            (datetime(2024, 5, 6, 9, 30), date(2024, 5, 6)),
            (date(2024, 5, 6), date(2024, 5, 6)),
            ("2024-05-06", date(2024, 5, 6)),
            ("2024-05-06T00:00:00", date(2024, 5, 6)),
        ],
    )
    def test_as_date_accepts_cells_and_iso_text(self, value, expected):
        assert as_date(value, 1, "start_date") == expected

    def test_as_date_rejects_missing_and_garbage(self):
        with pytest.raises(ImportValidationError, match="missing start_date"):
            as_date(None, 4, "start_date")
        with pytest.raises(ImportValidationError, match="row 5: invalid end_date"):
            as_date("next tuesday", 5, "end_date")


class TestCollect:
    """Tests for collect — rejected rows are counted, never raised."""

    async def test_rejected_rows_are_skipped(self):
        async def build(number, row):
            if not row.get("email"):
                raise ImportValidationError(number, "missing email")
            return (number, row["email"])

        built, skipped = await collect(
            [{"email": "a@x.io"}, {}, {"email": "c@x.io"}], build,
        )

        assert built == [(1, "a@x.io"), (3, "c@x.io")]
        assert skipped == 1

    async def test_other_errors_propagate(self):
        async def build(number, row):
            raise RuntimeError("database gone")

        with pytest.raises(RuntimeError):
            await collect([{"email": "a@x.io"}], build)


# ═════════════════════════════════════════════════════════════════════
# CSV EXPORT
# ═════════════════════════════════════════════════════════════════════


class TestCsvExport:
    def test_to_csv_quotes_and_counts(self):
        content, count = to_csv(["Employee", "Reason"], [["Ada", "Trip, family"], ["Eve", "N/A"]])
        assert content == 'Employee,Reason\nAda,"Trip, family"\nEve,N/A\n'
        assert count == 2

    def test_report_filename(self):
        assert report_filename("leaves", date(2024, 5, 6)) == "leaves_report_2024-05-06.csv"

    def test_response_is_a_download(self):
        resp = csv_response(CsvExport(filename="a_report_2024-05-06.csv", content="x\n", rows=0))
        assert resp.media_type == "text/csv; charset=utf-8"
        assert resp.headers["content-disposition"] == 'attachment; filename="a_report_2024-05-06.csv"'


# ═════════════════════════════════════════════════════════════════════
# QUERY DESCRIPTOR
# ═════════════════════════════════════════════════════════════════════


class TestQueryMatching:
    """Local evaluation mirrors what the row store would return."""

    def test_builders_do_not_mutate(self):
        base = Query().eq("status", "pending")
        narrowed = base.order_by("created_at").take(5)
        assert base.order == () and base.limit is None
        assert narrowed != base

    def test_uuid_and_date_values_compare_across_representations(self):
        profile_id = uuid.uuid4()
        window = Query().eq("profile_id", profile_id).gte("date", date(2024, 3, 1)).lte("date", date(2024, 3, 31))

        assert window.matches({"profile_id": str(profile_id), "date": "2024-03-15"})
        assert window.matches({"profile_id": profile_id, "date": date(2024, 3, 31)})
        assert not window.matches({"profile_id": profile_id, "date": date(2024, 4, 1)})
        assert not window.matches({"profile_id": profile_id, "date": None})

    def test_in_neq_and_search(self):
        query = Query().in_("status", ["pending", "overdue"]).neq("priority", "low").ilike("RePoRt", "title")
        assert query.matches({"status": "pending", "priority": "high", "title": "Weekly report"})
        assert not query.matches({"status": "completed", "priority": "high", "title": "report"})
        assert not query.matches({"status": "pending", "priority": "low", "title": "report"})
        assert not query.matches({"status": "pending", "priority": "high", "title": None})


# ═════════════════════════════════════════════════════════════════════
# ERROR RESPONSES
# ═════════════════════════════════════════════════════════════════════


class TestProblemDetails:
    async def test_request_validation_is_rfc7807(self, client, employee_headers):
        resp = await client.patch(
            "/api/v1/tasks/not-a-uuid", json={"title": "x"}, headers=employee_headers,
        )

        assert resp.status_code == 422
        body = resp.json()
        assert body["type"].endswith("/validation-error")
        assert body["instance"] == "/api/v1/tasks/not-a-uuid"
        assert "task_id" in body["errors"]

    async def test_not_found_is_rfc7807(self, client, employee_headers):
        task_id = uuid.uuid4()
        resp = await client.patch(f"/api/v1/tasks/{task_id}", json={"title": "x"}, headers=employee_headers)

        assert resp.status_code == 404
        assert resp.json()["title"] == "tasks Not Found"

    async def test_health_needs_no_auth(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.json()["status"] == "healthy"
        assert resp.json()["row_store"] == "sql"
