"""Tests for the spreadsheet row source and result export."""

import csv
from datetime import datetime

import openpyxl
import pytest

from erpfill.errors import InputFileError, SpreadsheetReadError
from erpfill.models import RECORD_FIELDS
from erpfill.runtime.tools import excel
from erpfill.runtime.tools.excel import export_rows, normalize_row, read_records, read_rows


def test_one_record_per_row_regardless_of_header_case(make_xlsx):
    path = make_xlsx(
        ["USERNAME", "password", "language", "nextpage"],
        [["alice", "pw1", "EN", "https://erp.test/a"], ["bob", "pw2", "", ""]],
    )
    records = read_records(path)
    assert len(records) == 2
    assert records[0]["UserName"] == "alice"
    assert records[0]["Password"] == "pw1"
    assert records[0]["NextPage"] == "https://erp.test/a"
    assert records[1]["Language"] == ""
    for record in records:
        assert set(record) == set(RECORD_FIELDS)


def test_row_numbers_follow_the_sheet(make_xlsx):
    path = make_xlsx(["UserName"], [["a"], ["b"]])
    assert [r.row for r in read_records(path)] == [2, 3]


def test_aliases_and_unknown_headers(make_xlsx):
    path = make_xlsx(
        ["user", "Password", "captcha", "loginDate", "Colour", "AdmnNo", "FolioNo"],
        [["carol", "pw", "x7k2", "2024-05-03", "blue", "101165", "42"]],
    )
    record = read_records(path)[0]
    assert record["UserName"] == "carol"
    assert record["ValidateCaptcha"] == "x7k2"
    assert record["LoginDataTime"] == "2024-05-03"
    assert record["Admissionno"] == "101165"
    assert record["LedgerFolioNo"] == "42"
    assert "Colour" not in record


def test_cells_are_stringified(make_xlsx):
    path = make_xlsx(
        ["UserName", "Password", "Amount", "LoginDataTime"],
        [["dave", 1234, 100000.0, datetime(2024, 5, 3)]],
    )
    record = read_records(path)[0]
    assert record["Password"] == "1234"
    assert record["Amount"] == "100000"
    assert record["LoginDataTime"] == "2024-05-03"


def test_blank_rows_are_skipped(make_xlsx):
    path = make_xlsx(["UserName", "Password"], [["a", "1"], [None, None], ["b", "2"]])
    records = read_records(path)
    assert [r["UserName"] for r in records] == ["a", "b"]
    assert [r.row for r in records] == [2, 4]


def test_records_are_immutable(make_xlsx):
    record = read_records(make_xlsx(["UserName"], [["a"]]))[0]
    with pytest.raises(TypeError):
        record.data["UserName"] = "b"


def test_csv_input_uses_pandas_fallback(tmp_path):
    path = tmp_path / "input.csv"
    path.write_text("UserName,Password,Amount\nerin,pw,00120\n", encoding="utf-8")
    records = read_records(path)
    assert len(records) == 1
    assert records[0]["UserName"] == "erin"
    assert records[0]["Amount"] == "00120"


def test_secondary_parser_runs_when_primary_fails(make_xlsx, monkeypatch):
    path = make_xlsx(["UserName"], [["a"]])
    calls = []

    def broken(p):
        calls.append("openpyxl")
        raise ValueError("corrupt workbook")

    def fallback(p):
        calls.append("pandas")
        return [{"UserName": "from-pandas"}]

    monkeypatch.setattr(excel, "_read_with_openpyxl", broken)
    monkeypatch.setattr(excel, "_read_with_pandas", fallback)
    records = read_records(path)
    assert calls == ["openpyxl", "pandas"]
    assert records[0]["UserName"] == "from-pandas"


def test_both_parsers_failing_is_fatal(tmp_path):
    path = tmp_path / "garbage.xlsx"
    path.write_bytes(b"this is not a spreadsheet \x00\x01\x02")
    with pytest.raises(SpreadsheetReadError) as exc_info:
        read_rows(path)
    assert "both" in str(exc_info.value)


def test_missing_file_is_reported_before_parsing(tmp_path, monkeypatch):
    monkeypatch.setattr(excel, "_read_with_openpyxl", lambda p: pytest.fail("parser called"))
    with pytest.raises(InputFileError) as exc_info:
        read_records(tmp_path / "nope.xlsx")
    assert "not found" in str(exc_info.value)


def test_empty_file_is_reported_before_parsing(tmp_path, monkeypatch):
    path = tmp_path / "empty.xlsx"
    path.write_bytes(b"")
    monkeypatch.setattr(excel, "_read_with_openpyxl", lambda p: pytest.fail("parser called"))
    with pytest.raises(InputFileError) as exc_info:
        read_records(path)
    assert "empty" in str(exc_info.value)


def test_read_rows_keeps_raw_headers(make_xlsx):
    path = make_xlsx(["Admissionno", "MoreDisbursementDetaos_LoanNo"], [["101165", "L-9"]])
    assert read_rows(path) == [{"Admissionno": "101165", "MoreDisbursementDetaos_LoanNo": "L-9"}]


def test_normalize_row_fills_missing_fields():
    out = normalize_row({"username": "x"})
    assert out["UserName"] == "x"
    assert out["Password"] == ""
    assert set(out) == set(RECORD_FIELDS)


def test_export_rows_csv_and_xlsx(tmp_path):
    rows = [{"rowIndex": 0, "ok": True, "filled": ["A", "B"]}, {"rowIndex": 1, "ok": False, "filled": []}]
    out_csv = export_rows(rows, tmp_path / "out" / "results.csv")
    with open(out_csv, newline="", encoding="utf-8") as f:
        written = list(csv.DictReader(f))
    assert written[0]["filled"] == "A; B"
    assert written[1]["ok"] == "False"

    out_xlsx = export_rows(rows, tmp_path / "results.xlsx")
    ws = openpyxl.load_workbook(out_xlsx).active
    assert [c.value for c in ws[1]] == ["rowIndex", "ok", "filled"]
    assert ws.max_row == 3
