"""Spreadsheet tools: read input rows (openpyxl, pandas fallback), export result tables."""

import csv
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd

from erpfill.errors import InputFileError, SpreadsheetReadError
from erpfill.models import RECORD_FIELDS, Record

logger = logging.getLogger(__name__)

# Canonical field -> accepted header spellings (matched case-insensitively, first non-empty wins).
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "UserName": ("UserName", "username", "user"),
    "Password": ("Password",),
    "Language": ("Language",),
    "LoginDataTime": ("LoginDataTime", "loginDate", "LoginDate"),
    "ValidateCaptcha": ("ValidateCaptcha", "captcha"),
    "NextPage": ("NextPage",),
    "FAS_URL": ("FAS_URL", "FasUrl"),
    "Field1": ("Field1",),
    "Field2": ("Field2",),
    "Admissionno": ("Admissionno", "AdmnNo", "AdmissionNoPkey", "AdmissionNumber"),
    "Product": ("Product",),
    "Amount": ("Amount",),
    "BatchId": ("BatchId", "BatchIdString"),
    "LedgerFolioNo": ("LedgerFolioNo", "LedgerFolio", "FolioNo"),
}


def _cell_text(v: Any) -> str:
    """Stringify a cell: None -> '', whole floats without '.0', dates as ISO."""
    if v is None:
        return ""
    if isinstance(v, float) and pd.isna(v):
        return ""
    if isinstance(v, datetime):
        if (v.hour, v.minute, v.second, v.microsecond) == (0, 0, 0, 0):
            return v.date().isoformat()
        return v.isoformat(sep=" ")
    if isinstance(v, date):
        return v.isoformat()
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()


def _check_input(path: Path) -> Path:
    p = Path(path)
    if not p.is_absolute():
        p = Path.cwd() / p
    if not p.exists():
        raise InputFileError("Spreadsheet not found", path=str(p))
    if not p.is_file() or p.stat().st_size == 0:
        raise InputFileError("Spreadsheet is empty or not a regular file", path=str(p))
    return p


def _read_with_openpyxl(path: Path) -> list[dict[str, str]]:
    """First worksheet, header in row 1."""
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        if not wb.worksheets:
            return []
        rows = wb.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        headers = [_cell_text(h) for h in header]
        out = []
        for values in rows:
            out.append({h: _cell_text(v) for h, v in zip(headers, values) if h})
        return out
    finally:
        wb.close()


def _read_with_pandas(path: Path) -> list[dict[str, str]]:
    """Fallback for .xls, .csv and workbooks openpyxl rejects."""
    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    else:
        df = pd.read_excel(path, sheet_name=0, dtype=str, keep_default_na=False)
    headers = [str(c).strip() for c in df.columns]
    out = []
    for values in df.itertuples(index=False, name=None):
        out.append({h: _cell_text(v) for h, v in zip(headers, values) if h and not h.startswith("Unnamed:")})
    return out


def _load(path: Path) -> list[tuple[int, dict[str, str]]]:
    """(sheet row number, header -> text) for each non-blank data row of the first sheet.

    Raises InputFileError before parsing if the file is missing or empty, and
    SpreadsheetReadError if both openpyxl and pandas fail.
    """
    p = _check_input(path)
    try:
        rows = _read_with_openpyxl(p)
    except Exception as primary:
        logger.warning("openpyxl could not read %s (%s); trying pandas", p, primary)
        try:
            rows = _read_with_pandas(p)
        except Exception as secondary:
            raise SpreadsheetReadError(
                f"Failed to read with both openpyxl and pandas: {primary}; {secondary}",
                path=str(p),
            )
    return [(i, r) for i, r in enumerate(rows, start=2) if any(v for v in r.values())]


def read_rows(path: Path) -> list[dict[str, str]]:
    """Read the first sheet as header -> text dicts. Blank rows are dropped."""
    return [r for _, r in _load(path)]


def normalize_row(raw: dict[str, Any]) -> dict[str, str]:
    """Map arbitrary headers onto RECORD_FIELDS. Unknown headers are ignored; missing fields are ''."""
    lowered: dict[str, str] = {}
    for k, v in raw.items():
        key = str(k).strip().lower()
        if key and key not in lowered:
            lowered[key] = _cell_text(v)
    out = {}
    for name in RECORD_FIELDS:
        value = ""
        for alias in FIELD_ALIASES.get(name, (name,)):
            candidate = lowered.get(alias.lower(), "")
            if candidate:
                value = candidate
                break
        out[name] = value
    return out


def read_records(path: Path) -> list[Record]:
    """One Record per data row; row numbers match the spreadsheet (header is row 1)."""
    return [Record(normalize_row(raw), row=i) for i, raw in _load(path)]


def export_rows(rows: list[dict[str, Any]], path: Path) -> Path:
    """Write a table (list of dicts) to CSV or XLSX. Columns come from the first row."""
    p = Path(path)
    if not p.is_absolute():
        p = Path.cwd() / p
    p.parent.mkdir(parents=True, exist_ok=True)
    headers = list(rows[0].keys()) if rows else []
    if p.suffix.lower() == ".csv":
        with open(p, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=headers)
            w.writeheader()
            w.writerows({h: _export_value(row.get(h)) for h in headers} for row in rows)
        return p
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append([_export_value(row.get(h)) for h in headers])
    wb.save(p)
    return p


def _export_value(v: Any) -> Any:
    if isinstance(v, (list, tuple)):
        return "; ".join(str(x) for x in v)
    return v
