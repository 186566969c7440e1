import csv
import io
import logging
import re

import requests

from api._shared import HTTP_TIMEOUT_S, NO_CACHE_HEADERS, _normalize_header, pick_value
from api.errors import InvalidSheetUrl, SheetFetchError
from api.models import Student, make_batch_stamp

logger = logging.getLogger("api")

SHEET_ID_RE = re.compile(r'/d/([a-zA-Z0-9_-]+)')

EXPORT_URL = 'https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&t={stamp}'

SHEET_ALIASES = {
    'reg_no': ['sid', 'reg no', 'registration', 'regno', 'rno'],
    'name': ['sname', 'name', 'student name', 'stuname'],
    'phone1': ['sphno', 'phone1', 'student phone', 'phone 1', 'student mobile'],
    'phone2': ['fphno', 'phone2', 'father phone', 'parent phone', 'phone 2', 'father mobile'],
    'counsellor': ['cname', 'counante', 'counsellor', 'mentor'],
    'year': ['year', 'academic year', 'yr'],
    'section': ['section', 'sec'],
    'branch': ['branch', 'dept', 'department', 'br'],
}


def extract_spreadsheet_id(url: str) -> str:
    m = SHEET_ID_RE.search((url or '').strip())
    if not m:
        raise InvalidSheetUrl(url)
    return m.group(1)


def is_sheet_url(url: str) -> bool:
    return bool(SHEET_ID_RE.search((url or '').strip()))


def build_export_url(sheet_id: str, stamp: int | None = None) -> str:
    return EXPORT_URL.format(sheet_id=sheet_id, stamp=make_batch_stamp() if stamp is None else stamp)


def parse_sheet_csv(text: str, stamp: int | None = None) -> list[Student]:
    """
    Parse a sheet CSV export into Student records.

    The first non-blank line is the header row; each later non-blank line is
    one record. Quoted cells may contain commas. A sheet with only a header
    (or nothing at all) yields an empty list.
    """
    lines = [line for line in (text or '').lstrip('\ufeff').splitlines() if line.strip()]
    if len(lines) < 2:
        return []
    rows = list(csv.reader(io.StringIO('\n'.join(lines))))
    headers = [_normalize_header(h) for h in rows[0]]
    stamp = make_batch_stamp() if stamp is None else stamp
    students = []
    for index, values in enumerate(rows[1:]):
        row = {}
        for i, h in enumerate(headers):
            if h not in row or not row[h]:
                row[h] = (values[i] if i < len(values) else '').strip()
        fields = {attr: pick_value(row, keys) for attr, keys in SHEET_ALIASES.items()}
        students.append(Student(id=f"gs-{index}-{stamp}", **fields))
    return students


def fetch_sheet_students(url: str, session=None, timeout: float = HTTP_TIMEOUT_S) -> list[Student]:
    sheet_id = extract_spreadsheet_id(url)
    stamp = make_batch_stamp()
    export_url = build_export_url(sheet_id, stamp)
    http = session or requests
    try:
        resp = http.get(export_url, timeout=timeout, headers=NO_CACHE_HEADERS)
    except requests.RequestException as e:
        logger.error("[Sheets] fetch failed %s: %s", export_url, e)
        raise SheetFetchError(f"Could not reach Google Sheets: {e}") from e
    logger.info("[Sheets] export_url %s status %s", export_url, getattr(resp, 'status_code', 'n/a'))
    if not resp.ok:
        raise SheetFetchError("Google Sheets access denied.")
    decoded = resp.content.decode('utf-8', errors='replace')
    students = parse_sheet_csv(decoded, stamp)
    logger.info("[Sheets] parsed %d records from %s", len(students), sheet_id)
    return students
