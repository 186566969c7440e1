"""
Spreadsheet upload ingest.

Turns an uploaded workbook or CSV into Student records. Column headers are
matched case-insensitively against a priority list of aliases per field, so
exports using either the short codes (SID, SNAME, CNAME, ...) or spelled-out
headers ("Reg No", "Student Name") load the same way.
"""

import io
import logging
import os

import pandas as pd

from api._shared import _normalize_header, normalize_row, pick_value
from api.errors import IngestError
from api.models import Student, make_batch_stamp

logger = logging.getLogger("api")

UPLOAD_ALIASES = {
    'reg_no': ['SID', 'Reg No', 'RegNo', 'Registration'],
    'name': ['SNAME', 'Name', 'Student Name'],
    'phone1': ['SPHNO', 'Phone1', 'Phone 1', 'Student Phone'],
    'phone2': ['FPHNO', 'Phone2', 'Phone 2', 'Parent Phone', 'Father Phone'],
    'counsellor': ['CNAME', 'Counante', 'Counsellor'],
    'year': ['YEAR'],
    'section': ['SECTION'],
    'branch': ['BRANCH'],
}

EXCEL_EXTENSIONS = {'xlsx'}
CSV_EXTENSIONS = {'csv'}
ALLOWED_EXTENSIONS = EXCEL_EXTENSIONS | CSV_EXTENSIONS


def _alias_keys(aliases: dict) -> dict:
    return {attr: [_normalize_header(a) for a in names] for attr, names in aliases.items()}


_UPLOAD_KEYS = _alias_keys(UPLOAD_ALIASES)


def allowed_file(filename):
    return '.' in (filename or '') and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def rows_to_students(rows, prefix: str = 'student', stamp: int | None = None, aliases: dict | None = None) -> list[Student]:
    """Map header->cell rows to Student records, one per row, in order."""
    keys = _UPLOAD_KEYS if aliases is None else _alias_keys(aliases)
    stamp = make_batch_stamp() if stamp is None else stamp
    students = []
    for index, raw in enumerate(rows):
        row = normalize_row(raw)
        values = {attr: pick_value(row, candidates) for attr, candidates in keys.items()}
        students.append(Student(id=f"{prefix}-{index}-{stamp}", **values))
    return students


def read_table(stream, filename: str) -> list[dict]:
    """Parse the first worksheet (or the CSV) into header->text rows."""
    ext = os.path.splitext(filename or '')[1].lstrip('.').lower()
    data = stream.read() if hasattr(stream, 'read') else stream
    if isinstance(data, str):
        data = data.encode('utf-8')
    if ext in EXCEL_EXTENSIONS:
        df = pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=object)
    elif ext in CSV_EXTENSIONS:
        text = data.decode('utf-8-sig', errors='replace')
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=False)
    else:
        raise IngestError(f"Unsupported file type '.{ext}'. Upload an .xlsx or .csv file.")
    return df.to_dict(orient='records')


def ingest_file(stream, filename: str) -> list[Student]:
    try:
        rows = read_table(stream, filename)
    except IngestError:
        raise
    except Exception as e:  # noqa: BLE001
        logger.error("[Ingest] failed to parse %s: %s", filename, e)
        raise IngestError() from e
    students = rows_to_students(rows)
    logger.info("[Ingest] %s -> %d records", filename, len(students))
    return students
