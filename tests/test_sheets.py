import pytest

from api.errors import InvalidSheetUrl, SheetFetchError
from api.sheets import (
    build_export_url,
    extract_spreadsheet_id,
    fetch_sheet_students,
    is_sheet_url,
    parse_sheet_csv,
)
from conftest import SHEET_URL, FakeResponse, FakeSession

SHEET_CSV = (
    '"SID","SNAME","SPHNO","FPHNO","Mentor","Year","Sec","Dept"\n'
    '101,"Asha, K",9876543210,9000000001,Meera,2,A,CSE\n'
    '\n'
    '102,Ravi N,,,"",1,B,ECE\n'
)


def test_extract_spreadsheet_id():
    assert extract_spreadsheet_id(SHEET_URL) == 'abc123-XYZ_9'
    assert is_sheet_url(SHEET_URL)


@pytest.mark.parametrize('url', ['', 'https://example.com/sheet', 'docs.google.com/spreadsheets/'])
def test_invalid_url_fails_before_network(url):
    session = FakeSession(get=FakeResponse(200, 'SID\n1'))
    with pytest.raises(InvalidSheetUrl):
        fetch_sheet_students(url, session=session)
    assert session.calls == []
    assert not is_sheet_url(url)


def test_export_url_is_cache_busted():
    first = build_export_url('abc')
    second = build_export_url('abc')
    assert first.startswith('https://docs.google.com/spreadsheets/d/abc/export?format=csv&t=')
    assert first != second


def test_parse_handles_quotes_blank_lines_and_aliases():
    students = parse_sheet_csv(SHEET_CSV, stamp=42)

    assert len(students) == 2
    asha, ravi = students
    assert asha.name == 'Asha, K'
    assert asha.reg_no == '101'
    assert asha.phone1 == '9876543210'
    assert asha.phone2 == '9000000001'
    assert asha.counsellor == 'Meera'
    assert (asha.year, asha.section, asha.branch) == ('2', 'A', 'CSE')
    assert ravi.counsellor == ''
    assert [s.id for s in students] == ['gs-0-42', 'gs-1-42']


@pytest.mark.parametrize('text', ['', '\n\n', 'SID,SNAME\n', 'SID,SNAME\n   \n'])
def test_header_only_sheet_is_empty_not_error(text):
    assert parse_sheet_csv(text) == []


def test_short_rows_fill_with_empty_strings():
    students = parse_sheet_csv('rno,stuname,branch\n7,Lata\n')
    assert students[0].reg_no == '7'
    assert students[0].name == 'Lata'
    assert students[0].branch == ''


def test_fetch_builds_export_url_and_parses():
    session = FakeSession(get=FakeResponse(200, SHEET_CSV))
    students = fetch_sheet_students(SHEET_URL, session=session)

    assert len(students) == 2
    method, url, kwargs = session.calls[0]
    assert method == 'GET'
    assert url.startswith('https://docs.google.com/spreadsheets/d/abc123-XYZ_9/export?format=csv&t=')
    assert kwargs['headers']['Cache-Control'] == 'no-cache'


def test_fetch_non_2xx_raises():
    session = FakeSession(get=FakeResponse(403, 'denied'))
    with pytest.raises(SheetFetchError, match='access denied'):
        fetch_sheet_students(SHEET_URL, session=session)


def test_fetch_network_error_raises(network_error):
    session = FakeSession(get=network_error)
    with pytest.raises(SheetFetchError):
        fetch_sheet_students(SHEET_URL, session=session)
