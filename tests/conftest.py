import json

import pytest
import requests

from api import _shared
from api.local_cache import LocalCache
from api.models import Student
from api.sync import SyncOrchestrator

SHEET_URL = 'https://docs.google.com/spreadsheets/d/abc123-XYZ_9/edit#gid=0'
OTHER_SHEET_URL = 'https://docs.google.com/spreadsheets/d/zzz999/edit'


class FakeResponse:
    def __init__(self, status_code=200, text='', payload=None):
        self.status_code = status_code
        if payload is not None:
            text = json.dumps(payload)
        self.text = text
        self.content = text.encode('utf-8')

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """requests stand-in; queue responses or exceptions per method."""

    def __init__(self, get=None, put=None):
        self.get_result = get
        self.put_result = put
        self.calls = []

    def _respond(self, result):
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, **kwargs):
        self.calls.append(('GET', url, kwargs))
        return self._respond(self.get_result)

    def put(self, url, **kwargs):
        self.calls.append(('PUT', url, kwargs))
        return self._respond(self.put_result)


class FakePointerStore:
    def __init__(self, url=None, read_error=False, write_error=None):
        self.url = url
        self.read_error = read_error
        self.write_error = write_error
        self.writes = []

    def read(self):
        if self.read_error:
            return None
        return self.url

    def write(self, sheet_url):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(sheet_url)
        self.url = sheet_url
        return {'active_sheet_url': sheet_url}


def make_students(*rows):
    return [Student(id=f"t-{i}", **row) for i, row in enumerate(rows)]


@pytest.fixture
def roster():
    return make_students(
        dict(reg_no='101', name='Asha K', phone1='9876543210', counsellor='Meera', year='2', section='A', branch='CSE'),
        dict(reg_no='102', name='Ravi N', phone1='9123456780', phone2='9000011111', counsellor='Meera', year='1', section='B', branch='ECE'),
        dict(reg_no='103', name='John Paul', counsellor='', year='3', section='A', branch='CSE'),
        dict(reg_no='104', name='Divya S', counsellor='Arjun', year='10', section='C', branch='MECH'),
    )


@pytest.fixture
def cache(tmp_path):
    return LocalCache(str(tmp_path / 'cache.json'))


@pytest.fixture
def network_error():
    return requests.ConnectionError('network down')


@pytest.fixture
def orchestrator_factory(cache):
    created = []

    def factory(pointer=None, fetcher=None, default_url='', cache_obj=None):
        orch = SyncOrchestrator(
            cache_obj or cache,
            pointer or FakePointerStore(),
            fetcher=fetcher,
            interval=3600,
            default_url=default_url,
        )
        created.append(orch)
        return orch

    yield factory
    for orch in created:
        orch.stop()


@pytest.fixture
def install_orchestrator():
    previous = _shared._orchestrator

    def install(orch):
        _shared.set_orchestrator(orch)
        return orch

    yield install
    _shared.set_orchestrator(previous)
