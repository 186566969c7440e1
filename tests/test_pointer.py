import pytest

from api.errors import PointerStoreError
from api.pointer import PointerStore
from conftest import SHEET_URL, FakeResponse, FakeSession

STORE_URL = 'https://api.npoint.io/test-bin'


def test_read_returns_active_url_and_bypasses_caches():
    session = FakeSession(get=FakeResponse(200, payload={'active_sheet_url': SHEET_URL, 'last_updated': 'x'}))
    store = PointerStore(STORE_URL, session=session)

    assert store.read() == SHEET_URL
    _, url, kwargs = session.calls[0]
    assert url.startswith(STORE_URL + '?nocache=')
    assert kwargs['headers']['Cache-Control'] == 'no-cache'


@pytest.mark.parametrize('response', [
    FakeResponse(500, 'oops'),
    FakeResponse(200, 'not json'),
    FakeResponse(200, payload={'active_sheet_url': ''}),
    FakeResponse(200, payload=['unexpected']),
])
def test_read_is_absent_on_bad_responses(response):
    store = PointerStore(STORE_URL, session=FakeSession(get=response))
    assert store.read() is None


def test_read_is_absent_when_unreachable(network_error):
    store = PointerStore(STORE_URL, session=FakeSession(get=network_error))
    assert store.read() is None


def test_write_overwrites_with_timestamp():
    session = FakeSession(put=FakeResponse(200, payload={}))
    store = PointerStore(STORE_URL, session=session)

    payload = store.write(SHEET_URL)

    method, url, kwargs = session.calls[0]
    assert (method, url) == ('PUT', STORE_URL)
    assert kwargs['json']['active_sheet_url'] == SHEET_URL
    assert kwargs['json']['last_updated']
    assert payload == kwargs['json']


def test_write_failure_raises(network_error):
    with pytest.raises(PointerStoreError):
        PointerStore(STORE_URL, session=FakeSession(put=network_error)).write(SHEET_URL)
    with pytest.raises(PointerStoreError, match='status: 503'):
        PointerStore(STORE_URL, session=FakeSession(put=FakeResponse(503))).write(SHEET_URL)


def test_unconfigured_store():
    store = PointerStore('')
    assert store.read() is None
    with pytest.raises(PointerStoreError):
        store.write(SHEET_URL)
