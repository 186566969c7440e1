"""
Roster synchronisation.

Decides which source to consult (shared pointer, locally cached pointer,
cached roster) on start-up, on every poll tick or focus regain, and on
explicit admin requests, and swaps the in-memory roster wholesale.

In-flight fetches are not cancelled or sequenced: when two syncs race, the
one that finishes last wins.
"""

import logging
import threading
import time
from enum import Enum

from api._shared import SHEET_URL, SYNC_INTERVAL_S
from api.errors import DirectoryError, PointerStoreError, SyncError
from api.local_cache import URL_UPDATED
from api.sheets import extract_spreadsheet_id, fetch_sheet_students

logger = logging.getLogger("api")


class SyncState(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    READY = 'ready'
    ERROR = 'error'


class SyncOrchestrator:
    def __init__(self, cache, pointer_store, fetcher=None, interval: float = SYNC_INTERVAL_S,
                 default_url: str = SHEET_URL) -> None:
        self.cache = cache
        self.pointer_store = pointer_store
        self._fetch = fetcher or fetch_sheet_students
        self.interval = interval
        self.default_url = default_url
        self._lock = threading.RLock()
        self._students = []
        self.state = SyncState.IDLE
        self.source = None
        self.degraded = False
        self.active_url = ''
        self.last_error = None
        self.last_synced = None
        # URL accepted locally whose shared-store write has not gone through yet
        self._unshared_url = None
        self._loaded = False
        self._stop = threading.Event()
        self._thread = None
        cache.subscribe(self._on_broadcast, owner=self)

    @property
    def students(self):
        with self._lock:
            return list(self._students)

    # -- pointer resolution --------------------------------------------------

    def resolve_url(self) -> str:
        if self._unshared_url:
            self._retry_shared_write()
            if self._unshared_url:
                return self._unshared_url
        shared = self.pointer_store.read()
        if shared:
            if shared != self.cache.get_sheet_url():
                # adopted, not changed here; re-broadcasting would make peers re-adopt in a loop
                self.cache.set_sheet_url(shared, broadcast=False)
            return shared
        return self.cache.get_sheet_url() or self.default_url

    def _retry_shared_write(self) -> None:
        url = self._unshared_url
        try:
            self.pointer_store.write(url)
        except PointerStoreError as e:
            logger.warning("[Sync] shared pointer still not updated: %s", e)
            return
        logger.info("[Sync] shared pointer caught up to %s", url)
        if self._unshared_url == url:
            self._unshared_url = None

    # -- state transitions ---------------------------------------------------

    def _apply(self, students, source: str, url: str = '', degraded: bool = False) -> None:
        with self._lock:
            self._students = list(students)
            self.source = source
            self.degraded = degraded
            self.state = SyncState.READY
            self.last_error = None
            if url:
                self.active_url = url
            self.last_synced = time.time()

    def _fallback(self, err: Exception) -> None:
        cached = self.cache.load_students()
        if cached is not None:
            logger.info("[Sync] using cached roster (%d records) after: %s", len(cached), err)
            self._apply(cached, 'cache', degraded=True)
            return
        with self._lock:
            if self._students:
                self.state = SyncState.READY
                self.degraded = True
            else:
                self.state = SyncState.ERROR
                self.last_error = str(err)
        logger.warning("[Sync] no roster available: %s", err)

    def _pull(self) -> list:
        url = self.resolve_url()
        if not url:
            raise SyncError("Please set the Google Sheet Link first.")
        students = self._fetch(url)
        self._apply(students, 'remote', url=url)
        self.cache.save_students(students)
        logger.info("[Sync] loaded %d records from %s", len(students), url)
        return students

    # -- entry points --------------------------------------------------------

    def load(self) -> dict:
        """Start-up load; always completes in READY or ERROR."""
        with self._lock:
            self.state = SyncState.LOADING
        try:
            self._pull()
        except DirectoryError as e:
            self._fallback(e)
        self._loaded = True
        return self.status()

    def ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def refresh(self) -> dict:
        """Background re-check; only blocks (LOADING) while the roster is empty."""
        with self._lock:
            blocking = not self._students
            if blocking:
                self.state = SyncState.LOADING
        try:
            self._pull()
        except DirectoryError as e:
            logger.warning("[Sync] refresh failed: %s", e)
            if blocking:
                self._fallback(e)
        self._loaded = True
        return self.status()

    def sync_now(self) -> int:
        """Explicit sync; failures propagate so the caller can tell the user."""
        try:
            return len(self._pull())
        except DirectoryError as e:
            with self._lock:
                self.last_error = str(e)
            raise

    def repoint(self, url: str) -> dict:
        url = (url or '').strip()
        extract_spreadsheet_id(url)
        self.cache.set_sheet_url(url, broadcast=False)
        shared, shared_error = True, None
        try:
            self.pointer_store.write(url)
            self._unshared_url = None
        except PointerStoreError as e:
            shared, shared_error = False, str(e)
            self._unshared_url = url
        self.cache.broadcast(URL_UPDATED, url, origin=self)
        students = self._fetch(url)
        self._apply(students, 'remote', url=url)
        self.cache.save_students(students)
        self._loaded = True
        logger.info("[Sync] repointed to %s (%d records, shared=%s)", url, len(students), shared)
        return {'count': len(students), 'shared': shared, 'sharedError': shared_error}

    def replace_records(self, students, source: str = 'upload') -> int:
        self._apply(students, source)
        self.cache.save_students(students)
        self._loaded = True
        return len(students)

    def clear(self) -> None:
        with self._lock:
            self._students = []
            self.source = None
            self.degraded = False
        self.cache.clear_students()
        logger.info("[Sync] roster cleared")

    def status(self) -> dict:
        with self._lock:
            return {
                'state': self.state.value,
                'count': len(self._students),
                'source': self.source,
                'degraded': self.degraded,
                'activeUrl': self.active_url or self.cache.get_sheet_url(),
                'lastError': self.last_error,
                'lastSynced': self.last_synced,
                'shared': self._unshared_url is None,
            }

    # -- background ----------------------------------------------------------

    def _on_broadcast(self, message_type: str, url: str) -> None:
        if message_type != URL_UPDATED:
            return
        logger.info("[Sync] sheet URL changed elsewhere on this device: %s", url)
        threading.Thread(target=self.refresh, daemon=True).start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.refresh()
            except Exception:  # noqa: BLE001
                logger.exception("[Sync] poll tick failed")

    def start_polling(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='roster-poll', daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self.cache.unsubscribe(self._on_broadcast)
        if self._thread:
            self._thread.join(timeout=1)
            self._thread = None
