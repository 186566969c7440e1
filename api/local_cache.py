"""
Durable per-device cache.

Holds the last good roster, the last known sheet URL and the admin passphrase
as plain strings in one JSON document. Components sharing a cache on the same
device can subscribe to URL changes so they re-sync without waiting for the
next poll.
"""

import json
import logging
import os
import tempfile
import threading

from api._shared import ADMIN_PASSPHRASE
from api.models import Student

logger = logging.getLogger("api")

DB_KEY = 'student_explorer_db'
SHEET_URL_KEY = 'edubase_google_sheet_url'
PWD_KEY = 'student_explorer_pwd'

URL_UPDATED = 'URL_UPDATED'


class LocalCache:
    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.RLock()
        self._listeners = []

    # -- raw key/value -----------------------------------------------------

    def _read_all(self) -> dict:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("[Cache] unreadable cache %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> bool:
        with self._lock:
            data = self._read_all()
            data[key] = value
            return self._try_write(data)

    def remove(self, key: str) -> bool:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return True
            del data[key]
            return self._try_write(data)

    def _try_write(self, data: dict) -> bool:
        # read-only deployments still serve from memory
        try:
            self._write_all(data)
        except OSError as e:
            logger.warning("[Cache] could not write cache %s: %s", self.path, e)
            return False
        return True

    # -- roster --------------------------------------------------------------

    def load_students(self) -> list[Student] | None:
        raw = self.get(DB_KEY)
        if raw is None:
            return None
        try:
            items = json.loads(raw)
        except ValueError as e:
            logger.warning("[Cache] corrupt roster cache: %s", e)
            return None
        if not isinstance(items, list):
            return None
        return [Student.from_dict(item) for item in items if isinstance(item, dict)]

    def save_students(self, students) -> bool:
        saved = self.set(DB_KEY, json.dumps([s.to_dict() for s in students], ensure_ascii=False))
        if saved:
            logger.info("[Cache] saved %d records", len(students))
        return saved

    def clear_students(self) -> None:
        self.remove(DB_KEY)

    # -- sheet pointer -------------------------------------------------------

    def get_sheet_url(self) -> str:
        return self.get(SHEET_URL_KEY) or ''

    def set_sheet_url(self, url: str, origin=None, broadcast: bool = True) -> None:
        self.set(SHEET_URL_KEY, url)
        if broadcast:
            self.broadcast(URL_UPDATED, url, origin=origin)

    def subscribe(self, listener, owner=None) -> None:
        with self._lock:
            self._listeners.append((owner, listener))

    def unsubscribe(self, listener) -> None:
        with self._lock:
            self._listeners = [(o, l) for o, l in self._listeners if l != listener]

    def broadcast(self, message_type: str, url: str, origin=None) -> None:
        with self._lock:
            targets = [l for o, l in self._listeners if origin is None or o is not origin]
        for listener in targets:
            try:
                listener(message_type, url)
            except Exception:  # noqa: BLE001
                logger.exception("[Cache] broadcast listener failed")

    # -- admin passphrase ----------------------------------------------------

    def get_admin_passphrase(self) -> str:
        return self.get(PWD_KEY) or ADMIN_PASSPHRASE

    def set_admin_passphrase(self, passphrase: str) -> bool:
        return self.set(PWD_KEY, passphrase)
