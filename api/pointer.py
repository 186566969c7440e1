import logging
import time
from datetime import datetime, timezone

import requests

from api._shared import HTTP_TIMEOUT_S, NO_CACHE_HEADERS
from api.errors import PointerStoreError

logger = logging.getLogger("api")


class PointerStore:
    """
    Client for the shared key-value document naming the master sheet.

    Any client that knows the address can read or overwrite it; the last
    write wins. Reads never raise: an unreachable store reads as "no pointer".
    """

    def __init__(self, url: str, session=None, timeout: float = HTTP_TIMEOUT_S) -> None:
        self.url = (url or '').strip()
        self._http = session or requests
        self.timeout = timeout

    def read(self) -> str | None:
        if not self.url:
            return None
        live_url = f"{self.url}?nocache={int(time.time() * 1000)}"
        try:
            resp = self._http.get(live_url, timeout=self.timeout, headers=NO_CACHE_HEADERS)
            if not resp.ok:
                logger.warning("[Pointer] read status %s", resp.status_code)
                return None
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("[Pointer] store unreachable: %s", e)
            return None
        if not isinstance(data, dict):
            return None
        url = str(data.get('active_sheet_url') or '').strip()
        return url or None

    def write(self, sheet_url: str) -> dict:
        if not self.url:
            raise PointerStoreError("No shared pointer store configured.")
        payload = {
            'active_sheet_url': sheet_url,
            'last_updated': datetime.now(timezone.utc).isoformat(),
        }
        try:
            resp = self._http.put(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("[Pointer] write failed: %s", e)
            raise PointerStoreError(f"Cloud sync failed: {e}") from e
        if not resp.ok:
            logger.error("[Pointer] write status %s", resp.status_code)
            raise PointerStoreError(f"Cloud sync failed with status: {resp.status_code}")
        logger.info("[Pointer] global master updated")
        return payload
