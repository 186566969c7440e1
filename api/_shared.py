import json
import logging
import math
import os
import re
import threading

logger = logging.getLogger("api")
logger.setLevel(logging.INFO)

# Seed pointer used when neither the shared store nor the local cache has one
SHEET_URL = os.environ.get('SHEET_URL', '').strip()

# Public key-value bin holding {"active_sheet_url": ..., "last_updated": ...}
POINTER_STORE_URL = os.environ.get('POINTER_STORE_URL', 'https://api.npoint.io/93724c6e932454522921').strip()

CACHE_PATH = os.environ.get('CACHE_PATH', os.path.join('.edubase', 'cache.json')).strip()
SYNC_INTERVAL_S = float(os.environ.get('SYNC_INTERVAL_S', '30'))
HTTP_TIMEOUT_S = float(os.environ.get('HTTP_TIMEOUT_S', '20'))
ADMIN_PASSPHRASE = os.environ.get('ADMIN_PASSPHRASE', 'admin123')
SESSION_SECRET = os.environ.get('SESSION_SECRET', 'dev-secret-key-change-in-production')
MIN_PASSPHRASE_LENGTH = 4

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-cache',
    'Pragma': 'no-cache',
}


def json_response(data: dict, status: int = 200, extra_headers: dict | None = None):
    body = json.dumps(data, ensure_ascii=False)
    headers = {
        "Content-Type": "application/json; charset=utf-8",
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    }
    if extra_headers:
        headers.update(extra_headers)
    return (body, status, headers)


def _normalize_header(h):
    return re.sub(r"\s+", " ", str(h or '').strip().strip('"\'').strip().lower())


def cell_text(value) -> str:
    """Render a spreadsheet cell as plain text ('' for blanks, 101.0 -> '101')."""
    if value is None:
        return ''
    if isinstance(value, float):
        if math.isnan(value):
            return ''
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def normalize_row(row: dict) -> dict:
    out = {}
    for k, v in (row or {}).items():
        nk = _normalize_header(k)
        # first column wins when two headers normalize to the same key
        if nk not in out or not out[nk]:
            out[nk] = cell_text(v)
    return out


def pick_value(row: dict, candidates) -> str:
    for key in candidates:
        val = row.get(key)
        if val:
            return val
    return ''


_orchestrator = None
_orchestrator_lock = threading.Lock()


def get_orchestrator():
    """Process-wide orchestrator, built from the environment on first use."""
    global _orchestrator
    with _orchestrator_lock:
        if _orchestrator is None:
            from api.local_cache import LocalCache
            from api.pointer import PointerStore
            from api.sync import SyncOrchestrator
            _orchestrator = SyncOrchestrator(
                LocalCache(CACHE_PATH),
                PointerStore(POINTER_STORE_URL),
                interval=SYNC_INTERVAL_S,
            )
        return _orchestrator


def set_orchestrator(orchestrator):
    global _orchestrator
    with _orchestrator_lock:
        _orchestrator = orchestrator
