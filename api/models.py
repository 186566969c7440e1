import threading
import time
from dataclasses import dataclass, fields


# (attribute, JSON key) in display order
FIELD_KEYS = [
    ('reg_no', 'regNo'),
    ('name', 'name'),
    ('phone1', 'phone1'),
    ('phone2', 'phone2'),
    ('counsellor', 'counsellor'),
    ('year', 'year'),
    ('section', 'section'),
    ('branch', 'branch'),
]

_stamp_lock = threading.Lock()
_last_stamp = 0


def make_batch_stamp() -> int:
    """Millisecond timestamp, strictly increasing within this process."""
    global _last_stamp
    with _stamp_lock:
        stamp = max(int(time.time() * 1000), _last_stamp + 1)
        _last_stamp = stamp
        return stamp


@dataclass
class Student:
    id: str = ''
    reg_no: str = ''
    name: str = ''
    phone1: str = ''
    phone2: str = ''
    counsellor: str = ''
    year: str = ''
    section: str = ''
    branch: str = ''

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            setattr(self, f.name, '' if value is None else str(value))

    def to_dict(self) -> dict:
        out = {key: getattr(self, attr) for attr, key in FIELD_KEYS}
        out['id'] = self.id
        return out

    @classmethod
    def from_dict(cls, data: dict) -> 'Student':
        data = data or {}
        kwargs = {attr: data.get(key) or data.get(attr) or '' for attr, key in FIELD_KEYS}
        return cls(id=data.get('id') or '', **kwargs)

    def field_values(self) -> dict:
        return {key: getattr(self, attr) for attr, key in FIELD_KEYS}
