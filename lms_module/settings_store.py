"""Process-wide UI settings.

Lives in memory only: initialized at import, lost on restart. Anything that
has to survive a restart belongs in the database instead.
"""
import threading
from typing import Any

DEFAULTS: dict[str, Any] = {"theme": "light", "notifications": True}

_lock = threading.Lock()
_store: dict[str, Any] = dict(DEFAULTS)


def snapshot() -> dict[str, Any]:
    with _lock:
        return dict(_store)


def update(changes: dict[str, Any]) -> dict[str, Any]:
    with _lock:
        _store.update({key: value for key, value in changes.items() if key in DEFAULTS})
        return dict(_store)


def reset() -> dict[str, Any]:
    with _lock:
        _store.clear()
        _store.update(DEFAULTS)
        return dict(_store)
