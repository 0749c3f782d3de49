"""Key-value persistence for a single learner profile.

Progress and history stores only need ``get``/``set``/``delete`` on string
keys, so they take any :class:`KeyValueStore`. The SQL implementation backs
the running app; the in-memory one is used by tests and throwaway sessions.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from .models import ProfileEntry


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class SqlKeyValueStore:
    """Stores each key as a ``profile_entries`` row, one short DB session per call."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            row = db.get(ProfileEntry, key)
            return row.value if row is not None else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(ProfileEntry, key)
            if row is None:
                row = ProfileEntry(key=key, value=value)
            else:
                row.value = value
                row.updated_at = datetime.utcnow()
            db.add(row)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(ProfileEntry, key)
            if row is not None:
                db.delete(row)
                db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
