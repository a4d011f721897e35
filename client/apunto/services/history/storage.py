from __future__ import annotations

"""client/apunto/services/history/storage.py

Key-value persistence backends for the history cache.

A backend stores opaque string values under string keys. The history store
only ever reads and writes one whole slot at a time, so any durable
key-value mechanism works as long as it honours that contract.
"""

from typing import Dict, Optional, Protocol

from sqlalchemy.orm import Session, sessionmaker

from apunto import models
from apunto.db.session import get_session_factory


class KeyValueStorage(Protocol):
    """Minimal interface the history store needs from persistence."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class InMemoryStorage:
    """Dict-backed storage, useful for tests and ephemeral sessions."""

    def __init__(self, initial: Dict[str, str] | None = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class SqlKeyValueStorage:
    """Storage backed by the ``storage_slots`` table.

    Each call opens its own short-lived session; errors from the database
    propagate to the caller.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SqlKeyValueStorage":
        return cls(get_session_factory(database_url))

    def get_item(self, key: str) -> Optional[str]:
        db: Session = self._session_factory()
        try:
            slot = db.get(models.StorageSlot, key)
            return slot.value if slot is not None else None
        finally:
            db.close()

    def set_item(self, key: str, value: str) -> None:
        db: Session = self._session_factory()
        try:
            slot = db.get(models.StorageSlot, key)
            if slot is None:
                db.add(models.StorageSlot(key=key, value=value))
            else:
                slot.value = value
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def remove_item(self, key: str) -> None:
        db: Session = self._session_factory()
        try:
            slot = db.get(models.StorageSlot, key)
            if slot is not None:
                db.delete(slot)
                db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
