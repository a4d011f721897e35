# client/apunto/models/__init__.py
from __future__ import annotations

"""
ORM models for the local persistence layer.

This module depends on:
- apunto.db.session.Base for the declarative base

Models:
- StorageSlot: one named slot holding a serialized value. The history
  cache uses a single slot containing the whole JSON collection.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from apunto.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StorageSlot(Base):
    __tablename__ = "storage_slots"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)
