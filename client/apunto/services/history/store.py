from __future__ import annotations

"""client/apunto/services/history/store.py

History Store: best-effort record keeping of past analyses.

Policies:
- save / update / clear are local only
- list prefers the remote source and falls back to the local cache
- delete tries the remote first, then always removes the local copy
- every failure is logged and swallowed; history must never block or fail
  the analysis flow

The local cache is one key-value slot holding the whole collection as a
JSON array, newest first. Every mutation reads the full collection, applies
the change and writes it back under an in-process lock.
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from apunto.config import Settings, get_settings
from apunto.schemas import HistoryItem, HistoryItemCreate, HistoryUpdate
from apunto.services.history.remote import RemoteHistoryClient
from apunto.services.history.storage import KeyValueStorage, SqlKeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "@apunto_history"
PROBE_KEY = "@apunto_probe"

# Fields that only exist on the device and survive a remote refresh
LOCAL_ANNOTATIONS = ("edited_extracted_text", "edited_summary", "is_edited", "liked")


def _now_ms() -> int:
    return int(time.time() * 1000)


class HistoryStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        remote: Optional[RemoteHistoryClient] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        remote_timeout_seconds: float = 10.0,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.storage = storage
        self.remote = remote
        self.storage_key = storage_key
        self.remote_timeout = remote_timeout_seconds
        self._clock = clock or _now_ms
        self._lock = asyncio.Lock()

    # ---- persistence helpers ----

    async def _available(self) -> bool:
        try:
            await asyncio.to_thread(self.storage.get_item, PROBE_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.warning("History storage unavailable: %s", exc)
            return False
        return True

    def _reset(self) -> None:
        self.storage.set_item(self.storage_key, "[]")

    def _read(self) -> List[HistoryItem]:
        raw = self.storage.get_item(self.storage_key)
        if not raw:
            return []

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Corrupted history blob under %s, resetting", self.storage_key)
            self._reset()
            return []

        if not isinstance(data, list):
            logger.warning(
                "History blob under %s is %s, not a list; resetting",
                self.storage_key,
                type(data).__name__,
            )
            self._reset()
            return []

        items: List[HistoryItem] = []
        for entry in data:
            try:
                items.append(HistoryItem.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Dropping invalid history entry: %s", exc)
        return items

    def _write(self, items: List[HistoryItem]) -> None:
        blob = json.dumps([item.to_storage() for item in items], ensure_ascii=False)
        self.storage.set_item(self.storage_key, blob)

    async def _read_local(self) -> List[HistoryItem]:
        async with self._lock:
            return await asyncio.to_thread(self._read)

    @staticmethod
    def _unique_id(items: List[HistoryItem], timestamp: int) -> str:
        taken = {item.id for item in items}
        candidate = str(timestamp)
        n = 1
        while candidate in taken:
            candidate = f"{timestamp}-{n}"
            n += 1
        return candidate

    # ---- operations ----

    async def save(self, entry: HistoryItemCreate) -> Optional[HistoryItem]:
        """Prepend a new record. Returns it, or None when it could not be stored."""
        if not await self._available():
            return None

        try:
            async with self._lock:
                items = await asyncio.to_thread(self._read)
                timestamp = self._clock()
                item = HistoryItem(
                    **entry.model_dump(),
                    id=self._unique_id(items, timestamp),
                    timestamp=timestamp,
                )
                await asyncio.to_thread(self._write, [item, *items])
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not save history item: %s", exc)
            return None

        logger.debug("Saved history item %s", item.id)
        return item

    async def list(self, user_id: Optional[str] = None) -> List[HistoryItem]:
        """Remote history when reachable, otherwise the local cache. Never raises."""
        if not await self._available():
            return []

        if self.remote is not None:
            try:
                remote_items = await asyncio.wait_for(
                    asyncio.to_thread(self.remote.fetch, user_id),
                    timeout=self.remote_timeout,
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning("Remote history unavailable, using local cache: %s", exc)
            else:
                return await self._replace_with_remote(remote_items)

        try:
            return await self._read_local()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read local history: %s", exc)
            return []

    async def _replace_with_remote(self, remote_items: List[HistoryItem]) -> List[HistoryItem]:
        try:
            async with self._lock:
                local = await asyncio.to_thread(self._read)
                merged = self._merge_remote(remote_items, local)
                await asyncio.to_thread(self._write, merged)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not refresh local history cache: %s", exc)
            return self._merge_remote(remote_items, [])
        return merged

    @staticmethod
    def _merge_remote(
        remote_items: List[HistoryItem], local: List[HistoryItem]
    ) -> List[HistoryItem]:
        by_id: Dict[str, HistoryItem] = {item.id: item for item in local}
        merged: List[HistoryItem] = []
        seen = set()
        for item in remote_items:
            # First occurrence wins; ids must stay unique in the cache
            if item.id in seen:
                continue
            seen.add(item.id)
            cached = by_id.get(item.id)
            if cached is not None:
                update: Dict[str, Any] = {
                    name: getattr(cached, name) for name in LOCAL_ANNOTATIONS
                }
                update["image_uri"] = cached.image_uri or item.image_uri
                item = item.model_copy(update=update)
            merged.append(item)
        return merged

    async def delete(self, item_id: str, user_id: Optional[str] = None) -> None:
        """Delete remotely when possible and always locally. Missing ids are a no-op."""
        if not await self._available():
            return

        if self.remote is not None:
            try:
                await asyncio.wait_for(
                    asyncio.to_thread(self.remote.delete, item_id, user_id),
                    timeout=self.remote_timeout,
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning("Remote delete of %s failed, deleting locally: %s", item_id, exc)

        try:
            async with self._lock:
                items = await asyncio.to_thread(self._read)
                remaining = [item for item in items if item.id != item_id]
                if len(remaining) != len(items):
                    await asyncio.to_thread(self._write, remaining)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not delete history item %s locally: %s", item_id, exc)

    async def update(
        self, item_id: str, changes: Union[HistoryUpdate, Dict[str, Any]]
    ) -> Optional[HistoryItem]:
        """Merge edits/feedback into a local record.

        ``is_edited`` turns true when an edited text differs from the original
        and never goes back to false.
        """
        if not await self._available():
            return None

        try:
            if not isinstance(changes, HistoryUpdate):
                changes = HistoryUpdate.model_validate(changes)
            fields = changes.changes()

            async with self._lock:
                items = await asyncio.to_thread(self._read)
                index = next((i for i, item in enumerate(items) if item.id == item_id), None)
                if index is None:
                    return None

                current = items[index]
                newly_edited = any(
                    fields.get(edited) is not None and fields[edited] != getattr(current, original)
                    for edited, original in (
                        ("edited_extracted_text", "extracted_text"),
                        ("edited_summary", "summary"),
                    )
                )
                if newly_edited or current.is_edited:
                    fields["is_edited"] = True

                updated = current.model_copy(update=fields)
                items[index] = updated
                await asyncio.to_thread(self._write, items)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not update history item %s: %s", item_id, exc)
            return None

        return updated

    def close(self) -> None:
        if self.remote is not None:
            self.remote.close()

    async def clear(self) -> None:
        """Remove all local history. Remote records are untouched."""
        if not await self._available():
            return

        try:
            async with self._lock:
                await asyncio.to_thread(self.storage.remove_item, self.storage_key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not clear history: %s", exc)


def build_history_store(settings: Settings | None = None) -> HistoryStore:
    """Wire the SQL-backed store and, when enabled, the remote client."""
    settings = settings or get_settings()
    remote = None
    if settings.history_remote_enabled:
        remote = RemoteHistoryClient(
            settings.api_base_url,
            timeout_seconds=settings.history_remote_timeout_seconds,
        )
    return HistoryStore(
        SqlKeyValueStorage.from_url(settings.database_url),
        remote=remote,
        storage_key=settings.history_storage_key,
        remote_timeout_seconds=settings.history_remote_timeout_seconds,
    )
