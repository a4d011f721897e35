from __future__ import annotations

"""client/apunto/services/history/remote.py

HTTP client for the backend history endpoints:

- GET    <base>/history?userId=<id>      -> {"history": [...]}
- DELETE <base>/history/<id>?userId=<id>

Calls are synchronous (`requests`); the history store runs them in a worker
thread under its own deadline.
"""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from apunto.schemas import HistoryItem, RemoteHistoryResponse

logger = logging.getLogger(__name__)


class RemoteHistoryError(Exception):
    """Remote history call failed or returned an unusable body."""


class RemoteHistoryClient:
    def __init__(self, base_url: str, http: Any = None, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self._owns_http = http is None
        self._http = http or requests.Session()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    @staticmethod
    def _params(user_id: Optional[str]) -> dict:
        return {"userId": user_id} if user_id else {}

    def fetch(self, user_id: Optional[str] = None) -> List[HistoryItem]:
        response = self._http.get(
            f"{self.base_url}/history",
            params=self._params(user_id),
            timeout=self.timeout,
        )
        if not 200 <= response.status_code < 300:
            raise RemoteHistoryError(f"GET /history returned {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteHistoryError("GET /history returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise RemoteHistoryError("GET /history returned an unexpected body")

        try:
            parsed = RemoteHistoryResponse.model_validate(body)
        except ValidationError as exc:
            raise RemoteHistoryError(f"GET /history returned malformed records: {exc}") from exc

        items = [record.to_history_item() for record in parsed.history]
        logger.debug("Fetched %d remote history records", len(items))
        return items

    def delete(self, item_id: str, user_id: Optional[str] = None) -> None:
        response = self._http.delete(
            f"{self.base_url}/history/{quote(str(item_id), safe='')}",
            params=self._params(user_id),
            timeout=self.timeout,
        )
        if not 200 <= response.status_code < 300:
            raise RemoteHistoryError(
                f"DELETE /history/{item_id} returned {response.status_code}"
            )
