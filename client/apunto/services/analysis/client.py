from __future__ import annotations

"""client/apunto/services/analysis/client.py

Analysis Client: runs exactly one document-analysis request end-to-end.

Lifecycle of `AnalysisClient.analyze`:
1. validate inputs (fail fast, before any I/O)
2. connectivity precheck (short-circuit with NO_INTERNET when offline)
3. encode the image as a base64 data URI
4. POST `<base>/analyze` under an overall deadline
5. map non-2xx statuses through `classify_http_status`
6. decode the body into an AnalysisResult

Every failure leaves this module as an AnalysisError subclass. No retries
are attempted and nothing is persisted here; both are caller decisions.

`requests` is synchronous, so the HTTP call runs in a worker thread and the
deadline is enforced with `asyncio.wait_for`. A timed-out thread is
abandoned; the requests socket timeout bounds how long it lingers.
"""

import asyncio
import logging
from typing import Any

import requests

from apunto.config import Settings, get_settings
from apunto.schemas import AnalysisResult, AnalyzeRequest
from apunto.services.analysis.connectivity import (
    ConnectivityChecker,
    SocketConnectivityChecker,
    StaticConnectivityChecker,
    ensure_connected,
)
from apunto.services.analysis.encoding import encode_image
from apunto.services.diagnostics.error_classifier import (
    AnalysisError,
    InvalidInputError,
    UnknownAnalysisError,
    classify_failure,
    classify_http_status,
)
from apunto.services.statsig_client import log_client_event

logger = logging.getLogger(__name__)


def _default_connectivity(settings: Settings) -> ConnectivityChecker:
    if not settings.connectivity_check_enabled:
        return StaticConnectivityChecker()
    return SocketConnectivityChecker(
        host=settings.connectivity_probe_host,
        port=settings.connectivity_probe_port,
        timeout=settings.connectivity_probe_timeout_seconds,
    )


def _json_or_empty(response: Any) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class AnalysisClient:
    """Client for the backend `/analyze` endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http: Any = None,
        connectivity: ConnectivityChecker | None = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.api_base_url.rstrip("/")
        self.timeout = self.settings.analyze_timeout_seconds
        self._owns_http = http is None
        self._http = http or requests.Session()
        self._connectivity = connectivity or _default_connectivity(self.settings)

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_http:
            self._http.close()

    def _post(self, path: str, payload: dict) -> Any:
        return self._http.post(
            f"{self.base_url}{path}",
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )

    async def analyze(self, image_uri: str, description: str) -> AnalysisResult:
        """Analyze one document image with its user description.

        Raises:
            InvalidInputError: empty description or missing image reference.
            AnalysisError: any other failure, already classified.
        """
        description = (description or "").strip()
        if not description:
            raise InvalidInputError("description is required")
        if not image_uri:
            raise InvalidInputError("image is required")

        try:
            result = await self._analyze(image_uri, description)
        except Exception as exc:  # noqa: BLE001
            error = classify_failure(exc)
            logger.warning("Document analysis failed [%s]: %s", error.category.value, error.detail or exc)
            log_client_event("analysis_failed", metadata={"category": error.category.value})
            if error is exc:
                raise
            raise error from exc

        log_client_event("analysis_completed", metadata={"label": result.label})
        return result

    async def _analyze(self, image_uri: str, description: str) -> AnalysisResult:
        await ensure_connected(self._connectivity)

        payload = AnalyzeRequest(
            image=await encode_image(image_uri),
            description=description,
        )

        logger.info("Sending document for analysis to %s/analyze", self.base_url)
        response = await asyncio.wait_for(
            asyncio.to_thread(self._post, "/analyze", payload.model_dump()),
            timeout=self.timeout,
        )

        if not 200 <= response.status_code < 300:
            raise classify_http_status(response.status_code, _json_or_empty(response))

        return self._decode(response)

    @staticmethod
    def _decode(response: Any) -> AnalysisResult:
        data = response.json()
        if not isinstance(data, dict):
            raise UnknownAnalysisError("unexpected response body")
        return AnalysisResult.model_validate(data)


__all__ = ["AnalysisClient", "AnalysisError"]
