"""Optional Statsig analytics for analysis outcomes.

Disabled unless STATSIG_SERVER_SECRET is set. The SDK is initialised once at
composition time (`init_analytics`), never from inside the analysis flow;
events logged before that are dropped. Analytics must never affect the
analysis flow, so every SDK failure is logged and dropped.
"""
from __future__ import annotations

import logging
from typing import Any

from statsig import StatsigEvent, StatsigOptions, StatsigUser, statsig

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "apunto-client"
INIT_TIMEOUT_SECONDS = 3


class _AnalyticsAdapter:
    def __init__(self, secret_key: str | None, environment: str):
        self.enabled = False
        if not secret_key:
            return

        try:
            statsig.initialize(
                secret_key,
                options=StatsigOptions(tier=environment, init_timeout=INIT_TIMEOUT_SECONDS),
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Statsig initialization failed, analytics disabled: %s", exc)
            return
        self.enabled = True

    def log_event(self, event_name: str, user_id: str, metadata: dict[str, Any] | None) -> None:
        if not self.enabled:
            return
        # Queued by the SDK and flushed in the background
        try:
            statsig.log_event(StatsigEvent(StatsigUser(user_id), event_name, metadata=metadata))
        except Exception as exc:  # noqa: BLE001
            logger.debug("Statsig event %s dropped: %s", event_name, exc)

    def shutdown(self) -> None:
        if not self.enabled:
            return
        try:
            statsig.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Statsig shutdown failed: %s", exc)
        self.enabled = False


_adapter: _AnalyticsAdapter | None = None


def init_analytics(secret_key: str | None, environment: str) -> bool:
    """Initialise the SDK once. Blocking: call it outside the event loop."""
    global _adapter
    if _adapter is None:
        _adapter = _AnalyticsAdapter(secret_key, environment)
    return _adapter.enabled


def log_client_event(
    event_name: str,
    *,
    user_id: str = DEFAULT_USER_ID,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Record ``analysis_completed`` / ``analysis_failed`` style events."""
    if _adapter is None:
        return
    _adapter.log_event(event_name, user_id, metadata)


def shutdown_statsig() -> None:
    global _adapter
    if _adapter is not None:
        _adapter.shutdown()
    _adapter = None
