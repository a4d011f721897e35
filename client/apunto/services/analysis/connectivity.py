from __future__ import annotations

"""client/apunto/services/analysis/connectivity.py

Network reachability precheck.

The precheck only short-circuits when the device is *definitely* offline.
An unknown or partially-known state lets the request go ahead; the request
itself will then fail and be classified if the network is really down.
"""

import asyncio
import errno
import logging
import socket
from dataclasses import dataclass
from typing import Optional, Protocol

from apunto.services.diagnostics.error_classifier import NoInternetError

logger = logging.getLogger(__name__)

# errno values that mean there is no usable network interface/route at all
OFFLINE_ERRNOS = frozenset({errno.ENETUNREACH, errno.ENETDOWN})


@dataclass(frozen=True)
class NetworkState:
    """Reachability snapshot. None means unknown."""

    is_connected: Optional[bool]
    is_reachable: Optional[bool] = None


class ConnectivityChecker(Protocol):
    async def fetch(self) -> NetworkState:
        ...


class StaticConnectivityChecker:
    """Always reports the same state."""

    def __init__(self, state: NetworkState | None = None):
        self.state = state or NetworkState(is_connected=True)

    async def fetch(self) -> NetworkState:
        return self.state


class SocketConnectivityChecker:
    """Probe reachability by opening a TCP connection to a well-known host."""

    def __init__(self, host: str = "1.1.1.1", port: int = 53, timeout: float = 1.5):
        self.host = host
        self.port = port
        self.timeout = timeout

    def _probe(self) -> NetworkState:
        try:
            conn = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as exc:
            if exc.errno in OFFLINE_ERRNOS:
                return NetworkState(is_connected=False, is_reachable=False)
            # Timeouts, refusals, filtered ports: connected-ness is unknown
            return NetworkState(is_connected=None, is_reachable=None)
        conn.close()
        return NetworkState(is_connected=True, is_reachable=True)

    async def fetch(self) -> NetworkState:
        return await asyncio.to_thread(self._probe)


async def ensure_connected(checker: ConnectivityChecker) -> NetworkState | None:
    """Raise NoInternetError when the device is definitely offline."""
    try:
        state = await checker.fetch()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Connectivity check failed, continuing: %s", exc)
        return None

    if state.is_connected is False:
        raise NoInternetError()
    return state
