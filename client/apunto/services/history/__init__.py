from __future__ import annotations

"""client/apunto/services/history/__init__.py

Persisted records of past analyses.

- storage: key-value persistence backends (SQL slot table, in-memory)
- remote: HTTP client for the backend `/history` endpoints
- store: HistoryStore, the local-first / remote-preferred record keeper
"""

from apunto.services.history.store import HistoryStore, build_history_store  # noqa: F401
