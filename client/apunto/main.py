# client/apunto/main.py
from __future__ import annotations

"""
Composition root for the Apunto client core.

This module depends on:
- apunto.config.get_settings for configuration
- apunto.services.analysis.AnalysisClient for the analysis request
- apunto.services.history.build_history_store for persisted history
- apunto.services.processing.AnalysisSession for the screen flow
- apunto.services.statsig_client for optional analytics

The UI layer creates one session at startup (before its event loop starts
driving the session) and calls `shutdown(session)` when the app is closed.
"""

from apunto.config import Settings, get_settings
from apunto.services.analysis import AnalysisClient
from apunto.services.history import build_history_store
from apunto.services.processing import AnalysisSession
from apunto.services.statsig_client import init_analytics, shutdown_statsig


def create_session(settings: Settings | None = None) -> AnalysisSession:
    """Build an AnalysisSession wired from settings."""
    settings = settings or get_settings()
    init_analytics(settings.statsig_server_secret, settings.environment)
    return AnalysisSession(
        AnalysisClient(settings),
        build_history_store(settings),
        safety_timeout_seconds=settings.safety_timeout_seconds,
        history_load_timeout_seconds=settings.history_load_timeout_seconds,
    )


def shutdown(session: AnalysisSession | None = None) -> None:
    """Release HTTP connections and flush analytics before the process exits."""
    if session is not None:
        session.client.close()
        session.history_store.close()
    shutdown_statsig()
