from __future__ import annotations

import pytest
from statsig import StatsigEvent

import apunto.services.statsig_client as statsig_client
from apunto.config import Settings
from apunto.services.analysis.client import AnalysisClient
from apunto.services.analysis.connectivity import StaticConnectivityChecker


class _FakeResponse:
    status_code = 200

    def json(self):
        return {"summary": "ok", "label": "Nota"}


class _FakeHttp:
    def post(self, url, **kwargs):
        return _FakeResponse()


@pytest.fixture
def sdk_calls(monkeypatch: pytest.MonkeyPatch):
    calls: dict[str, list] = {"initialize": [], "log_event": [], "shutdown": []}

    monkeypatch.setattr(
        statsig_client.statsig,
        "initialize",
        lambda secret, options=None: calls["initialize"].append((secret, options)),
    )
    monkeypatch.setattr(statsig_client.statsig, "log_event", lambda event: calls["log_event"].append(event))
    monkeypatch.setattr(statsig_client.statsig, "shutdown", lambda: calls["shutdown"].append(True))
    monkeypatch.setattr(statsig_client, "_adapter", None)
    return calls


def test_adapter_enables_with_secret_and_forwards_events(sdk_calls):
    adapter = statsig_client._AnalyticsAdapter("secret-x", "development")

    assert adapter.enabled
    assert sdk_calls["initialize"][0][0] == "secret-x"

    adapter.log_event("analysis_failed", "user-1", {"category": "TIMEOUT"})
    event = sdk_calls["log_event"][0]
    assert isinstance(event, StatsigEvent)
    assert event.event_name == "analysis_failed"
    assert event.metadata == {"category": "TIMEOUT"}


def test_adapter_without_secret_stays_disabled(sdk_calls):
    adapter = statsig_client._AnalyticsAdapter(None, "development")
    adapter.log_event("analysis_completed", "u", None)
    assert not adapter.enabled
    assert sdk_calls["initialize"] == []
    assert sdk_calls["log_event"] == []


def test_events_before_init_are_dropped(sdk_calls):
    statsig_client.log_client_event("analysis_completed")
    assert sdk_calls["initialize"] == []
    assert sdk_calls["log_event"] == []


def _client() -> AnalysisClient:
    settings = Settings(_env_file=None, connectivity_check_enabled=False)
    return AnalysisClient(settings, http=_FakeHttp(), connectivity=StaticConnectivityChecker())


@pytest.mark.asyncio
async def test_analyze_never_initializes_the_sdk(sdk_calls, tmp_path):
    image = tmp_path / "a.jpg"
    image.write_bytes(b"x")

    await _client().analyze(str(image), "nota")

    assert sdk_calls["initialize"] == []
    assert sdk_calls["log_event"] == []


@pytest.mark.asyncio
async def test_analyze_logs_outcome_once_initialized(sdk_calls, tmp_path):
    image = tmp_path / "a.jpg"
    image.write_bytes(b"x")
    assert statsig_client.init_analytics("secret-x", "development")

    await _client().analyze(str(image), "nota")

    assert [event.event_name for event in sdk_calls["log_event"]] == ["analysis_completed"]

    statsig_client.shutdown_statsig()
    assert sdk_calls["shutdown"] == [True]
    assert statsig_client._adapter is None
