from __future__ import annotations

import asyncio

import pytest

from apunto.schemas import AnalysisResult, CaptureOutcome, CaptureStatus, HistoryItem
from apunto.services.diagnostics.error_classifier import (
    NoInternetError,
    ProcessingTimeoutError,
    UnknownAnalysisError,
)
from apunto.services.diagnostics.messages import PROCESSING_TIMEOUT_MESSAGE
from apunto.services.history.storage import InMemoryStorage
from apunto.services.history.store import HistoryStore
from apunto.services.processing import AnalysisSession, SessionState


class _FakeClient:
    def __init__(self, outcomes=None, gate: asyncio.Event | None = None):
        self.outcomes = list(outcomes or [AnalysisResult(extracted_text="texto", summary="resumen")])
        self.gate = gate
        self.calls: list[tuple[str, str]] = []

    async def analyze(self, image_uri: str, description: str) -> AnalysisResult:
        self.calls.append((image_uri, description))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class _SlowHistory:
    async def list(self, user_id=None):
        await asyncio.sleep(5)
        return [HistoryItem(id="1", timestamp=1)]


def _session(client, history=None, safety: float = 5.0, history_timeout: float = 2.0) -> AnalysisSession:
    session = AnalysisSession(
        client,
        history or HistoryStore(InMemoryStorage()),
        safety_timeout_seconds=safety,
        history_load_timeout_seconds=history_timeout,
    )
    session.select_image(CaptureOutcome(status=CaptureStatus.CAPTURED, image_uri="file:///a.jpg"))
    return session


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


def test_only_captured_images_advance():
    session = AnalysisSession(_FakeClient(), HistoryStore(InMemoryStorage()))
    assert not session.select_image(CaptureOutcome(status=CaptureStatus.PERMISSION_DENIED))
    assert session.state is SessionState.CAMERA
    assert session.capture_status is CaptureStatus.PERMISSION_DENIED

    assert session.select_image(CaptureOutcome(status=CaptureStatus.CAPTURED, image_uri="/a.jpg"))
    assert session.state is SessionState.DESCRIPTION


@pytest.mark.asyncio
async def test_successful_submit_saves_history():
    client = _FakeClient()
    session = _session(client)

    state = await session.submit("  factura  ")

    assert state is SessionState.RESULTS
    assert session.result.summary == "resumen"
    assert client.calls == [("file:///a.jpg", "  factura  ")]
    items = await session.history_store.list()
    assert items[0].extracted_text == "texto"
    assert items[0].image_uri == "file:///a.jpg"


@pytest.mark.asyncio
async def test_blank_description_stays_on_description():
    client = _FakeClient()
    session = _session(client)

    assert await session.submit("   ") is SessionState.DESCRIPTION
    assert session.notice is not None
    assert not session.notice.retryable
    assert client.calls == []


@pytest.mark.asyncio
async def test_failure_shows_notice_and_retry_resubmits():
    client = _FakeClient(outcomes=[NoInternetError(), AnalysisResult(summary="ok")])
    session = _session(client)

    assert await session.submit("nota") is SessionState.ERROR
    assert session.notice.retryable
    assert session.notice.message.startswith("No hay conexión")

    assert await session.retry() is SessionState.RESULTS
    assert client.calls == [("file:///a.jpg", "nota"), ("file:///a.jpg", "nota")]


@pytest.mark.asyncio
async def test_dismiss_only_failures_do_not_retry():
    client = _FakeClient(outcomes=[UnknownAnalysisError("boom")])
    session = _session(client)

    assert await session.submit("nota") is SessionState.ERROR
    assert await session.retry() is SessionState.ERROR
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_cancel_discards_late_result():
    gate = asyncio.Event()
    session = _session(_FakeClient(gate=gate))

    pending = asyncio.ensure_future(session.submit("nota"))
    await _settle()
    assert session.is_processing

    session.cancel()
    assert await pending is SessionState.DESCRIPTION
    assert session.notice is None
    assert session.error is None

    gate.set()
    await _settle()
    assert session.state is SessionState.DESCRIPTION
    assert session.result is None
    assert await session.history_store.list() == []


@pytest.mark.asyncio
async def test_safety_deadline_surfaces_processing_timeout():
    gate = asyncio.Event()
    session = _session(_FakeClient(gate=gate), safety=0.05)
    try:
        assert await session.submit("nota") is SessionState.ERROR
        assert isinstance(session.error, ProcessingTimeoutError)
        assert session.notice.message == PROCESSING_TIMEOUT_MESSAGE
    finally:
        gate.set()
        await _settle()
    assert session.state is SessionState.ERROR
    assert session.result is None


@pytest.mark.asyncio
async def test_slow_history_load_shows_empty_list():
    session = _session(_FakeClient(), history=_SlowHistory(), history_timeout=0.05)
    assert await session.load_history() == []
    assert session.state is SessionState.HISTORY


@pytest.mark.asyncio
async def test_history_view_edit_and_delete():
    session = _session(_FakeClient())
    await session.submit("nota")
    items = await session.load_history()
    item = items[0]

    updated = await session.update_history_item(item.id, {"editedSummary": "corregido"})
    assert updated.is_edited
    assert session.history[0].edited_summary == "corregido"

    result = session.view_history_item(session.history[0])
    assert result.summary == "corregido"
    assert result.extracted_text == "texto"
    assert session.state is SessionState.RESULTS

    assert await session.delete_history_item(item.id) == []
    assert session.state is SessionState.HISTORY


def test_reset_returns_to_camera():
    session = _session(_FakeClient())
    session.reset()
    assert session.state is SessionState.CAMERA
    assert session.image_uri is None
