from __future__ import annotations

"""client/apunto/services/processing.py

Processing session: the caller side of the analysis flow.

AnalysisSession drives the AnalysisClient and the HistoryStore through the
screen states (camera -> description -> processing -> results/error ->
history) without knowing anything about how those screens look.

It owns:
- the outer safety deadline around `AnalysisClient.analyze`
- user cancellation, via one CancellationToken per submission; a result or
  failure that arrives after its token was cancelled is discarded
- best-effort saving of successful results to history
- the short deadline used when loading history
"""

import asyncio
import enum
import logging
from typing import Any, Dict, List, Optional, Union

from apunto.schemas import (
    AnalysisResult,
    CaptureOutcome,
    CaptureStatus,
    HistoryItem,
    HistoryItemCreate,
    HistoryUpdate,
)
from apunto.services.analysis.client import AnalysisClient
from apunto.services.diagnostics.error_classifier import (
    AnalysisError,
    InvalidInputError,
    ProcessingTimeoutError,
    classify_failure,
)
from apunto.services.diagnostics.messages import ErrorNotice, describe_error
from apunto.services.history.store import HistoryStore

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    CAMERA = "CAMERA"
    DESCRIPTION = "DESCRIPTION"
    PROCESSING = "PROCESSING"
    RESULTS = "RESULTS"
    HISTORY = "HISTORY"
    ERROR = "ERROR"


class CancellationToken:
    """Marks one submission; cancelling it makes its outcome stale."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def _discard_outcome(task: asyncio.Task) -> None:
    # Abandoned requests still finish; retrieve their outcome so it is not reported as unhandled
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("Discarded late analysis failure: %s", exc)
    else:
        logger.info("Discarded late analysis result")


class AnalysisSession:
    def __init__(
        self,
        client: AnalysisClient,
        history: HistoryStore,
        *,
        safety_timeout_seconds: float = 120.0,
        history_load_timeout_seconds: float = 3.0,
    ):
        self.client = client
        self.history_store = history
        self.safety_timeout = safety_timeout_seconds
        self.history_load_timeout = history_load_timeout_seconds
        self.reset()

    def reset(self) -> None:
        """Back to the camera with nothing selected."""
        self.state = SessionState.CAMERA
        self.image_uri: Optional[str] = None
        self.description = ""
        self.capture_status: Optional[CaptureStatus] = None
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[AnalysisError] = None
        self.notice: Optional[ErrorNotice] = None
        self.history: List[HistoryItem] = []
        self.selected_item: Optional[HistoryItem] = None
        self._token: Optional[CancellationToken] = None

    @property
    def is_processing(self) -> bool:
        return self.state is SessionState.PROCESSING

    # ---- capture / describe ----

    def select_image(self, outcome: CaptureOutcome) -> bool:
        """Accept a capture outcome; only a captured image moves on to the description."""
        self.capture_status = outcome.status
        if not outcome.captured:
            logger.info("No image selected (%s)", outcome.status.value)
            return False

        self.image_uri = outcome.image_uri
        self.state = SessionState.DESCRIPTION
        return True

    # ---- processing ----

    async def submit(self, description: Optional[str] = None) -> SessionState:
        if description is not None:
            self.description = description

        if not self.image_uri or not self.description.strip():
            self.notice = describe_error(InvalidInputError("description is required"))
            return self.state

        token = CancellationToken()
        self._token = token
        self.error = None
        self.notice = None
        self.state = SessionState.PROCESSING

        image_uri, description = self.image_uri, self.description
        task = asyncio.ensure_future(self.client.analyze(image_uri, description))
        cancel_wait = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_wait},
                timeout=self.safety_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_wait.cancel()

        if self._is_stale(token):
            if not task.done():
                task.add_done_callback(_discard_outcome)
            else:
                _discard_outcome(task)
            return self.state

        if task not in done:
            logger.error("Safety timeout reached after %.0fs", self.safety_timeout)
            task.add_done_callback(_discard_outcome)
            self._fail(ProcessingTimeoutError("analysis is taking too long"))
            return self.state

        try:
            result = task.result()
        except Exception as exc:  # noqa: BLE001
            self._fail(classify_failure(exc))
            return self.state

        await self._save_result(image_uri, description, result)
        if self._is_stale(token):
            return self.state

        self.result = result
        self.selected_item = None
        self.state = SessionState.RESULTS
        return self.state

    def _is_stale(self, token: CancellationToken) -> bool:
        return token.cancelled or self._token is not token

    def _fail(self, error: AnalysisError) -> None:
        self.error = error
        self.notice = describe_error(error)
        self.state = SessionState.ERROR

    async def _save_result(self, image_uri: str, description: str, result: AnalysisResult) -> None:
        entry = HistoryItemCreate(
            image_uri=image_uri,
            description=description,
            extracted_text=result.extracted_text,
            summary=result.summary,
            label=result.label,
        )
        try:
            await self.history_store.save(entry)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not save analysis to history: %s", exc)

    def cancel(self) -> None:
        """Stop waiting on the current analysis. No error is shown."""
        if self._token is not None:
            self._token.cancel()
        if self.state is SessionState.PROCESSING:
            logger.info("Processing cancelled by user")
            self.state = SessionState.DESCRIPTION

    async def retry(self) -> SessionState:
        """Re-submit the same inputs after a retryable failure."""
        if self.error is None or not self.error.retryable:
            return self.state
        return await self.submit()

    # ---- history ----

    async def load_history(self, user_id: Optional[str] = None) -> List[HistoryItem]:
        self.state = SessionState.HISTORY
        try:
            items = await asyncio.wait_for(
                self.history_store.list(user_id), timeout=self.history_load_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Timed out loading history, showing an empty list")
            items = []
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not load history: %s", exc)
            items = []

        self.history = items
        logger.info("History loaded: %d items", len(items))
        return items

    def view_history_item(self, item: HistoryItem) -> AnalysisResult:
        """Show a past record as a result, preferring the user's corrections."""
        self.selected_item = item
        self.result = AnalysisResult(
            extracted_text=item.edited_extracted_text or item.extracted_text,
            summary=item.edited_summary or item.summary,
            label=item.label,
        )
        self.state = SessionState.RESULTS
        return self.result

    async def delete_history_item(self, item_id: str, user_id: Optional[str] = None) -> List[HistoryItem]:
        await self.history_store.delete(item_id, user_id)
        return await self.load_history(user_id)

    async def update_history_item(
        self, item_id: str, changes: Union[HistoryUpdate, Dict[str, Any]]
    ) -> Optional[HistoryItem]:
        updated = await self.history_store.update(item_id, changes)
        if updated is not None:
            self.history = [updated if item.id == item_id else item for item in self.history]
            if self.selected_item is not None and self.selected_item.id == item_id:
                self.selected_item = updated
        return updated
