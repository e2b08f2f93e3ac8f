"""Upload-to-result orchestration.

Architecture:
    select(upload) -> validate -> [preview task] + [submit -> normalize | fallback]

Each accepted upload opens a new cycle identified by a monotonically
increasing token. Preview and submission run as independent tasks on the
event loop; whichever finishes applies its outcome only if its token is still
the current one, so responses from superseded cycles are dropped on arrival.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from tumorlens.config import MAX_UPLOAD_BYTES
from tumorlens.pipeline.client import TransportError
from tumorlens.pipeline.normalizer import ClassificationResult, FormatError, fallback, normalize
from tumorlens.pipeline.preview import encode_preview
from tumorlens.pipeline.samples import SampleUnavailableError, load_sample
from tumorlens.pipeline.validator import RejectionReason, UploadRejectedError, validate

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from pathlib import Path
    from typing import Any

    from tumorlens.pipeline.client import PredictionClient
    from tumorlens.pipeline.validator import ImageUpload

logger = logging.getLogger(__name__)

NOTIFICATION_BACKLOG: int = 50


class SessionStatus(StrEnum):
    IDLE = "idle"
    PREVIEWING = "previewing"
    LOADING = "loading"
    LOADED = "loaded"
    FALLBACK_LOADED = "fallback_loaded"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of what the UI should render."""

    status: SessionStatus = SessionStatus.IDLE
    cycle: int = 0
    image: str | None = None
    result: ClassificationResult | None = None


class NotificationKind(StrEnum):
    INVALID_TYPE = "invalid_type"
    TOO_LARGE = "too_large"
    PROCESSING = "processing"
    ANALYSIS_COMPLETE = "analysis_complete"
    API_UNAVAILABLE = "api_unavailable"
    UNEXPECTED_RESPONSE = "unexpected_response"
    DEMO_RESULTS = "demo_results"
    SAMPLE_LOADED = "sample_loaded"
    SAMPLE_FAILED = "sample_failed"
    FAILURE = "failure"


@dataclass(frozen=True)
class Notification:
    """Transient, advisory status message for the user."""

    kind: NotificationKind
    title: str
    description: str
    level: str = "info"


_REJECTION_NOTICES: dict[RejectionReason, Notification] = {
    RejectionReason.NOT_AN_IMAGE: Notification(
        kind=NotificationKind.INVALID_TYPE,
        title="Invalid File Type",
        description="Please upload an image file (JPEG, PNG, etc.)",
        level="destructive",
    ),
    RejectionReason.TOO_LARGE: Notification(
        kind=NotificationKind.TOO_LARGE,
        title="File Too Large",
        description="Please upload an image smaller than 10MB",
        level="destructive",
    ),
}


class ClassificationSession:
    """Sole owner and mutator of the UI session state."""

    def __init__(
        self,
        client: PredictionClient,
        max_file_size: int = MAX_UPLOAD_BYTES,
        sample_path: str | Path | None = None,
    ) -> None:
        self._client = client
        self._max_file_size = max_file_size
        self._sample_path = sample_path

        self._cycle = 0
        self._state = SessionState()
        self._tasks: set[asyncio.Task[None]] = set()
        self._notifications: deque[Notification] = deque(maxlen=NOTIFICATION_BACKLOG)

    # -- Public API ---------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def cycle(self) -> int:
        """Token of the most recent cycle (or reset)."""
        return self._cycle

    def select(self, upload: ImageUpload) -> asyncio.Task[None]:
        """Start a new cycle for a user-selected file.

        Must be called from a running event loop. Supersedes any cycle still
        in flight.

        Returns:
            The task that resolves once this cycle's outcome has been applied
            (or dropped, if a newer cycle has started meanwhile).

        Raises:
            UploadRejectedError: If the file fails validation. The session
                state is left untouched and nothing is submitted.
        """
        try:
            validate(upload, self._max_file_size)
        except UploadRejectedError as exc:
            logger.info("Rejected upload %r: %s", upload.filename, exc)
            self._notifications.append(_REJECTION_NOTICES[exc.reason])
            raise

        self._cycle += 1
        cycle = self._cycle
        self._state = SessionState(status=SessionStatus.PREVIEWING, cycle=cycle)
        logger.info("Cycle %d started for %r (%d bytes)", cycle, upload.filename, upload.size)

        self._spawn(self._attach_preview(cycle, upload))
        task = self._spawn(self._run_cycle(cycle, upload))
        self._state = replace(self._state, status=SessionStatus.LOADING)
        self._notify(NotificationKind.PROCESSING, "Processing Image", "Connecting to AI model for analysis...")
        return task

    async def select_sample(self) -> asyncio.Task[None]:
        """Start a cycle with the bundled sample image.

        Raises:
            SampleUnavailableError: If the sample cannot be read.
        """
        try:
            upload = await load_sample(self._sample_path)
        except SampleUnavailableError:
            logger.exception("Sample image unavailable")
            self._notify(NotificationKind.SAMPLE_FAILED, "Error", "Failed to load sample image", level="destructive")
            raise

        task = self.select(upload)
        self._notify(NotificationKind.SAMPLE_LOADED, "Sample Image Loaded", "Analyzing sample MRI image...")
        return task

    def reset(self) -> SessionState:
        """Return to idle, discarding anything still in flight."""
        self._cycle += 1
        self._state = SessionState(cycle=self._cycle)
        logger.info("Session reset (cycle token now %d)", self._cycle)
        return self._state

    async def wait(self) -> SessionState:
        """Wait for every outstanding preview and submission task."""
        while self._tasks:
            await asyncio.gather(*self._tasks)
        return self._state

    def drain_notifications(self) -> list[Notification]:
        drained = list(self._notifications)
        self._notifications.clear()
        return drained

    async def aclose(self) -> None:
        """Cancel outstanding tasks; used at application shutdown."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # -- Internal -----------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, cycle: int) -> bool:
        return cycle == self._cycle

    def _notify(self, kind: NotificationKind, title: str, description: str, level: str = "info") -> None:
        self._notifications.append(Notification(kind=kind, title=title, description=description, level=level))

    async def _attach_preview(self, cycle: int, upload: ImageUpload) -> None:
        try:
            image = await encode_preview(upload)
        except Exception:
            logger.exception("Preview encoding failed for cycle %d", cycle)
            return

        if not self._is_current(cycle):
            logger.debug("Dropping preview from superseded cycle %d", cycle)
            return
        result = self._state.result
        if result is not None:
            result = replace(result, uploaded_image=image)
        self._state = replace(self._state, image=image, result=result)

    async def _run_cycle(self, cycle: int, upload: ImageUpload) -> None:
        try:
            raw = await self._client.submit(upload)
            result = normalize(raw)
        except FormatError as exc:
            if self._drop_if_stale(cycle):
                return
            logger.warning("Cycle %d got an unrecognized response, using demo results: %s", cycle, exc)
            self._apply(cycle, fallback())
            self._notify(
                NotificationKind.UNEXPECTED_RESPONSE,
                "Unexpected Model Response",
                "The AI model returned results in an unrecognized format. Using demo mode instead.",
            )
            self._notify(
                NotificationKind.DEMO_RESULTS,
                "Demo Results",
                "Showing sample predictions (unrecognized model output)",
            )
            return
        except TransportError as exc:
            if self._drop_if_stale(cycle):
                return
            logger.warning("Cycle %d could not reach the model, using demo results: %s", cycle, exc)
            self._apply(cycle, fallback())
            self._notify(
                NotificationKind.API_UNAVAILABLE,
                "API Connection Failed",
                "Cannot connect to the AI model. Using demo mode instead.",
            )
            self._notify(NotificationKind.DEMO_RESULTS, "Demo Results", "Showing sample predictions (API unavailable)")
            return
        except Exception:
            if self._drop_if_stale(cycle):
                return
            logger.exception("Cycle %d failed unexpectedly", cycle)
            self._apply(cycle, fallback())
            self._notify(
                NotificationKind.FAILURE,
                "Analysis Failed",
                "Something went wrong while analyzing the image.",
                level="destructive",
            )
            self._notify(NotificationKind.DEMO_RESULTS, "Demo Results", "Showing sample predictions (API unavailable)")
            return

        if self._drop_if_stale(cycle):
            return
        self._apply(cycle, result)
        top = result.top
        logger.info("Cycle %d complete: %s (%.1f%%)", cycle, top.outcome.value, top.confidence)
        self._notify(
            NotificationKind.ANALYSIS_COMPLETE,
            "Analysis Complete",
            f"Primary prediction: {top.outcome.value} ({top.confidence:.1f}%)",
        )

    def _drop_if_stale(self, cycle: int) -> bool:
        if self._is_current(cycle):
            return False
        logger.debug("Dropping outcome of superseded cycle %d (current %d)", cycle, self._cycle)
        return True

    def _apply(self, cycle: int, result: ClassificationResult) -> None:
        image = self._state.image
        status = SessionStatus.FALLBACK_LOADED if result.is_fallback else SessionStatus.LOADED
        self._state = SessionState(
            status=status,
            cycle=cycle,
            image=image,
            result=replace(result, uploaded_image=image),
        )
