"""
Test orchestrator -- the phase state machine.

Sequences the measurement steps::

    Idle -> Download -> DownloadComplete -(settle)-> Upload -> UploadComplete -(settle)-> Idle

Each step is a cancellable coroutine; a settle wait separates them.  The
orchestrator is the only writer of ``TestSession`` and publishes a fresh
immutable snapshot on every transition.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, Optional, Tuple

from .api import MeasurementClient
from .cancellation import CancellationToken
from .constants import SETTLE_SECONDS
from .errors import CancellationError, SpeedtestError
from .session import Phase, Progress, TestError, TestSession, ViewState

logger = logging.getLogger(__name__)

Measure = Callable[[CancellationToken], Awaitable[Dict[str, float]]]


@dataclass(frozen=True)
class Step:
    """One measurement stage of the pipeline."""

    phase: Phase
    done_phase: Phase
    label: str
    measure: Measure


def error_message(label: str) -> str:
    return f"Failed to test {label}. Please check your connection and try again."


class TestOrchestrator:
    """
    Runs one measurement workflow at a time.

    ``start()`` is a no-op while a run is active.  ``cancel()`` and
    ``reset()`` take effect synchronously: the published snapshot is idle
    before they return, and whatever the abandoned run later receives is
    dropped.
    """

    __test__ = False

    def __init__(
        self,
        client: MeasurementClient,
        settle_seconds: float = SETTLE_SECONDS,
    ) -> None:
        self.client = client
        self.settle_seconds = settle_seconds
        self.view = ViewState()
        self.on_change: Optional[Callable[[TestSession], None]] = None

        self._session = TestSession()
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    # -- Snapshot access ----------------------------------------------------

    @property
    def session(self) -> TestSession:
        return self._session

    @property
    def active(self) -> bool:
        return self._token is not None

    # -- Pipeline -----------------------------------------------------------

    def steps(self) -> Tuple[Step, ...]:
        return (
            Step(Phase.DOWNLOAD, Phase.DOWNLOAD_COMPLETE, "download", self._measure_download),
            Step(Phase.UPLOAD, Phase.UPLOAD_COMPLETE, "upload and ping", self._measure_upload_ping),
        )

    async def _measure_download(self, token: CancellationToken) -> Dict[str, float]:
        result = await self.client.measure_download(token)
        return {"download_mbps": result.download_mbps}

    async def _measure_upload_ping(self, token: CancellationToken) -> Dict[str, float]:
        result = await self.client.measure_upload_and_ping(token)
        return {"upload_mbps": result.upload_mbps, "ping_ms": result.ping_ms}

    # -- Public operations --------------------------------------------------

    def start(self) -> Optional[asyncio.Task]:
        """Begin a run and return its task, or ``None`` if one is already active."""
        if self._token is not None:
            logger.debug("start() ignored: run already active")
            return None

        loop = asyncio.get_running_loop()
        token = CancellationToken()
        self._token = token
        self._publish(TestSession(phase=Phase.DOWNLOAD))
        self._task = loop.create_task(self._run(token))
        return self._task

    async def run(self) -> TestSession:
        """Start a run (or join the active one) and return the final snapshot."""
        task = self.start() or self._task
        if task is not None:
            await task
        return self._session

    def cancel(self) -> None:
        token, self._token = self._token, None
        if token is not None:
            token.cancel()
            logger.debug("Run cancelled")
        self._publish(TestSession())

    def reset(self) -> None:
        self.cancel()
        self.view.rotation_angle = 0.0

    async def aclose(self) -> None:
        """Dispose: signal cancellation and wait for the run to unwind."""
        self.cancel()
        task, self._task = self._task, None
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    # -- Internals ----------------------------------------------------------

    def _publish(self, session: TestSession) -> None:
        self._session = session
        if self.on_change:
            self.on_change(session)

    def _commit(self, token: CancellationToken, **changes) -> None:  # noqa: ANN003
        """Publish on behalf of *token*'s run, or abort if that run was abandoned."""
        if token is not self._token:
            raise CancellationError()
        self._publish(replace(self._session, **changes))

    async def _run(self, token: CancellationToken) -> None:
        try:
            for index, step in enumerate(self.steps()):
                if index:
                    self._commit(token, phase=step.phase)
                logger.debug("Phase -> %s", step.phase.value)

                try:
                    changes = await step.measure(token)
                except CancellationError:
                    raise
                except SpeedtestError as exc:
                    logger.warning("Error during %s test: %s", step.label, exc)
                    self._fail(token, step)
                    return
                except Exception:
                    logger.exception("Unexpected error during %s test", step.label)
                    self._fail(token, step)
                    raise

                progress: Progress = replace(self._session.progress, **changes)
                self._commit(token, phase=step.done_phase, progress=progress)
                await token.sleep(self.settle_seconds)

            self._commit(token, phase=Phase.IDLE)
            logger.debug("Run complete: %s", self._session.progress)
        except CancellationError:
            logger.debug("Run abandoned after cancellation")
            if self._token is token:
                # Cancelled from inside a step rather than through cancel().
                self._token = None
                self._publish(TestSession())
        finally:
            if self._token is token:
                self._token = None

    def _fail(self, token: CancellationToken, step: Step) -> None:
        """Stop the run and publish an idle session carrying the step's error."""
        if token is not self._token or token.cancelled:
            return
        self._token = None
        token.cancel()
        self._publish(
            replace(
                self._session,
                phase=Phase.IDLE,
                error=TestError(phase=step.phase, message=error_message(step.label)),
            )
        )
