"""
Failure view derived from the session.

An ``ErrorState`` exists exactly when the session carries an error.  It
names the failed phase, keeps whatever figures were already committed, and
offers one action: ``recover()``, which fully resets the orchestrator.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from client.session import Phase, Progress, TestSession

TITLE = "Oops! Something went wrong"
RECOVER_LABEL = "Try Again"

_PHASE_NAMES = {
    Phase.DOWNLOAD: "Download",
    Phase.UPLOAD: "Upload",
}


@dataclass(frozen=True)
class ErrorState:
    phase: Phase
    message: str
    partial: Progress
    _reset: Callable[[], None]

    @classmethod
    def from_session(
        cls,
        session: TestSession,
        reset: Callable[[], None],
    ) -> Optional[ErrorState]:
        if session.error is None:
            return None
        return cls(
            phase=session.error.phase,
            message=session.error.message,
            partial=session.progress,
            _reset=reset,
        )

    @property
    def phase_name(self) -> str:
        return _PHASE_NAMES.get(self.phase, self.phase.value)

    @property
    def has_partial_results(self) -> bool:
        return self.partial.download_mbps > 0 or self.partial.upload_mbps > 0

    def recover(self) -> None:
        self._reset()
