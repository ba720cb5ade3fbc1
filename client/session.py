"""
Session state shared between the orchestrator and the render loop.

``TestSession`` is immutable: the orchestrator publishes a new instance on
every transition, so a reader always sees phase and progress that belong
together.  ``ViewState`` is the only mutable piece and belongs to the view.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Phase(str, Enum):
    IDLE = "idle"
    DOWNLOAD = "download"
    DOWNLOAD_COMPLETE = "downloadComplete"
    UPLOAD = "upload"
    UPLOAD_COMPLETE = "uploadComplete"


@dataclass(frozen=True)
class Progress:
    """Latest figures for the current run."""

    download_mbps: float = 0.0
    upload_mbps: float = 0.0
    ping_ms: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "download_mbps": round(self.download_mbps, 2),
            "upload_mbps": round(self.upload_mbps, 2),
            "ping_ms": round(self.ping_ms, 1),
        }


@dataclass(frozen=True)
class TestError:
    """A surfaced (non-cancellation) failure."""

    __test__ = False  # not a pytest test class

    phase: Phase
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"phase": self.phase.value, "message": self.message}


@dataclass(frozen=True)
class TestSession:
    """Snapshot of the orchestrator's authoritative state."""

    __test__ = False

    phase: Phase = Phase.IDLE
    progress: Progress = field(default_factory=Progress)
    error: Optional[TestError] = None

    @property
    def running(self) -> bool:
        return self.phase is not Phase.IDLE

    @property
    def completed(self) -> bool:
        """Idle after a finished run, as opposed to the initial idle state."""
        return (
            self.phase is Phase.IDLE
            and self.error is None
            and (self.progress.download_mbps > 0 or self.progress.upload_mbps > 0)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "progress": self.progress.to_dict(),
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class ViewState:
    """Gauge rotation in degrees, in ``[0, 360)``."""

    rotation_angle: float = 0.0
