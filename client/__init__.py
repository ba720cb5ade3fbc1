"""Speedtest client library -- measurement service access and the test workflow."""

from .api import DownloadMeasurement, MeasurementClient, UploadPingMeasurement
from .cancellation import CancellationToken
from .errors import (
    CancellationError,
    MalformedResponseError,
    NetworkError,
    SpeedtestError,
)
from .orchestrator import Step, TestOrchestrator
from .session import Phase, Progress, TestError, TestSession, ViewState

__all__ = [
    "CancellationError",
    "CancellationToken",
    "DownloadMeasurement",
    "MalformedResponseError",
    "MeasurementClient",
    "NetworkError",
    "Phase",
    "Progress",
    "SpeedtestError",
    "Step",
    "TestError",
    "TestOrchestrator",
    "TestSession",
    "UploadPingMeasurement",
    "ViewState",
]
