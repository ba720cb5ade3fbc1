"""
Measurement service API client.

Issues the two remote measurement operations.  All HTTP work goes through a
single ``aiohttp.ClientSession`` managed via async-context-manager protocol
(``async with MeasurementClient(base_url) as client: ...``).  Every request
is raced against a ``CancellationToken``.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from .cancellation import CancellationToken
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_BASE_URL,
    DOWNLOAD_PATH,
    REQUEST_TIMEOUT,
    UPLOAD_PING_PATH,
)
from .errors import MalformedResponseError, NetworkError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

def _metric(data: Any, key: str) -> float:
    """Pull a non-negative finite number out of a JSON object."""
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")
    if key not in data:
        raise MalformedResponseError(f"Missing '{key}' in response")

    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"'{key}' is not a number: {value!r}")
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise MalformedResponseError(f"'{key}' out of range: {value!r}")
    return value


@dataclass(frozen=True)
class DownloadMeasurement:
    """Result of ``GET /speedtest/download``."""

    download_mbps: float

    @classmethod
    def from_dict(cls, data: Any) -> DownloadMeasurement:
        return cls(download_mbps=_metric(data, "download"))

    def to_dict(self) -> Dict[str, float]:
        return {"download": self.download_mbps}


@dataclass(frozen=True)
class UploadPingMeasurement:
    """Result of ``GET /speedtest/upload_ping``."""

    upload_mbps: float
    ping_ms: float

    @classmethod
    def from_dict(cls, data: Any) -> UploadPingMeasurement:
        return cls(
            upload_mbps=_metric(data, "upload"),
            ping_ms=_metric(data, "ping"),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"upload": self.upload_mbps, "ping": self.ping_ms}


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class MeasurementClient:
    """Async context-manager wrapping the measurement service endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> MeasurementClient:
        self._session = aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            timeout=aiohttp.ClientTimeout(total=self.timeout, connect=CONNECT_TIMEOUT),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "MeasurementClient must be used as an async context manager "
                "(async with MeasurementClient() as client: ...)"
            )
        return self._session

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _get_json(self, path: str) -> Any:
        session = self._ensure_session()
        url = self.url_for(path)
        logger.debug("GET %s", url)

        try:
            async with session.get(url) as resp:
                if resp.status < 200 or resp.status >= 300:
                    raise NetworkError(
                        f"{url} answered {resp.status} {resp.reason or ''}".rstrip(),
                        status=resp.status,
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    raise MalformedResponseError(f"{url} did not return JSON") from exc
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"{url} timed out") from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise NetworkError(f"{url} unreachable: {exc}") from exc

    # -- Public methods -----------------------------------------------------

    async def measure_download(self, token: CancellationToken) -> DownloadMeasurement:
        """Ask the service for a download throughput figure in Mbps."""
        token.raise_if_cancelled()
        data = await token.guard(self._get_json(DOWNLOAD_PATH))
        token.raise_if_cancelled()
        return DownloadMeasurement.from_dict(data)

    async def measure_upload_and_ping(self, token: CancellationToken) -> UploadPingMeasurement:
        """Ask the service for upload throughput (Mbps) and round-trip latency (ms)."""
        token.raise_if_cancelled()
        data = await token.guard(self._get_json(UPLOAD_PING_PATH))
        token.raise_if_cancelled()
        return UploadPingMeasurement.from_dict(data)
