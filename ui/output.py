"""
Output formatting -- JSON and plain text.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from client.session import Phase, Progress, TestSession


def create_result_json(session: TestSession, base_url: str = "") -> Dict[str, Any]:
    """Build a JSON-serialisable dict describing the final session."""
    p = session.progress
    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "completed": session.completed,
        "ping": round(p.ping_ms, 1),
        "download": {"speed_mbps": round(p.download_mbps, 2)},
        "upload": {"speed_mbps": round(p.upload_mbps, 2)},
    }
    if base_url:
        result["server"] = {"url": base_url}
    if session.error is not None:
        result["error"] = session.error.to_dict()
    return result


def format_text_result(progress: Progress) -> str:
    sep = "=" * 40
    return (
        f"{sep}\n"
        f"Speedtest Results\n"
        f"{sep}\n"
        f"Ping: {progress.ping_ms:.0f} ms\n"
        f"Download: {progress.download_mbps:.2f} Mbps\n"
        f"Upload: {progress.upload_mbps:.2f} Mbps\n"
        f"{sep}"
    )


def format_phase_line(session: TestSession) -> str:
    """One plain line per published snapshot, for ``--simple`` mode."""
    p = session.progress
    if session.error is not None:
        return f"[{session.error.phase.value}] {session.error.message}"
    if session.phase is Phase.DOWNLOAD_COMPLETE:
        return f"Download: {p.download_mbps:.2f} Mbps"
    if session.phase is Phase.UPLOAD_COMPLETE:
        return f"Upload: {p.upload_mbps:.2f} Mbps  Ping: {p.ping_ms:.0f} ms"
    if session.running:
        return f"Testing {session.phase.value}..."
    return "Test Complete" if session.completed else "Idle"
