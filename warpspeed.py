#!/usr/bin/env python3
"""
Warpspeed -- download, upload and ping against a measurement service, with a
starfield dashboard.

Usage::

    python warpspeed.py                 # live dashboard
    python warpspeed.py --simple        # plain text
    python warpspeed.py --json          # JSON to stdout
    python warpspeed.py --fps 60        # smoother animation
    python warpspeed.py --no-retry      # exit on failure instead of offering a retry
    python warpspeed.py --show-config   # print effective configuration and exit

The service location comes from ``WARPSPEED_BASE_URL`` or the deployment
config file, never from the command line.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from client.api import MeasurementClient
from client.config import config_path, load_config
from client.constants import DEFAULT_FPS, MAX_FPS, MIN_FPS
from client.orchestrator import TestOrchestrator
from client.session import TestSession
from ui.app import SpeedtestApp
from ui.dashboard import console, print_final_results, print_header
from ui.error_view import ErrorState
from ui.output import create_result_json, format_phase_line, format_text_result

err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(fps: int, settle_seconds: float, request_timeout: float) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_FPS <= fps <= MAX_FPS:
        raise ValueError(f"Frame rate must be between {MIN_FPS} and {MAX_FPS}")
    if settle_seconds < 0:
        raise ValueError("settle_seconds must not be negative")
    if request_timeout <= 0:
        raise ValueError("request_timeout must be positive")


def _configure_logging(verbose: bool, dashboard: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif dashboard:
        level = logging.ERROR  # the failure view already reports warnings
    else:
        level = logging.WARNING
    # stdout carries results in the headless modes
    handler = RichHandler(console=console if dashboard else err_console, show_path=False)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

async def _run_dashboard(
    client: MeasurementClient,
    fps: int,
    settle_seconds: float,
    retry: bool,
) -> TestSession:
    async with SpeedtestApp(client, fps=fps, settle_seconds=settle_seconds) as app:
        while True:
            session = await app.run_test()
            error = ErrorState.from_session(session, app.orchestrator.reset)
            if error is None:
                break
            if not retry or not await app.offer_recovery(error):
                break
            if not await app.confirm_start():
                break

    if session.completed:
        print_final_results(session.progress)
    elif session.error is not None and not retry:
        console.print(f"[red]Error: {session.error.message}[/red]")
    return session


async def _run_headless(
    client: MeasurementClient,
    settle_seconds: float,
    simple: bool,
) -> TestSession:
    orchestrator = TestOrchestrator(client, settle_seconds=settle_seconds)
    if simple:
        orchestrator.on_change = lambda s: print(format_phase_line(s))
    try:
        session = await orchestrator.run()
    finally:
        orchestrator.on_change = None
        await orchestrator.aclose()

    if simple and session.completed:
        print(format_text_result(session.progress))
    return session


async def run_speedtest(
    *,
    json_output: bool = False,
    simple: bool = False,
    fps: int = DEFAULT_FPS,
    retry: bool = True,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Execute the measurement workflow and return a JSON-serialisable dict."""
    config = config or load_config()
    base_url = config["base_url"]
    settle_seconds = float(config["settle_seconds"])
    show_ui = not json_output and not simple

    if show_ui:
        print_header()

    async with MeasurementClient(base_url, timeout=float(config["request_timeout"])) as client:
        if show_ui:
            session = await _run_dashboard(client, fps, settle_seconds, retry)
        else:
            session = await _run_headless(client, settle_seconds, simple)

    result = create_result_json(session, base_url)
    if json_output:
        print(json.dumps(result, indent=2))
    return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Warpspeed -- network speed test with a starfield dashboard",
    )
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--fps", type=int, default=None, metavar="N", help="Dashboard frame rate (default: 30)")
    parser.add_argument("--no-retry", action="store_true", help="Do not offer a retry after a failure")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests and phase changes")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration and exit")

    args = parser.parse_args()
    config = load_config()

    if args.show_config:
        console.print(f"[dim]Config file:[/dim] {config_path()}")
        for key, value in config.items():
            console.print(f"  {key:<16} {value}")
        return

    fps = args.fps if args.fps is not None else config["fps"]
    try:
        _validate(
            fps=fps,
            settle_seconds=config["settle_seconds"],
            request_timeout=config["request_timeout"],
        )
    except (TypeError, ValueError) as exc:
        err_console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    interactive = not args.json and not args.simple and console.is_terminal
    _configure_logging(args.verbose, dashboard=interactive)

    try:
        result = asyncio.run(
            run_speedtest(
                json_output=args.json,
                simple=args.simple or not (args.json or console.is_terminal),
                fps=fps,
                retry=not args.no_retry,
                config=config,
            )
        )
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        err_console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)

    if "error" in result:
        sys.exit(1)


if __name__ == "__main__":
    main()
