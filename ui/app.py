"""
Live dashboard lifetime.

``SpeedtestApp`` mounts one orchestrator, one render loop and a
``rich.live.Live`` display.  The render loop pushes a new frame to the
display every tick; the orchestrator runs tests on demand.  Leaving the
``async with`` block disposes all three.
"""
from __future__ import annotations

import asyncio
import os
import sys
from typing import IO, Optional, Tuple

from rich.console import Console, RenderableType
from rich.live import Live
from rich.prompt import Confirm, InvalidResponse

from client.api import MeasurementClient
from client.constants import DEFAULT_FPS, SETTLE_SECONDS
from client.orchestrator import TestOrchestrator
from client.session import TestSession

from .canvas import TerminalCanvas
from .dashboard import DASHBOARD_HEIGHT, build_view, console as default_console
from .error_view import RECOVER_LABEL, ErrorState
from .render import RenderLoop

MIN_FIELD_ROWS = 4
START_LABEL = "Start test?"


class SpeedtestApp:
    """Async context manager tying the workflow, the animation and the screen together."""

    def __init__(
        self,
        client: MeasurementClient,
        *,
        fps: int = DEFAULT_FPS,
        settle_seconds: float = SETTLE_SECONDS,
        console: Optional[Console] = None,
        stdin: Optional[IO] = None,
    ) -> None:
        self.console = console or default_console
        self.stdin = stdin or sys.stdin
        self._pending = b""
        self.orchestrator = TestOrchestrator(client, settle_seconds=settle_seconds)
        self.render_loop = RenderLoop(
            lambda: self.orchestrator.session,
            self.orchestrator.view,
            TerminalCanvas(*self._field_size()),
            fps=fps,
        )
        self.render_loop.on_frame = self._on_frame
        self._live: Optional[Live] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> SpeedtestApp:
        self.render_loop.start()
        self.show()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.orchestrator.aclose()
        self.render_loop.stop()
        self.hide()

    # -- Display ------------------------------------------------------------

    @property
    def canvas(self) -> TerminalCanvas:
        return self.render_loop.canvas

    def _field_size(self) -> Tuple[int, int]:
        width, height = self.console.size
        return width, max(MIN_FIELD_ROWS, height - DASHBOARD_HEIGHT)

    def renderable(self, session: Optional[TestSession] = None) -> RenderableType:
        return build_view(
            session or self.orchestrator.session,
            self.orchestrator.view,
            self.orchestrator.reset,
            self.canvas,
        )

    def show(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self.renderable(),
            console=self.console,
            auto_refresh=False,
            transient=True,
        )
        self._live.start()

    def hide(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def _on_frame(self, session: TestSession) -> None:
        size = self._field_size()
        if size != (self.canvas.cols, self.canvas.rows):
            self.render_loop.attach(TerminalCanvas(*size))
        if self._live is not None:
            self._live.update(self.renderable(session), refresh=True)

    # -- Actions ------------------------------------------------------------

    async def run_test(self) -> TestSession:
        return await self.orchestrator.run()

    async def offer_recovery(self, error: ErrorState) -> bool:
        """Ask whether to recover; on yes, return to the idle view."""
        self.hide()
        self.console.print(f"[red]Error: {error.message}[/red]")
        if not await self.ask(f"{RECOVER_LABEL}?"):
            return False
        error.recover()
        self.console.print(self.renderable())
        return True

    async def confirm_start(self) -> bool:
        """Ask before starting a run from the idle view; redisplay on yes."""
        self.hide()
        if not await self.ask(START_LABEL):
            return False
        self.show()
        return True

    # -- Prompting ----------------------------------------------------------

    async def ask(self, question: str, default: bool = True) -> bool:
        """
        Yes/no prompt answered on stdin.

        Stdin is watched by the event loop; cancelling the awaiting task
        (Ctrl+C) abandons the prompt at once.  End of input answers no.
        """
        prompt = Confirm(question, console=self.console)
        while True:
            self.console.print(prompt.make_prompt(default), end="")
            line = await self._read_line()
            if not line:
                return False
            value = line.strip()
            if not value:
                return default
            try:
                return prompt.process_response(value)
            except InvalidResponse as error:
                prompt.on_validate_error(value, error)

    def _take_line(self) -> Optional[str]:
        head, sep, tail = self._pending.partition(b"\n")
        if not sep:
            return None
        self._pending = tail
        return (head + sep).decode(errors="replace")

    async def _read_line(self) -> str:
        line = self._take_line()
        if line is not None:
            return line

        loop = asyncio.get_running_loop()
        fd = self.stdin.fileno()
        done: asyncio.Future = loop.create_future()

        def on_readable() -> None:
            if done.done():
                return
            chunk = os.read(fd, 1024)
            if not chunk:
                rest, self._pending = self._pending, b""
                done.set_result(rest.decode(errors="replace"))
                return
            self._pending += chunk
            ready = self._take_line()
            if ready is not None:
                done.set_result(ready)

        try:
            loop.add_reader(fd, on_readable)
        except NotImplementedError:
            # Proactor loops cannot watch a console handle.
            return await asyncio.to_thread(self.stdin.readline)
        try:
            return await done
        finally:
            loop.remove_reader(fd)
