"""
Rich-based terminal dashboard.

Builds the renderables for one frame: the starfield band, the gauge and its
phase-specific content, the three metric cards, or the failure view when the
session carries an error.  Number formatting lives in ``ui.formatting``.
"""
from __future__ import annotations

from typing import Callable, Optional

from rich import box
from rich.align import Align
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from client.session import Phase, Progress, TestSession, ViewState

from .canvas import TerminalCanvas
from .error_view import RECOVER_LABEL, TITLE, ErrorState
from .formatting import format_latency, format_speed

console = Console()

GAUGE_WIDTH = 36
_SPINNER_LENGTH = 6

# Rows used by everything below the starfield band.
DASHBOARD_HEIGHT = 14

_PHASE_STYLE = {
    Phase.DOWNLOAD: "bold blue",
    Phase.UPLOAD: "bold green",
}


# ---------------------------------------------------------------------------
# Gauge
# ---------------------------------------------------------------------------

def render_gauge(angle: float, session: TestSession) -> Text:
    """
    Draw the dial as a bar of ``GAUGE_WIDTH`` segments.

    While a run is active the angle drives a spinning highlight; when idle
    it is proportional to the download figure and fills the bar.
    """
    style = _PHASE_STYLE.get(session.phase, "grey62")
    pos = int(angle / 360.0 * GAUGE_WIDTH) % GAUGE_WIDTH
    bar = Text(no_wrap=True)

    if session.running:
        lit = {(pos + i) % GAUGE_WIDTH for i in range(_SPINNER_LENGTH)}
        for i in range(GAUGE_WIDTH):
            bar.append("━", style=style if i in lit else "grey23")
    else:
        filled = round(angle / 360.0 * GAUGE_WIDTH)
        bar.append("━" * filled, style=style)
        bar.append("━" * (GAUGE_WIDTH - filled), style="grey23")
    return bar


def gauge_content(session: TestSession) -> Text:
    """Text shown in the middle of the gauge for the current phase."""
    p = session.progress
    phase = session.phase

    if phase is Phase.DOWNLOAD:
        return Text.assemble(
            ("↓ Downloading\n", "bold blue"),
            (f"{p.download_mbps:.2f}", "bold white"),
            (" Mbps", "blue"),
        )
    if phase is Phase.DOWNLOAD_COMPLETE:
        return Text.assemble(
            (f"{p.download_mbps:.2f} ↓", "bold blue"),
            (" Mbps\n", "blue"),
            ("Preparing upload test...", "grey70"),
        )
    if phase is Phase.UPLOAD:
        return Text.assemble(
            ("↑ Uploading\n", "bold green"),
            (f"{p.upload_mbps:.2f}", "bold white"),
            (" Mbps", "green"),
        )
    if phase is Phase.UPLOAD_COMPLETE:
        return Text.assemble(
            (f"{p.upload_mbps:.2f} ↑", "bold green"),
            (" Mbps\n", "green"),
            ("Test Complete", "grey70"),
        )
    if session.completed:
        return Text.assemble(
            (f"{p.download_mbps:.2f} ↓  ", "bold blue"),
            (f"{p.upload_mbps:.2f} ↑  ", "bold green"),
            (f"{p.ping_ms:.0f} ms\n", "bold yellow"),
            ("Test Complete", "grey70"),
        )
    return Text("⚡ Ready to Test", style="grey70")


# ---------------------------------------------------------------------------
# Metric cards
# ---------------------------------------------------------------------------

def metric_cards(progress: Progress) -> Table:
    table = Table(box=box.ROUNDED, expand=False, show_edge=True)
    table.add_column("Download", justify="center", min_width=14)
    table.add_column("Upload", justify="center", min_width=14)
    table.add_column("Ping", justify="center", min_width=10)
    table.add_row(
        f"[bold]{format_speed(progress.download_mbps)}[/bold]",
        f"[bold]{format_speed(progress.upload_mbps)}[/bold]",
        f"[bold]{format_latency(progress.ping_ms)}[/bold]",
    )
    return table


# ---------------------------------------------------------------------------
# Whole-frame views
# ---------------------------------------------------------------------------

def build_main_view(
    session: TestSession,
    view: ViewState,
    canvas: Optional[TerminalCanvas] = None,
) -> RenderableType:
    hint = "[dim]Press Ctrl+C to stop the test[/dim]" if session.running else ""
    body = Group(
        Align.center(render_gauge(view.rotation_angle, session)),
        Align.center(gauge_content(session)),
        Text(""),
        Align.center(metric_cards(session.progress)),
        Align.center(Text.from_markup(hint)),
    )
    panel = Panel(body, title="[bold cyan]SpeedTest[/bold cyan]", border_style="cyan")
    if canvas is None:
        return panel
    return Group(canvas, panel)


def build_error_view(
    error: ErrorState,
    canvas: Optional[TerminalCanvas] = None,
) -> RenderableType:
    lines = [
        Text("⚠", style="bold red", justify="center"),
        Text(TITLE, style="bold white", justify="center"),
        Text(f"{error.phase_name} phase: {error.message}", style="grey70", justify="center"),
    ]
    if error.has_partial_results:
        lines.append(Text(""))
        lines.append(Align.center(metric_cards(error.partial)))
    lines.append(Text(f"[ {RECOVER_LABEL} ]", style="bold blue", justify="center"))

    panel = Panel(Group(*lines), border_style="red")
    if canvas is None:
        return panel
    return Group(canvas, panel)


def build_view(
    session: TestSession,
    view: ViewState,
    reset: Callable[[], None],
    canvas: Optional[TerminalCanvas] = None,
) -> RenderableType:
    """The failure view replaces the main view whenever the session has an error."""
    error = ErrorState.from_session(session, reset)
    if error is not None:
        return build_error_view(error, canvas)
    return build_main_view(session, view, canvas)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]SpeedTest[/bold cyan]\n"
            "[dim]Download, upload and ping against your measurement service[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_final_results(progress: Progress) -> None:
    console.print()
    console.print(
        Panel.fit(
            f"[bold white]   Ping:[/bold white]  [bold yellow]{format_latency(progress.ping_ms)}[/bold yellow]\n"
            f"[bold white]   Download:[/bold white]  [bold blue]{format_speed(progress.download_mbps)}[/bold blue]\n"
            f"[bold white]   Upload:[/bold white]  [bold green]{format_speed(progress.upload_mbps)}[/bold green]",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()
