"""UI layer -- starfield render loop, Rich dashboard and output formatters."""

from .app import SpeedtestApp
from .canvas import TerminalCanvas
from .dashboard import (
    build_error_view,
    build_main_view,
    build_view,
    console,
    gauge_content,
    metric_cards,
    print_final_results,
    print_header,
    render_gauge,
)
from .error_view import ErrorState
from .formatting import format_latency, format_speed
from .output import create_result_json, format_phase_line, format_text_result
from .render import Particle, RenderLoop, gauge_angle

__all__ = [
    "ErrorState",
    "Particle",
    "RenderLoop",
    "SpeedtestApp",
    "TerminalCanvas",
    "build_error_view",
    "build_main_view",
    "build_view",
    "console",
    "create_result_json",
    "format_latency",
    "format_phase_line",
    "format_speed",
    "format_text_result",
    "gauge_angle",
    "gauge_content",
    "metric_cards",
    "print_final_results",
    "print_header",
    "render_gauge",
]
