"""
Character-cell frame buffer for the starfield.

The render loop works in virtual pixels; each terminal cell covers
``CELL_WIDTH_PX`` x ``CELL_HEIGHT_PX`` of them.  Every cell keeps an
intensity in ``[0, 1]`` that fades a little each frame, which leaves
trails behind moving particles.
"""
from __future__ import annotations

from typing import List

from rich.console import Console, ConsoleOptions, RenderResult
from rich.text import Text

from client.constants import CELL_HEIGHT_PX, CELL_WIDTH_PX

_SHADES = " .·•●"
_STYLES = ("", "grey27", "grey50", "grey74", "white")


class TerminalCanvas:
    """A ``cols`` x ``rows`` grid of intensities, renderable by ``rich``."""

    def __init__(self, cols: int, rows: int) -> None:
        self.cols = max(1, cols)
        self.rows = max(1, rows)
        self._cells: List[List[float]] = [[0.0] * self.cols for _ in range(self.rows)]

    # -- Geometry -----------------------------------------------------------

    @property
    def width(self) -> float:
        return float(self.cols * CELL_WIDTH_PX)

    @property
    def height(self) -> float:
        return float(self.rows * CELL_HEIGHT_PX)

    def intensity(self, col: int, row: int) -> float:
        return self._cells[row][col]

    # -- Drawing ------------------------------------------------------------

    def clear(self) -> None:
        for row in self._cells:
            for c in range(self.cols):
                row[c] = 0.0

    def fade(self, alpha: float) -> None:
        """Blend a translucent black overlay over the whole buffer."""
        keep = 1.0 - alpha
        for row in self._cells:
            for c in range(self.cols):
                row[c] *= keep

    def dot(self, x: float, y: float, radius: float) -> None:
        """Light every cell touched by a dot centred on ``(x, y)`` pixels."""
        c0 = int((x - radius) // CELL_WIDTH_PX)
        c1 = int((x + radius) // CELL_WIDTH_PX)
        r0 = int((y - radius) // CELL_HEIGHT_PX)
        r1 = int((y + radius) // CELL_HEIGHT_PX)
        if c1 < 0 or r1 < 0 or c0 >= self.cols or r0 >= self.rows:
            return

        # Small dots only partly cover a cell.
        level = min(1.0, 0.4 + radius / CELL_WIDTH_PX)
        for r in range(max(r0, 0), min(r1, self.rows - 1) + 1):
            row = self._cells[r]
            for c in range(max(c0, 0), min(c1, self.cols - 1) + 1):
                if row[c] < level:
                    row[c] = level

    # -- Rich protocol ------------------------------------------------------

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        top = len(_SHADES) - 1
        for row in self._cells:
            line = Text(no_wrap=True, overflow="crop")
            for value in row:
                idx = min(int(value * top + 0.5), top)
                line.append(_SHADES[idx], style=_STYLES[idx])
            yield line
