"""
Starfield render loop.

Runs for as long as the dashboard is mounted, independent of the test
workflow.  Each frame it fades the canvas, flies every particle towards the
viewer, recycles the ones that pass it, projects them with a simple
perspective transform, and updates the gauge angle.  Movement is scaled by
the elapsed wall-clock time so the animation speed does not depend on the
frame rate.
"""
from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from client.constants import (
    DEFAULT_FPS,
    DEGREES_PER_MBPS,
    FADE_ALPHA,
    IDLE_SPEED,
    MAX_DEPTH,
    MAX_GAUGE_ANGLE,
    MAX_PARTICLE_SIZE,
    MIN_PARTICLE_SIZE,
    PIXELS_PER_PARTICLE,
    RUNNING_SPEED,
    SPIN_STEP_DEGREES,
    SPIN_TICK_SECONDS,
)
from client.session import TestSession, ViewState

from .canvas import TerminalCanvas

_MAX_FRAME_DT = 0.25  # cap after a stall (suspended terminal, debugger)


@dataclass
class Particle:
    """A star: viewport position, distance from the viewer, base size."""

    x: float
    y: float
    depth: float
    size: float


def gauge_angle(download_mbps: float) -> float:
    """Map a download figure linearly onto the dial, capped below a full turn."""
    return min(max(download_mbps, 0.0) * DEGREES_PER_MBPS, MAX_GAUGE_ANGLE)


class RenderLoop:
    """
    Per-frame particle simulation and gauge animation.

    *snapshot* returns the current ``TestSession``; it is read once per
    frame and never modified.  *view* is the gauge state this loop owns.
    """

    def __init__(
        self,
        snapshot: Callable[[], TestSession],
        view: ViewState,
        canvas: TerminalCanvas,
        fps: int = DEFAULT_FPS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.snapshot = snapshot
        self.view = view
        self.canvas = canvas
        self.interval = 1.0 / fps
        self.particles: List[Particle] = []
        self.width = 0.0
        self.height = 0.0
        self.on_frame: Optional[Callable[[TestSession], None]] = None

        self._rng = rng or random.Random()
        self._clock = clock
        self._handle: Optional[asyncio.TimerHandle] = None
        self._last_tick = 0.0
        self._spin_elapsed = 0.0

    # -- Particle set -------------------------------------------------------

    def resize(self, width: float, height: float) -> None:
        """Discard the particle set and rebuild it for a new viewport."""
        self.width = float(width)
        self.height = float(height)
        count = int(self.width * self.height // PIXELS_PER_PARTICLE)
        self.particles = [self._spawn() for _ in range(count)]

    def attach(self, canvas: TerminalCanvas) -> None:
        self.canvas = canvas
        self.resize(canvas.width, canvas.height)

    def _spawn(self) -> Particle:
        return Particle(
            x=self._rng.random() * self.width,
            y=self._rng.random() * self.height,
            # 1 - random() lies in (0, 1], so depth never starts at 0.
            depth=MAX_DEPTH * (1.0 - self._rng.random()),
            size=self._rng.uniform(MIN_PARTICLE_SIZE, MAX_PARTICLE_SIZE),
        )

    def _recycle(self, p: Particle) -> None:
        p.depth = MAX_DEPTH
        p.x = self._rng.random() * self.width
        p.y = self._rng.random() * self.height

    # -- Simulation ---------------------------------------------------------

    def update(self, dt: float) -> TestSession:
        """Advance particles and gauge by *dt* seconds; return the snapshot used."""
        session = self.snapshot()
        step = (RUNNING_SPEED if session.running else IDLE_SPEED) * dt

        for p in self.particles:
            p.depth -= step
            if p.depth <= 0:
                self._recycle(p)

        self._update_gauge(session, dt)
        return session

    def _update_gauge(self, session: TestSession, dt: float) -> None:
        if session.running:
            self._spin_elapsed += dt
            ticks = int(self._spin_elapsed // SPIN_TICK_SECONDS)
            if ticks:
                self._spin_elapsed -= ticks * SPIN_TICK_SECONDS
                self.view.rotation_angle = (
                    self.view.rotation_angle + ticks * SPIN_STEP_DEGREES
                ) % 360.0
        else:
            self._spin_elapsed = 0.0
            self.view.rotation_angle = gauge_angle(session.progress.download_mbps)

    def project(self, p: Particle) -> Tuple[float, float, float]:
        """Perspective-project *p*; returns ``(x, y, size)`` in viewport pixels."""
        scale = MAX_DEPTH / p.depth
        cx = self.width / 2
        cy = self.height / 2
        return (p.x - cx) * scale + cx, (p.y - cy) * scale + cy, p.size * scale

    def draw(self) -> None:
        for p in self.particles:
            x, y, size = self.project(p)
            self.canvas.dot(x, y, size / 2)

    def frame(self, dt: float) -> TestSession:
        """One full frame: fade, simulate, draw, notify."""
        self.canvas.fade(FADE_ALPHA)
        session = self.update(dt)
        self.draw()
        if self.on_frame:
            self.on_frame(session)
        return session

    # -- Scheduling ---------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        """Mount: build particles for the canvas and schedule the first frame."""
        if self._handle is not None:
            return
        loop = asyncio.get_running_loop()
        self.attach(self.canvas)
        self._last_tick = self._clock()
        self._handle = loop.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        now = self._clock()
        dt = min(max(now - self._last_tick, 0.0), _MAX_FRAME_DT)
        self._last_tick = now
        try:
            self.frame(dt)
        finally:
            if self._handle is not None:
                loop = asyncio.get_running_loop()
                self._handle = loop.call_later(self.interval, self._tick)

    def stop(self) -> None:
        """Unmount: cancel the pending frame and release the particle set."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.particles = []
        self._spin_elapsed = 0.0
