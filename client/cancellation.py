"""
Cooperative cancellation for the measurement workflow.

A single ``CancellationToken`` is created per run and passed through every
step.  It is checked at entry to each measurement, raced against each
in-flight request, and checked again after each settle wait.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .errors import CancellationError

T = TypeVar("T")


class CancellationToken:
    """One-shot signal shared between the orchestrator and its steps."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await *awaitable* unless the token fires first.

        When the token wins, the pending work is cancelled and its outcome
        discarded, even if a response arrives in the same iteration.
        """
        self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if self._event.is_set():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
            raise CancellationError()

        return work.result()

    async def sleep(self, seconds: float) -> None:
        """Settle wait that ends early with ``CancellationError``."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        self.raise_if_cancelled()
