"""
Owned periodic task
===================

Base for the client-side loops.  Each instance owns exactly one
``asyncio.Task``; whoever represents "this screen / session is active"
holds the instance and must call ``stop()`` on teardown (or use it as an
async context manager, which does so unconditionally).

Scheduling
----------
* The first tick runs as soon as the loop starts.
* The next tick is scheduled only after the previous one has returned, so
  ticks never overlap.
* ``stop()`` signals the stop event, cancels the task and awaits it; no
  sleep or tick is left scheduled afterwards.
* A tick that raises is logged and the loop carries on.
* Subclasses end the loop from inside a tick with ``finish()``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class PeriodicTask(ABC):
    name = "periodic-task"

    def __init__(self, interval_seconds: float):
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @abstractmethod
    async def tick(self) -> None:
        """Run one iteration."""

    # ── Public API ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_seconds: Optional[float] = None) -> None:
        if self.running:
            return
        if interval_seconds is not None:
            self.interval_seconds = interval_seconds
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("%s started (interval=%ss)", self.name, self.interval_seconds)

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        task, self._task = self._task, None
        if task is None:
            return
        if task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("%s stopped", self.name)

    def finish(self) -> None:
        """Ask the loop to exit after the current tick."""
        if self._stop_event:
            self._stop_event.set()

    async def wait_closed(self) -> None:
        """Block until the loop exits on its own (via ``finish``)."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        """Periodic loop: run a tick then sleep."""
        assert self._stop_event is not None
        stop_event = self._stop_event
        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Unhandled error in %s tick", self.name)
            if stop_event.is_set():
                break
            # Wait for the interval or until stop is signalled
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass  # next tick
