"""Async front for the blocking classification pipeline.

Request flow:
    route (event loop) -> asyncio.Semaphore(max_concurrent)
        -> ThreadPoolExecutor(max_concurrent) -> ClassificationPipeline

The engine's lock already allows only one forward pass at a time, so the
default is a single slot. The semaphore bounds how many uploads wait for
that slot: a request that cannot get one within the timeout raises
TimeoutError, which the API turns into 503.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from componentid.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLOT_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Runs pipeline calls off the event loop, one slot per allowed classification."""

    def __init__(self, settings: Settings, timeout: float = SLOT_TIMEOUT_SECONDS) -> None:
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="componentid-classify",
        )
        self._timeout = timeout
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Wait for a free slot, then run ``func(*args)`` on the worker thread.

        Exceptions raised by ``func`` (e.g. InvalidInputError) propagate
        unchanged.

        Raises:
            TimeoutError: If no slot frees up within the timeout.
        """
        await self._acquire_slot()

        self._adjust(active=1)
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._slots.release()
            self._adjust(active=-1)

    async def _acquire_slot(self) -> None:
        self._adjust(queued=1)
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self._timeout)
        except TimeoutError:
            logger.warning("Classifier busy: no slot after %.1fs (queue depth %d)", self._timeout, self.queue_depth)
            raise
        finally:
            self._adjust(queued=-1)

    def _adjust(self, *, active: int = 0, queued: int = 0) -> None:
        with self._counter_lock:
            self._active_count += active
            self._queue_depth += queued

    @property
    def active_count(self) -> int:
        """Classifications currently running on the worker thread."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Requests waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Wait for running classifications and stop the worker threads."""
        self._executor.shutdown(wait=True)
