"""Concurrency-limited upload queue"""

import asyncio
from collections import deque
from typing import Deque, Optional, Set
import logging

logger = logging.getLogger(__name__)


class UploadQueue:
    """
    Runs transfer units with at most max_slots running at once
    Shared by every FileUploader that uploads through it
    """

    def __init__(self, max_slots: int = 3):
        if max_slots < 1:
            raise ValueError("max_slots must be at least 1")
        self.max_slots = max_slots
        self._pending: Deque = deque()
        self._running: Set[asyncio.Task] = set()
        self._idle: Optional[asyncio.Event] = None
        self._closed = False

    def add_item(self, item):
        """Enqueue a transfer unit; needs a running event loop"""
        if self._closed:
            raise RuntimeError("Queue is closed")

        self._pending.append(item)
        self._pump()

    def count_spare_slots(self) -> int:
        return max(0, self.max_slots - len(self._running) - len(self._pending))

    @property
    def active(self) -> int:
        return len(self._running) + len(self._pending)

    def _idle_event(self) -> asyncio.Event:
        if self._idle is None:
            self._idle = asyncio.Event()
            self._idle.set()
        return self._idle

    def _pump(self):
        idle = self._idle_event()
        while self._pending and len(self._running) < self.max_slots:
            item = self._pending.popleft()
            task = asyncio.get_running_loop().create_task(self._run(item))
            self._running.add(task)
            task.add_done_callback(self._finished)

        if self._running or self._pending:
            idle.clear()
        else:
            idle.set()

    async def _run(self, item):
        try:
            await item.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Transfer units report failures as events; anything else is a bug
            logger.error(f"Transfer unit crashed: {e}", exc_info=True)

    def _finished(self, task: asyncio.Task):
        self._running.discard(task)
        if not self._closed:
            self._pump()
        elif not self._running:
            self._idle_event().set()

    async def join(self):
        """Wait until nothing is running or pending"""
        await self._idle_event().wait()

    async def close(self):
        """Drop pending items and cancel running ones"""
        self._closed = True
        dropped = len(self._pending)
        self._pending.clear()

        for task in list(self._running):
            task.cancel()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

        self._idle_event().set()
        if dropped:
            logger.info(f"Dropped {dropped} pending transfer(s)")
