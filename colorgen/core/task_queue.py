"""
In-process task queue

Hands generation work from the request path to the background workers.
Queues are created lazily so they bind to the running event loop.
"""
import asyncio
import logging
from typing import Optional

from .domain.task import TaskContext
from .exceptions import TaskQueueFull

logger = logging.getLogger(__name__)


class TaskQueue:
    """Bounded FIFO of TaskContext with a global pause flag"""

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._queue: Optional[asyncio.Queue] = None
        self._paused = False
        self._pause_reason: Optional[str] = None
        self._enqueued_total = 0

    def _ensure_initialized(self):
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.max_size)
            logger.info(f"[OK] Task queue initialized (max_size={self.max_size})")

    @property
    def queue(self) -> asyncio.Queue:
        self._ensure_initialized()
        return self._queue

    def enqueue(self, ctx: TaskContext):
        """
        Add a task without blocking

        Raises:
            TaskQueueFull: queue is at max_size
        """
        queue = self.queue
        if queue.qsize() > self.max_size * 0.8:
            logger.warning(
                f"[WARNING] Queue nearly full: {queue.qsize()}/{self.max_size} tasks. "
                f"Enqueueing {ctx.task_id}"
            )
        try:
            queue.put_nowait(ctx)
        except asyncio.QueueFull:
            logger.error(f"[QUEUE] Rejected {ctx.task_id}: queue full ({self.max_size})")
            raise TaskQueueFull()
        self._enqueued_total += 1

    def size(self) -> int:
        return self.queue.qsize()

    @property
    def is_paused(self) -> bool:
        return self._paused

    def pause(self, reason: Optional[str] = None):
        """Pause queue processing. Workers stop picking up new tasks."""
        logger.warning(f"[PAUSE] Workers will stop picking up new tasks. Reason: {reason or 'User action'}")
        self._paused = True
        self._pause_reason = reason

    def resume(self):
        logger.info("[RESUME] Workers continuing...")
        self._paused = False
        self._pause_reason = None

    def get_status(self) -> dict:
        return {
            "paused": self._paused,
            "pause_reason": self._pause_reason,
            "queued": self.queue.qsize(),
            "max_size": self.max_size,
            "enqueued_total": self._enqueued_total,
        }
