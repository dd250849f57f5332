"""
Worker Manager - start/stop background workers from the app lifespan
"""
import asyncio
import logging
from typing import List

from .generation_worker import GenerationWorker
from ..services.generation_service import GenerationService
from ..task_queue import TaskQueue

logger = logging.getLogger(__name__)


class WorkerManager:
    """Manager để start/stop tất cả workers"""

    def __init__(
        self,
        generation_service: GenerationService,
        task_queue: TaskQueue,
        max_concurrent: int = 10,
        poll_interval: float = 1.0
    ):
        self.stop_event = asyncio.Event()

        self.generation_worker = GenerationWorker(
            generation_service=generation_service,
            task_queue=task_queue,
            max_concurrent=max_concurrent,
            poll_interval=poll_interval,
            stop_event=self.stop_event
        )

        self._tasks: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start_all(self):
        """Start all workers"""
        logger.info("[WORKER MANAGER] Starting all workers...")

        self.stop_event.clear()
        self._tasks = [
            asyncio.create_task(self.generation_worker.start(), name="generation_worker"),
        ]

        logger.info("[WORKER MANAGER] All workers started")

    async def stop_all(self):
        """
        Stop all workers

        In-flight tasks are cancelled and stay processing; the next startup
        recovers them.
        """
        logger.info("[WORKER MANAGER] Stopping all workers...")

        self.stop_event.set()
        await asyncio.gather(self.generation_worker.stop(), return_exceptions=True)

        for task in self._tasks:
            if not task.done():
                task.cancel()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        logger.info("[WORKER MANAGER] All workers stopped")

    def get_status(self) -> dict:
        return {
            "running": self.is_running,
            "active_tasks": self.generation_worker.active_count,
            "max_concurrent": self.generation_worker.max_concurrent,
        }
