"""
Generation Worker - runs queued generation tasks
"""
import asyncio
import logging
from typing import Optional

from .base import BaseWorker
from ..domain.task import TaskContext
from ..services.generation_service import GenerationService
from ..task_queue import TaskQueue

logger = logging.getLogger(__name__)


class GenerationWorker(BaseWorker):
    """Worker xử lý generation tasks"""

    def __init__(
        self,
        generation_service: GenerationService,
        task_queue: TaskQueue,
        max_concurrent: int = 10,
        poll_interval: float = 1.0,
        stop_event: Optional[asyncio.Event] = None
    ):
        super().__init__(max_concurrent, poll_interval, stop_event)
        self.generation_service = generation_service
        self.task_queue = task_queue

    def get_queue(self) -> asyncio.Queue:
        return self.task_queue.queue

    def is_paused(self) -> bool:
        return self.task_queue.is_paused

    async def process_task(self, task: TaskContext):
        result = await self.generation_service.execute_task(task)
        logger.debug(f"[WORKER] {task.task_id} finished: {result.value if result else 'missing'}")
        return result
