"""
Base Worker Class

Pulls items off an asyncio queue and runs each in its own asyncio task,
at most max_concurrent at a time.
"""
from abc import ABC, abstractmethod
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """Abstract base class cho workers"""

    def __init__(
        self,
        max_concurrent: int = 10,
        poll_interval: float = 1.0,
        stop_event: Optional[asyncio.Event] = None
    ):
        self.max_concurrent = max_concurrent
        self.poll_interval = poll_interval
        self.stop_event = stop_event or asyncio.Event()
        self._running = False
        self._tasks = set()

    @abstractmethod
    async def process_task(self, task):
        """Process một task - Must be implemented by subclasses"""
        pass

    @abstractmethod
    def get_queue(self) -> asyncio.Queue:
        """Get queue để consume - Must be implemented by subclasses"""
        pass

    def is_paused(self) -> bool:
        return False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    async def start(self):
        """Start worker loop"""
        if self._running:
            logger.warning(f"{self.__class__.__name__} already running")
            return

        self._running = True
        self.stop_event.clear()

        logger.info(f"[START] {self.__class__.__name__} started (max_concurrent={self.max_concurrent})")

        try:
            await self._worker_loop()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[ERROR] {self.__class__.__name__} crashed: {e}", exc_info=True)
        finally:
            self._running = False

    async def stop(self):
        """Stop worker and cancel in-flight tasks"""
        logger.info(f"[STOP] {self.__class__.__name__} stopping...")
        self.stop_event.set()

        if self._tasks:
            logger.info(f"[STOP] Cancelling {len(self._tasks)} active tasks...")
            pending = list(self._tasks)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self._tasks.clear()

        logger.info(f"[STOP] {self.__class__.__name__} stopped")

    def _reap_finished(self):
        finished = [t for t in self._tasks if t.done()]
        for task in finished:
            try:
                task.result()
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"[ERROR] Task failed: {e}", exc_info=True)
            self._tasks.discard(task)

    async def _worker_loop(self):
        """Main worker loop"""
        queue = self.get_queue()

        while not self.stop_event.is_set():
            try:
                self._reap_finished()

                if self.is_paused() or len(self._tasks) >= self.max_concurrent:
                    await asyncio.sleep(self.poll_interval)
                    continue

                try:
                    item = await asyncio.wait_for(queue.get(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    continue

                bg_task = asyncio.create_task(
                    self.process_task(item),
                    name=f"{self.__class__.__name__}_task_{id(item)}"
                )
                self._tasks.add(bg_task)
                queue.task_done()

            except Exception as e:
                logger.error(f"[ERROR] Worker loop error: {e}", exc_info=True)
                await asyncio.sleep(self.poll_interval)
