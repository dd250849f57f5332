"""
Unit tests for GenerationWorker and WorkerManager

The generation service is mocked; only queue handling is under test.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from colorgen.core.domain.task import TaskContext, TaskKind, TransitionResult
from colorgen.core.services.generation_service import GenerationService
from colorgen.core.task_queue import TaskQueue
from colorgen.core.exceptions import TaskQueueFull
from colorgen.core.workers.generation_worker import GenerationWorker
from colorgen.core.workers.manager import WorkerManager


@pytest.fixture
def mock_generation_service():
    service = Mock(spec=GenerationService)
    service.execute_task = AsyncMock(return_value=TransitionResult.APPLIED)
    return service


async def wait_until(predicate, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestTaskQueue:

    def test_enqueue_and_status(self):
        queue = TaskQueue(max_size=2)
        queue.enqueue(TaskContext("task_1", TaskKind.TEXT_TO_IMAGE))

        status = queue.get_status()
        assert status["queued"] == 1
        assert status["enqueued_total"] == 1
        assert status["paused"] is False

    def test_full_queue_rejects(self):
        queue = TaskQueue(max_size=1)
        queue.enqueue(TaskContext("task_1", TaskKind.TEXT_TO_IMAGE))

        with pytest.raises(TaskQueueFull):
            queue.enqueue(TaskContext("task_2", TaskKind.TEXT_TO_IMAGE))
        assert queue.get_status()["enqueued_total"] == 1

    def test_pause_resume(self):
        queue = TaskQueue()
        queue.pause("maintenance")
        assert queue.is_paused
        assert queue.get_status()["pause_reason"] == "maintenance"
        queue.resume()
        assert not queue.is_paused


class TestGenerationWorker:

    @pytest.mark.asyncio
    async def test_processes_queued_tasks(self, mock_generation_service):
        queue = TaskQueue()
        worker = GenerationWorker(mock_generation_service, queue, poll_interval=0.01)
        ctx = TaskContext("task_1", TaskKind.TEXT_TO_IMAGE)
        queue.enqueue(ctx)

        runner = asyncio.create_task(worker.start())
        await wait_until(lambda: mock_generation_service.execute_task.await_count == 1)
        await worker.stop()
        await runner

        mock_generation_service.execute_task.assert_awaited_once_with(ctx)
        assert not worker.is_running

    @pytest.mark.asyncio
    async def test_paused_queue_is_not_consumed(self, mock_generation_service):
        queue = TaskQueue()
        worker = GenerationWorker(mock_generation_service, queue, poll_interval=0.01)
        queue.pause()
        queue.enqueue(TaskContext("task_1", TaskKind.TEXT_TO_IMAGE))

        runner = asyncio.create_task(worker.start())
        await asyncio.sleep(0.05)
        assert mock_generation_service.execute_task.await_count == 0
        assert queue.size() == 1

        queue.resume()
        await wait_until(lambda: mock_generation_service.execute_task.await_count == 1)
        await worker.stop()
        await runner

    @pytest.mark.asyncio
    async def test_failing_task_does_not_stop_worker(self, mock_generation_service):
        mock_generation_service.execute_task.side_effect = [RuntimeError("boom"), None]
        queue = TaskQueue()
        worker = GenerationWorker(mock_generation_service, queue, poll_interval=0.01)
        queue.enqueue(TaskContext("task_1", TaskKind.TEXT_TO_IMAGE))
        queue.enqueue(TaskContext("task_2", TaskKind.TEXT_TO_IMAGE))

        runner = asyncio.create_task(worker.start())
        await wait_until(lambda: mock_generation_service.execute_task.await_count == 2)
        await worker.stop()
        await runner

    @pytest.mark.asyncio
    async def test_respects_max_concurrent(self, mock_generation_service):
        release = asyncio.Event()

        async def slow(ctx):
            await release.wait()
            return TransitionResult.APPLIED

        mock_generation_service.execute_task.side_effect = slow
        queue = TaskQueue()
        worker = GenerationWorker(mock_generation_service, queue, max_concurrent=2, poll_interval=0.01)
        for i in range(3):
            queue.enqueue(TaskContext(f"task_{i}", TaskKind.TEXT_TO_IMAGE))

        runner = asyncio.create_task(worker.start())
        await wait_until(lambda: worker.active_count == 2)
        await asyncio.sleep(0.05)
        assert queue.size() == 1

        release.set()
        await wait_until(lambda: mock_generation_service.execute_task.await_count == 3)
        await worker.stop()
        await runner


class TestWorkerManager:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, mock_generation_service):
        manager = WorkerManager(mock_generation_service, TaskQueue(), poll_interval=0.01)

        await manager.start_all()
        await wait_until(lambda: manager.generation_worker.is_running)
        assert manager.get_status()["running"] is True

        await manager.stop_all()
        assert manager.get_status() == {
            "running": False,
            "active_tasks": 0,
            "max_concurrent": 10,
        }
