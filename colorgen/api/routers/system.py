"""
System Router

Worker control and queue monitoring:
- Queue status
- Pause/resume
- Recovery of stuck tasks

Control endpoints are development helpers guarded by dev_mode.
"""
import logging

from fastapi import APIRouter, Depends, Query

from ...core.services.generation_service import GenerationService
from ...core.services.status_service import TaskStatusService
from ...core.task_queue import TaskQueue
from ...core.workers.manager import WorkerManager
from ..dependencies import (
    get_generation_service,
    get_status_service,
    get_task_queue,
    get_worker_manager,
    require_dev_mode
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/queue_status")
async def get_queue_status(
    task_queue: TaskQueue = Depends(get_task_queue),
    workers: WorkerManager = Depends(get_worker_manager),
    status_service: TaskStatusService = Depends(get_status_service)
):
    """
    Queue, worker and task statistics
    """
    status = task_queue.get_status()
    status.update({
        "workers": workers.get_status(),
        "db_stats": await status_service.state_counts()
    })
    return status


@router.post("/pause", dependencies=[Depends(require_dev_mode)])
async def pause_system(task_queue: TaskQueue = Depends(get_task_queue)):
    """
    Pause all workers

    Queued tasks wait; running tasks continue to completion.
    """
    task_queue.pause(reason="Manual pause by user")
    logger.info("[SYSTEM] Task queue paused")
    return {"ok": True, "paused": True}


@router.post("/resume", dependencies=[Depends(require_dev_mode)])
async def resume_system(task_queue: TaskQueue = Depends(get_task_queue)):
    task_queue.resume()
    logger.info("[SYSTEM] Task queue resumed")
    return {"ok": True, "paused": False}


@router.post("/recover", dependencies=[Depends(require_dev_mode)])
async def recover_stuck_tasks(
    cutoff_minutes: int = Query(15, ge=1),
    service: GenerationService = Depends(get_generation_service)
):
    """
    Fail and refund processing tasks not updated for cutoff_minutes
    """
    logger.warning(f"[SYSTEM] Recovery requested (cutoff {cutoff_minutes} min)")
    recovered = await service.recover_interrupted(cutoff_minutes=cutoff_minutes)
    return {"ok": True, "recovered": recovered}
