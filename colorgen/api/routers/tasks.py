"""
Tasks Router

Polling, listing and cancellation of generation tasks.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.domain.task import TaskView
from ...core.services.generation_service import GenerationService
from ...core.services.status_service import TaskStatusService
from ...schemas import TaskListResponse, TaskResponse
from ..dependencies import (
    get_current_account_id,
    get_generation_service,
    get_optional_account_id,
    get_status_service
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/", response_model=TaskListResponse)
async def list_tasks(
    status: Optional[str] = None,
    type: Optional[str] = None,
    page: int = Query(1),
    limit: int = Query(20),
    account_id: int = Depends(get_current_account_id),
    service: TaskStatusService = Depends(get_status_service)
):
    """
    List the caller's tasks, newest first

    Args:
        status: processing, completed, failed or cancelled
        type: text-to-image or image-to-image
        page: 1-based page number
        limit: page size (1-100)
    """
    result = await service.list_by_owner(
        owner_id=account_id,
        state=status,
        kind=type,
        page=page,
        limit=limit
    )
    return TaskListResponse.from_domain(result)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    account_id: Optional[int] = Depends(get_optional_account_id),
    service: TaskStatusService = Depends(get_status_service)
):
    """Poll one task; the artifact is included once it completed"""
    view = await service.get_status(task_id, requester_id=account_id)
    return TaskResponse.from_domain(view)


@router.post("/{task_id}/cancel", response_model=TaskResponse)
async def cancel_task(
    task_id: str,
    account_id: int = Depends(get_current_account_id),
    service: GenerationService = Depends(get_generation_service)
):
    """
    Cancel a processing task and refund its cost

    Raises:
        403: not the owner
        404: unknown task
        409: task already finished
    """
    task = await service.cancel(task_id, owner_id=account_id)
    return TaskResponse.from_domain(TaskView(task=task))
