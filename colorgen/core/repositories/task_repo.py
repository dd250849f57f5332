"""
Task Repository (Task Store)

Terminal transitions are compare-and-set updates guarded by
state = 'processing'. The affected row count decides the outcome, so a
completion racing a cancellation can only ever apply once.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .base import BaseRepository
from ..domain.task import (
    ErrorDescriptor,
    GenerationTask,
    TaskKind,
    TaskState,
    TransitionResult
)
from ...models import GenerationTask as TaskModel

MAX_REPORTED_PROGRESS = 99  # 100 is only set by complete()


class TaskRepository(BaseRepository[GenerationTask]):
    """
    Repository cho GenerationTask aggregate

    Handles:
    - Creation and lookup
    - Owner listings with filters and pagination
    - Atomic progress and terminal transitions
    - Recovery queries
    """

    async def get_by_id(self, id: int) -> Optional[GenerationTask]:
        orm_task = self.session.query(TaskModel).filter_by(id=id).first()
        return GenerationTask.from_orm(orm_task) if orm_task else None

    async def get_by_task_id(self, task_id: str) -> Optional[GenerationTask]:
        orm_task = self.session.query(TaskModel).filter_by(task_id=task_id).first()
        return GenerationTask.from_orm(orm_task) if orm_task else None

    async def create(self, task: GenerationTask) -> GenerationTask:
        """
        Tạo task mới

        Always stored as processing with progress 0.
        """
        values = task.to_orm_dict()
        values.update({
            "state": TaskState.PROCESSING.value,
            "progress": 0,
            "artifact_id": None,
            "error_code": None,
            "error_message": None,
            "refunded": False,
        })
        orm_task = TaskModel(**values)
        self.session.add(orm_task)
        self.flush()  # Get auto-generated ID
        return GenerationTask.from_orm(orm_task)

    def _owner_query(
        self,
        owner_id: int,
        states: Optional[Iterable[TaskState]] = None,
        kinds: Optional[Iterable[TaskKind]] = None
    ):
        query = self.session.query(TaskModel).filter(TaskModel.owner_id == owner_id)
        if states:
            query = query.filter(TaskModel.state.in_([s.value for s in states]))
        if kinds:
            query = query.filter(TaskModel.kind.in_([k.value for k in kinds]))
        return query

    async def list_by_owner(
        self,
        owner_id: int,
        states: Optional[Iterable[TaskState]] = None,
        kinds: Optional[Iterable[TaskKind]] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[GenerationTask]:
        """
        Newest first; id breaks ties between tasks created in the same instant
        """
        orm_tasks = (
            self._owner_query(owner_id, states, kinds)
            .order_by(TaskModel.created_at.desc(), TaskModel.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return [GenerationTask.from_orm(t) for t in orm_tasks]

    async def count_by_owner(
        self,
        owner_id: int,
        states: Optional[Iterable[TaskState]] = None,
        kinds: Optional[Iterable[TaskKind]] = None
    ) -> int:
        return self._owner_query(owner_id, states, kinds).count()

    async def list_for_owner_all(self, owner_id: int) -> List[GenerationTask]:
        """Every task of an account, oldest first (audits)"""
        orm_tasks = (
            self.session.query(TaskModel)
            .filter(TaskModel.owner_id == owner_id)
            .order_by(TaskModel.id.asc())
            .all()
        )
        return [GenerationTask.from_orm(t) for t in orm_tasks]

    async def list_processing(self) -> List[GenerationTask]:
        orm_tasks = (
            self.session.query(TaskModel)
            .filter(TaskModel.state == TaskState.PROCESSING.value)
            .order_by(TaskModel.created_at.asc())
            .all()
        )
        return [GenerationTask.from_orm(t) for t in orm_tasks]

    async def get_stale(self, cutoff_minutes: int = 15) -> List[GenerationTask]:
        """
        Processing tasks not updated for more than cutoff_minutes
        """
        cutoff = datetime.utcnow() - timedelta(minutes=cutoff_minutes)

        orm_tasks = (
            self.session.query(TaskModel)
            .filter(
                TaskModel.state == TaskState.PROCESSING.value,
                TaskModel.updated_at < cutoff
            )
            .all()
        )
        return [GenerationTask.from_orm(t) for t in orm_tasks]

    async def count_by_state(self, state: TaskState) -> int:
        return self.session.query(TaskModel).filter_by(state=state.value).count()

    async def update_progress(self, task_id: str, progress: int) -> bool:
        """
        Raise progress of a processing task

        Lower or equal values and updates to terminal tasks are ignored.

        Returns:
            True if the stored progress changed
        """
        progress = max(0, min(int(progress), MAX_REPORTED_PROGRESS))

        count = (
            self.session.query(TaskModel)
            .filter(
                TaskModel.task_id == task_id,
                TaskModel.state == TaskState.PROCESSING.value,
                TaskModel.progress < progress
            )
            .update(
                {"progress": progress, "updated_at": datetime.utcnow()},
                synchronize_session="fetch"
            )
        )
        return count > 0

    async def complete(self, task_id: str, artifact_id: int) -> TransitionResult:
        now = datetime.utcnow()
        count = (
            self._processing(task_id)
            .update(
                {
                    "state": TaskState.COMPLETED.value,
                    "progress": 100,
                    "artifact_id": artifact_id,
                    "completed_at": now,
                    "updated_at": now,
                    "message": "Generation completed",
                },
                synchronize_session="fetch"
            )
        )
        if count:
            return TransitionResult.APPLIED
        return await self._explain_miss(task_id)

    async def fail(self, task_id: str, error: ErrorDescriptor) -> TransitionResult:
        """Processing -> failed, marks the task refunded in the same statement"""
        now = datetime.utcnow()
        count = (
            self._processing(task_id)
            .update(
                {
                    "state": TaskState.FAILED.value,
                    "error_code": error.code,
                    "error_message": error.message,
                    "failed_at": now,
                    "updated_at": now,
                    "refunded": True,
                    "message": error.message,
                },
                synchronize_session="fetch"
            )
        )
        if count:
            return TransitionResult.APPLIED
        return await self._explain_miss(task_id)

    async def cancel(
        self,
        task_id: str,
        owner_id: int,
        message: str = "Cancelled by user"
    ) -> TransitionResult:
        """Processing -> cancelled, only for the owner"""
        now = datetime.utcnow()
        count = (
            self._processing(task_id)
            .filter(TaskModel.owner_id == owner_id)
            .update(
                {
                    "state": TaskState.CANCELLED.value,
                    "cancelled_at": now,
                    "updated_at": now,
                    "refunded": True,
                    "message": message,
                },
                synchronize_session="fetch"
            )
        )
        if count:
            return TransitionResult.APPLIED
        return await self._explain_miss(task_id, owner_id)

    def _processing(self, task_id: str):
        return self.session.query(TaskModel).filter(
            TaskModel.task_id == task_id,
            TaskModel.state == TaskState.PROCESSING.value
        )

    async def _explain_miss(
        self,
        task_id: str,
        owner_id: Optional[int] = None
    ) -> TransitionResult:
        row = (
            self.session.query(TaskModel.owner_id, TaskModel.state)
            .filter(TaskModel.task_id == task_id)
            .first()
        )
        if row is None:
            return TransitionResult.NOT_FOUND
        if owner_id is not None and row.owner_id != owner_id:
            return TransitionResult.NOT_OWNER
        return TransitionResult.ALREADY_TERMINAL
