"""
Task Status Service - read path for polling clients

Who may read a task is decided by an explicit StatusReadPolicy instead of
per-route checks.
"""
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..domain.artifact import Artifact
from ..domain.task import GenerationTask, TaskKind, TaskPage, TaskState, TaskView
from ..exceptions import (
    AccessDenied,
    ArtifactNotFound,
    AuthenticationRequired,
    InvalidInput,
    TaskNotFound
)
from ..repositories.artifact_repo import ArtifactRepository
from ..repositories.task_repo import TaskRepository
from ...config import StatusReadPolicy
from ...database import session_scope

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class TaskStatusService:
    """Service đọc trạng thái task"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        policy: StatusReadPolicy = StatusReadPolicy.OWNER_OR_PUBLIC
    ):
        self.session_factory = session_factory
        self.policy = StatusReadPolicy(policy)

    async def get_status(self, task_id: str, requester_id: Optional[int] = None) -> TaskView:
        """
        Raises:
            TaskNotFound: unknown task id
            AuthenticationRequired: anonymous caller the policy does not admit
            AccessDenied: signed-in caller the policy does not admit
        """
        with session_scope(self.session_factory) as session:
            task = await TaskRepository(session).get_by_task_id(task_id)
            if task is None:
                raise TaskNotFound(f"Task {task_id} not found")

            self.check_access(task, requester_id)
            artifact = await self._artifact_for(ArtifactRepository(session), task)

        return TaskView(task=task, artifact=artifact)

    def check_access(self, task: GenerationTask, requester_id: Optional[int]):
        if task.is_owned_by(requester_id):
            return

        if self.policy == StatusReadPolicy.OWNER_ONLY:
            allowed = False
        elif self.policy == StatusReadPolicy.OWNER_OR_PUBLIC:
            allowed = task.is_shareable
        else:  # ANONYMOUS_ANY
            allowed = requester_id is None or task.is_shareable

        if allowed:
            return
        if requester_id is None:
            raise AuthenticationRequired("Sign in to view this task")
        raise AccessDenied()

    async def list_by_owner(
        self,
        owner_id: int,
        state: Optional[str] = None,
        kind: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> TaskPage:
        """
        Owner's tasks, newest first

        Raises:
            InvalidInput: bad filter value, page < 1 or limit outside 1..100
        """
        if page < 1:
            raise InvalidInput("page must be at least 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")

        states = [self._parse(TaskState, state, "status")] if state else None
        kinds = [self._parse(TaskKind, kind, "type")] if kind else None

        with session_scope(self.session_factory) as session:
            tasks_repo = TaskRepository(session)
            artifacts_repo = ArtifactRepository(session)

            total = await tasks_repo.count_by_owner(owner_id, states, kinds)
            tasks = await tasks_repo.list_by_owner(
                owner_id,
                states,
                kinds,
                skip=(page - 1) * limit,
                limit=limit
            )
            items = [
                TaskView(task=t, artifact=await self._artifact_for(artifacts_repo, t))
                for t in tasks
            ]

        return TaskPage(items=items, page=page, limit=limit, total=total)

    async def get_artifact(self, artifact_id: int, requester_id: Optional[int] = None) -> Artifact:
        """
        Public artifacts for everyone, private ones for their owner only.
        Private artifacts of other accounts are reported as not found.
        """
        with session_scope(self.session_factory) as session:
            artifact = await ArtifactRepository(session).get_by_id(artifact_id)

        if artifact is None:
            raise ArtifactNotFound()
        if not artifact.is_public and artifact.owner_id != requester_id:
            raise ArtifactNotFound()
        return artifact

    async def _artifact_for(self, repo: ArtifactRepository, task: GenerationTask) -> Optional[Artifact]:
        if task.state != TaskState.COMPLETED or task.artifact_id is None:
            return None
        return await repo.get_by_id(task.artifact_id)

    @staticmethod
    def _parse(enum_cls, value, field: str):
        try:
            return enum_cls(value)
        except ValueError:
            allowed = [e.value for e in enum_cls]
            raise InvalidInput(f"{field} must be one of {allowed}", field=field)

    async def state_counts(self) -> Dict[str, int]:
        """Number of tasks per state, across all accounts"""
        with session_scope(self.session_factory) as session:
            repo = TaskRepository(session)
            return {state.value: await repo.count_by_state(state) for state in TaskState}
