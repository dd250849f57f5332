"""
Generation Task Domain Models

Value Objects:
- GenerationInput: request payload (immutable)
- ErrorDescriptor: why a task failed
- TaskContext: unit of work handed to background workers
- TaskHandle / TaskView / TaskPage: read models returned to callers

Aggregate Root:
- GenerationTask

State machine:
    processing -> completed   (producer success)
    processing -> failed      (producer error, timeout, interruption)
    processing -> cancelled   (owner request)
No transition leaves a terminal state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence
import uuid

from ..exceptions import InvalidInput
from .artifact import Artifact

DEFAULT_RATIOS = ("1:1", "3:4", "4:3")


class TaskKind(str, Enum):
    TEXT_TO_IMAGE = "text-to-image"
    IMAGE_TO_IMAGE = "image-to-image"


class TaskState(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        """Check if state is terminal (cannot transition)"""
        return self != TaskState.PROCESSING

    def is_refundable(self) -> bool:
        """Terminal states that give the reserved cost back"""
        return self in (TaskState.FAILED, TaskState.CANCELLED)


class TransitionResult(str, Enum):
    """Outcome of a compare-and-set transition in the task store"""
    APPLIED = "applied"
    ALREADY_TERMINAL = "already_terminal"
    NOT_OWNER = "not_owner"
    NOT_FOUND = "not_found"


def new_task_id() -> str:
    return f"task_{uuid.uuid4()}"


@dataclass(frozen=True)
class GenerationInput:
    """
    Value Object cho request payload

    prompt is required for text-to-image, reference_image (a storage handle)
    for image-to-image. reference_name keeps the uploaded file name, which
    outlives the handle.
    """
    prompt: Optional[str] = None
    reference_image: Optional[str] = None
    ratio: str = "1:1"
    is_public: bool = False
    reference_name: Optional[str] = None

    def validate(
        self,
        kind: TaskKind,
        max_prompt_length: int = 500,
        allowed_ratios: Sequence[str] = DEFAULT_RATIOS
    ):
        """
        Raises:
            InvalidInput: with the offending field name
        """
        if kind == TaskKind.TEXT_TO_IMAGE:
            if not self.prompt or not self.prompt.strip():
                raise InvalidInput("Prompt cannot be empty", field="prompt")
            if len(self.prompt) > max_prompt_length:
                raise InvalidInput(
                    f"Prompt must be at most {max_prompt_length} characters",
                    field="prompt"
                )
        elif kind == TaskKind.IMAGE_TO_IMAGE:
            if not self.reference_image:
                raise InvalidInput("A reference image is required", field="file")

        if self.ratio not in allowed_ratios:
            raise InvalidInput(
                f"ratio must be one of {list(allowed_ratios)}",
                field="ratio"
            )


@dataclass(frozen=True)
class ErrorDescriptor:
    code: str
    message: str

    def __post_init__(self):
        if not self.code:
            raise ValueError("Error code cannot be empty")


@dataclass
class GenerationTask:
    """
    Aggregate Root cho GenerationTask

    Invariants:
    - artifact_id is set iff state is COMPLETED
    - error is set iff state is FAILED
    - progress within 0..100
    """
    task_id: str
    owner_id: int
    kind: TaskKind
    input: GenerationInput
    cost: int
    state: TaskState = TaskState.PROCESSING
    progress: int = 0
    estimated_time: Optional[int] = None
    artifact_id: Optional[int] = None
    error: Optional[ErrorDescriptor] = None
    message: Optional[str] = None
    refunded: bool = False
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = TaskKind(self.kind)
        if isinstance(self.state, str):
            self.state = TaskState(self.state)

        if not (0 <= self.progress <= 100):
            raise ValueError("Progress must be between 0 and 100")
        if self.cost <= 0:
            raise ValueError("cost must be positive")
        if (self.artifact_id is not None) != (self.state == TaskState.COMPLETED):
            raise ValueError("artifact is present if and only if the task is completed")
        if (self.error is not None) != (self.state == TaskState.FAILED):
            raise ValueError("error is present if and only if the task failed")

    @staticmethod
    def from_orm(orm_task) -> 'GenerationTask':
        error = None
        if orm_task.error_code:
            error = ErrorDescriptor(
                code=orm_task.error_code,
                message=orm_task.error_message or ""
            )

        return GenerationTask(
            id=orm_task.id,
            task_id=orm_task.task_id,
            owner_id=orm_task.owner_id,
            kind=TaskKind(orm_task.kind),
            input=GenerationInput(
                prompt=orm_task.prompt,
                reference_image=orm_task.reference_image,
                ratio=orm_task.ratio or "1:1",
                is_public=bool(orm_task.is_public),
                reference_name=orm_task.reference_name
            ),
            cost=orm_task.cost,
            state=TaskState(orm_task.state),
            progress=orm_task.progress or 0,
            estimated_time=orm_task.estimated_time,
            artifact_id=orm_task.artifact_id,
            error=error,
            message=orm_task.message,
            refunded=bool(orm_task.refunded),
            created_at=orm_task.created_at,
            updated_at=orm_task.updated_at,
            completed_at=orm_task.completed_at,
            failed_at=orm_task.failed_at,
            cancelled_at=orm_task.cancelled_at
        )

    def to_orm_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "owner_id": self.owner_id,
            "kind": self.kind.value,
            "prompt": self.input.prompt,
            "reference_image": self.input.reference_image,
            "ratio": self.input.ratio,
            "is_public": self.input.is_public,
            "reference_name": self.input.reference_name,
            "state": self.state.value,
            "progress": self.progress,
            "cost": self.cost,
            "estimated_time": self.estimated_time,
            "refunded": self.refunded,
            "error_code": self.error.code if self.error else None,
            "error_message": self.error.message if self.error else None,
            "message": self.message,
            "artifact_id": self.artifact_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at or self.created_at,
        }

    @property
    def is_shareable(self) -> bool:
        return self.input.is_public

    def is_owned_by(self, account_id: Optional[int]) -> bool:
        return account_id is not None and self.owner_id == account_id

    def __str__(self) -> str:
        return f"GenerationTask(id={self.task_id}, state={self.state.value}, progress={self.progress}%)"

    def __repr__(self) -> str:
        return self.__str__()


@dataclass
class TaskContext:
    """
    Lightweight context passed to workers

    No DB access - just enough to find the task again.
    """
    task_id: str
    kind: TaskKind

    def __post_init__(self):
        if not self.task_id:
            raise ValueError("task_id cannot be empty")
        if isinstance(self.kind, str):
            self.kind = TaskKind(self.kind)

    def __str__(self) -> str:
        return f"TaskContext(task_id={self.task_id}, kind={self.kind.value})"


@dataclass(frozen=True)
class TaskHandle:
    """Returned by submit before any work happened"""
    task_id: str
    state: TaskState
    progress: int
    estimated_time: Optional[int]
    created_at: datetime

    @staticmethod
    def from_task(task: GenerationTask) -> 'TaskHandle':
        return TaskHandle(
            task_id=task.task_id,
            state=task.state,
            progress=task.progress,
            estimated_time=task.estimated_time,
            created_at=task.created_at
        )


@dataclass(frozen=True)
class TaskView:
    """Status read model; artifact only present for completed tasks"""
    task: GenerationTask
    artifact: Optional[Artifact] = None

    def __post_init__(self):
        if self.artifact is not None and self.task.state != TaskState.COMPLETED:
            raise ValueError("Only completed tasks expose an artifact")


@dataclass(frozen=True)
class TaskPage:
    items: List[TaskView]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.limit - 1) // self.limit
