"""
Domain Models Package

Core business entities, independent of SQLAlchemy and FastAPI.
"""

from .account import (
    Account,
    LedgerAudit,
    LedgerEntry,
    LedgerReason
)

from .artifact import (
    Artifact,
    ArtifactDraft,
    COLOR_VARIANT,
    DEFAULT_VARIANT
)

from .task import (
    ErrorDescriptor,
    GenerationInput,
    GenerationTask,
    TaskContext,
    TaskHandle,
    TaskKind,
    TaskPage,
    TaskState,
    TaskView,
    TransitionResult,
    new_task_id
)

__all__ = [
    # Account
    "Account",
    "LedgerAudit",
    "LedgerEntry",
    "LedgerReason",

    # Artifact
    "Artifact",
    "ArtifactDraft",
    "COLOR_VARIANT",
    "DEFAULT_VARIANT",

    # Task
    "ErrorDescriptor",
    "GenerationInput",
    "GenerationTask",
    "TaskContext",
    "TaskHandle",
    "TaskKind",
    "TaskPage",
    "TaskState",
    "TaskView",
    "TransitionResult",
    "new_task_id"
]
