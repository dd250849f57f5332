from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .core.domain.account import Account, LedgerAudit, LedgerEntry
from .core.domain.artifact import Artifact
from .core.domain.task import TaskHandle, TaskPage, TaskView


# --- Generation Schemas ---
class TextToImageRequest(BaseModel):
    prompt: str
    ratio: str = "1:1"
    is_public: bool = Field(default=False, alias="isPublic")

    model_config = {"populate_by_name": True}


class TaskHandleResponse(BaseModel):
    task_id: str
    status: str
    progress: int
    estimated_time: Optional[int] = None
    created_at: datetime

    @staticmethod
    def from_domain(handle: TaskHandle) -> "TaskHandleResponse":
        return TaskHandleResponse(
            task_id=handle.task_id,
            status=handle.state.value,
            progress=handle.progress,
            estimated_time=handle.estimated_time,
            created_at=handle.created_at
        )


# --- Artifact Schemas ---
class ArtifactResponse(BaseModel):
    id: int
    name: str
    title: str
    description: str = ""
    default_url: str
    color_url: str
    tags: List[str] = []
    ratio: str
    size: Optional[str] = None
    type: str
    is_public: bool
    prompt: Optional[str] = None
    source_reference: Optional[str] = None
    additional_info: Dict[str, Any] = {}
    owner_id: int
    task_id: str
    created_at: Optional[datetime] = None

    @staticmethod
    def from_domain(artifact: Artifact) -> "ArtifactResponse":
        return ArtifactResponse(
            id=artifact.id,
            name=artifact.name,
            title=artifact.title,
            description=artifact.description,
            default_url=artifact.default_url,
            color_url=artifact.color_url,
            tags=artifact.tags,
            ratio=artifact.ratio,
            size=artifact.size,
            type=artifact.kind,
            is_public=artifact.is_public,
            prompt=artifact.prompt,
            source_reference=artifact.source_reference,
            additional_info=artifact.additional_info,
            owner_id=artifact.owner_id,
            task_id=artifact.task_id,
            created_at=artifact.created_at
        )


# --- Task Schemas ---
class TaskErrorResponse(BaseModel):
    code: str
    message: str


class TaskResponse(BaseModel):
    task_id: str
    type: str
    status: str
    progress: int
    prompt: Optional[str] = None
    ratio: str
    is_public: bool
    cost: int
    estimated_time: Optional[int] = None
    message: Optional[str] = None
    error: Optional[TaskErrorResponse] = None
    result: Optional[ArtifactResponse] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @staticmethod
    def from_domain(view: TaskView) -> "TaskResponse":
        task = view.task
        return TaskResponse(
            task_id=task.task_id,
            type=task.kind.value,
            status=task.state.value,
            progress=task.progress,
            prompt=task.input.prompt,
            ratio=task.input.ratio,
            is_public=task.input.is_public,
            cost=task.cost,
            estimated_time=task.estimated_time,
            message=task.message,
            error=TaskErrorResponse(code=task.error.code, message=task.error.message) if task.error else None,
            result=ArtifactResponse.from_domain(view.artifact) if view.artifact else None,
            created_at=task.created_at,
            updated_at=task.updated_at,
            completed_at=task.completed_at,
            failed_at=task.failed_at,
            cancelled_at=task.cancelled_at
        )


class PaginationResponse(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]
    pagination: PaginationResponse

    @staticmethod
    def from_domain(page: TaskPage) -> "TaskListResponse":
        return TaskListResponse(
            tasks=[TaskResponse.from_domain(v) for v in page.items],
            pagination=PaginationResponse(
                current_page=page.page,
                total_pages=page.total_pages,
                total_items=page.total,
                items_per_page=page.limit,
                has_next_page=page.page < page.total_pages,
                has_prev_page=page.page > 1
            )
        )


# --- Account Schemas ---
class AccountCreate(BaseModel):
    email: str
    display_name: Optional[str] = None
    initial_credits: int = Field(default=0, ge=0)


class CreditTopUp(BaseModel):
    amount: int = Field(gt=0)


class AccountResponse(BaseModel):
    id: int
    email: str
    display_name: Optional[str] = None
    credits: int
    is_active: bool
    created_at: Optional[datetime] = None

    @staticmethod
    def from_domain(account: Account) -> "AccountResponse":
        return AccountResponse(
            id=account.id,
            email=account.email,
            display_name=account.display_name,
            credits=account.credits,
            is_active=account.is_active,
            created_at=account.created_at
        )


class LedgerEntryResponse(BaseModel):
    id: Optional[int] = None
    delta: int
    balance_after: int
    reason: str
    task_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def from_domain(entry: LedgerEntry) -> "LedgerEntryResponse":
        return LedgerEntryResponse(
            id=entry.id,
            delta=entry.delta,
            balance_after=entry.balance_after,
            reason=entry.reason.value,
            task_id=entry.task_id,
            created_at=entry.created_at
        )


class LedgerAuditResponse(BaseModel):
    account_id: int
    balance: int
    journal_total: int
    tasks_checked: int
    consistent: bool
    discrepancies: List[str]

    @staticmethod
    def from_domain(audit: LedgerAudit) -> "LedgerAuditResponse":
        return LedgerAuditResponse(
            account_id=audit.account_id,
            balance=audit.balance,
            journal_total=audit.journal_total,
            tasks_checked=audit.tasks_checked,
            consistent=audit.is_consistent,
            discrepancies=audit.discrepancies
        )


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# --- Error envelope ---
class ErrorResponse(BaseModel):
    status: str = "fail"
    error_code: str
    message: str
    details: List[Any] = []
