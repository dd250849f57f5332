from .account_service import AccountService
from .generation_service import GenerationService
from .status_service import TaskStatusService

__all__ = [
    "AccountService",
    "GenerationService",
    "TaskStatusService"
]
