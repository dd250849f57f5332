"""
FastAPI Dependencies

Services come from the container stored on app.state by create_app().

Usage in endpoints:
    @router.get("/tasks/{task_id}")
    async def get_task(
        task_id: str,
        service: TaskStatusService = Depends(get_status_service)
    ):
        ...
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import Settings
from ..core.container import Container
from ..core.exceptions import (
    AccessDenied,
    AccountDisabled,
    AccountNotFound,
    AuthenticationRequired
)
from ..core.security import decode_access_token
from ..core.services.account_service import AccountService
from ..core.services.generation_service import GenerationService
from ..core.services.status_service import TaskStatusService
from ..core.task_queue import TaskQueue
from ..core.workers.manager import WorkerManager

bearer_scheme = HTTPBearer(auto_error=False)


# ========== Container ==========
def get_container(request: Request) -> Container:
    return request.app.state.container


def get_settings(container: Container = Depends(get_container)) -> Settings:
    return container.settings()


# ========== Services ==========
def get_generation_service(container: Container = Depends(get_container)) -> GenerationService:
    return container.generation_service()


def get_status_service(container: Container = Depends(get_container)) -> TaskStatusService:
    return container.status_service()


def get_account_service(container: Container = Depends(get_container)) -> AccountService:
    return container.account_service()


def get_task_queue(container: Container = Depends(get_container)) -> TaskQueue:
    return container.task_queue()


def get_worker_manager(container: Container = Depends(get_container)) -> WorkerManager:
    return container.worker_manager()


# ========== Authentication ==========
async def _resolve_account_id(
    credentials: Optional[HTTPAuthorizationCredentials],
    settings: Settings,
    accounts: AccountService
) -> int:
    account_id = decode_access_token(
        credentials.credentials,
        settings.jwt_secret,
        settings.jwt_algorithm
    )
    try:
        account = await accounts.get_account(account_id)
    except AccountNotFound:
        raise AuthenticationRequired("Account for this token no longer exists")
    if not account.is_active:
        raise AccountDisabled()
    return account.id


async def get_current_account_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    accounts: AccountService = Depends(get_account_service)
) -> int:
    """
    Dependency: signed-in account id

    Raises:
        AuthenticationRequired (401): missing, invalid or expired token
        AccountDisabled (403): account switched off
    """
    if credentials is None:
        raise AuthenticationRequired("Access token required")
    return await _resolve_account_id(credentials, settings, accounts)


async def get_optional_account_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    accounts: AccountService = Depends(get_account_service)
) -> Optional[int]:
    """
    Dependency: account id, or None for anonymous callers

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return await _resolve_account_id(credentials, settings, accounts)


def require_dev_mode(settings: Settings = Depends(get_settings)):
    """Guard for account administration helpers"""
    if not settings.dev_mode:
        raise AccessDenied("Only available in development mode")
