"""
Accounts Router

The signed-in account's balance, journal and audit. Account creation,
top-ups and token minting are development helpers guarded by dev_mode.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from ...config import Settings
from ...core.security import create_access_token
from ...core.services.account_service import AccountService
from ...schemas import (
    AccountCreate,
    AccountResponse,
    CreditTopUp,
    LedgerAuditResponse,
    LedgerEntryResponse,
    TokenResponse
)
from ..dependencies import (
    get_account_service,
    get_current_account_id,
    get_settings,
    require_dev_mode
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("/me", response_model=AccountResponse)
async def get_me(
    account_id: int = Depends(get_current_account_id),
    service: AccountService = Depends(get_account_service)
):
    account = await service.get_account(account_id)
    return AccountResponse.from_domain(account)


@router.get("/me/ledger", response_model=List[LedgerEntryResponse])
async def get_my_ledger(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    account_id: int = Depends(get_current_account_id),
    service: AccountService = Depends(get_account_service)
):
    """Credit journal, oldest first"""
    entries = await service.list_ledger(account_id, skip=skip, limit=limit)
    return [LedgerEntryResponse.from_domain(e) for e in entries]


@router.get("/me/audit", response_model=LedgerAuditResponse)
async def audit_my_ledger(
    account_id: int = Depends(get_current_account_id),
    service: AccountService = Depends(get_account_service)
):
    """Reconcile balance, journal and tasks"""
    audit = await service.audit(account_id)
    return LedgerAuditResponse.from_domain(audit)


# ========== Development helpers ==========
@router.post(
    "/",
    response_model=AccountResponse,
    status_code=201,
    dependencies=[Depends(require_dev_mode)]
)
async def create_account(
    data: AccountCreate,
    service: AccountService = Depends(get_account_service)
):
    account = await service.create_account(
        email=data.email,
        display_name=data.display_name,
        initial_credits=data.initial_credits
    )
    return AccountResponse.from_domain(account)


@router.post(
    "/{account_id}/credits",
    response_model=AccountResponse,
    dependencies=[Depends(require_dev_mode)]
)
async def top_up_credits(
    account_id: int,
    data: CreditTopUp,
    service: AccountService = Depends(get_account_service)
):
    account = await service.top_up(account_id, data.amount)
    return AccountResponse.from_domain(account)


@router.post(
    "/{account_id}/token",
    response_model=TokenResponse,
    dependencies=[Depends(require_dev_mode)]
)
async def issue_token(
    account_id: int,
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings)
):
    account = await service.get_account(account_id)
    token = create_access_token(
        account.id,
        settings.jwt_secret,
        settings.jwt_algorithm,
        settings.jwt_expires_minutes
    )
    logger.info(f"[ACCOUNT] Issued token for #{account.id}")
    return TokenResponse(access_token=token)
