"""
Account Service - credits, journal and reconciliation
"""
import logging
from collections import defaultdict
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.account import Account, LedgerAudit, LedgerEntry, LedgerReason
from ..exceptions import AccountNotFound, InvalidInput
from ..repositories.account_repo import AccountRepository
from ..repositories.task_repo import TaskRepository
from ...database import session_scope

logger = logging.getLogger(__name__)


class AccountService:
    """Service xử lý account business logic"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def create_account(
        self,
        email: str,
        display_name: Optional[str] = None,
        initial_credits: int = 0
    ) -> Account:
        """
        Raises:
            InvalidInput: empty or duplicate email, negative credits
        """
        email = (email or "").strip().lower()
        if not email:
            raise InvalidInput("Email cannot be empty", field="email")
        if initial_credits < 0:
            raise InvalidInput("initial_credits cannot be negative", field="initial_credits")

        with session_scope(self.session_factory) as session:
            repo = AccountRepository(session)
            if await repo.get_by_email(email):
                raise InvalidInput(f"Account {email} already exists", field="email")
            try:
                account = await repo.create(email, display_name, initial_credits)
                repo.commit()
            except IntegrityError:
                raise InvalidInput(f"Account {email} already exists", field="email")

        logger.info(f"[ACCOUNT] Created #{account.id} {email} with {initial_credits} credits")
        return account

    async def get_account(self, account_id: int) -> Account:
        with session_scope(self.session_factory) as session:
            account = await AccountRepository(session).get_by_id(account_id)
        if account is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return account

    async def set_active(self, account_id: int, is_active: bool) -> Account:
        with session_scope(self.session_factory) as session:
            repo = AccountRepository(session)
            if not await repo.set_active(account_id, is_active):
                raise AccountNotFound(f"Account {account_id} not found")
            repo.commit()
        return await self.get_account(account_id)

    async def top_up(self, account_id: int, amount: int) -> Account:
        """Add purchased credits"""
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidInput("amount must be a positive integer", field="amount")

        with session_scope(self.session_factory) as session:
            repo = AccountRepository(session)
            balance = await repo.credit(account_id, amount, LedgerReason.TOP_UP)
            repo.commit()

        logger.info(f"[ACCOUNT] Top-up #{account_id} +{amount} (balance {balance})")
        return await self.get_account(account_id)

    async def list_ledger(
        self,
        account_id: int,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[LedgerEntry]:
        with session_scope(self.session_factory) as session:
            repo = AccountRepository(session)
            await repo.get_balance(account_id)  # raises AccountNotFound
            return await repo.list_entries(account_id, skip, limit)

    async def audit(self, account_id: int) -> LedgerAudit:
        """
        Reconcile balance, journal and tasks for one account

        Checks:
        - balance equals the sum of journal deltas
        - every task has exactly one debit matching its cost
        - failed/cancelled tasks have exactly one refund, others none
        - the task's refunded flag agrees with the journal
        """
        with session_scope(self.session_factory) as session:
            accounts = AccountRepository(session)
            balance = await accounts.get_balance(account_id)
            journal_total = await accounts.journal_total(account_id)
            entries = await accounts.list_entries(account_id)
            tasks = await TaskRepository(session).list_for_owner_all(account_id)

        audit = LedgerAudit(
            account_id=account_id,
            balance=balance,
            journal_total=journal_total,
            tasks_checked=len(tasks)
        )

        if balance != journal_total:
            audit.discrepancies.append(
                f"balance {balance} differs from journal total {journal_total}"
            )

        debits = defaultdict(list)
        refunds = defaultdict(list)
        for entry in entries:
            if entry.reason == LedgerReason.DEBIT and entry.task_id:
                debits[entry.task_id].append(entry)
            elif entry.reason == LedgerReason.REFUND and entry.task_id:
                refunds[entry.task_id].append(entry)

        known = set()
        for task in tasks:
            known.add(task.task_id)
            charged = debits.get(task.task_id, [])
            refunded = refunds.get(task.task_id, [])

            if len(charged) != 1:
                audit.discrepancies.append(f"{task.task_id}: {len(charged)} debit entries")
            elif -charged[0].delta != task.cost:
                audit.discrepancies.append(
                    f"{task.task_id}: debited {-charged[0].delta}, cost {task.cost}"
                )

            expected_refunds = 1 if task.state.is_refundable() else 0
            if len(refunded) != expected_refunds:
                audit.discrepancies.append(
                    f"{task.task_id}: {len(refunded)} refunds for a {task.state.value} task"
                )
            elif refunded and refunded[0].delta != task.cost:
                audit.discrepancies.append(
                    f"{task.task_id}: refunded {refunded[0].delta}, cost {task.cost}"
                )

            if task.refunded != bool(expected_refunds):
                audit.discrepancies.append(
                    f"{task.task_id}: refunded flag {task.refunded} on a {task.state.value} task"
                )

        for task_id in (set(debits) | set(refunds)) - known:
            audit.discrepancies.append(f"{task_id}: journal entries for an unknown task")

        if not audit.is_consistent:
            logger.warning(
                f"[AUDIT] Account #{account_id}: {len(audit.discrepancies)} discrepancies"
            )
        return audit
