"""
Account Repository (Ledger Store)

Balance mutations are single conditional UPDATE statements so the database
serialises concurrent debits on one account. Every change is journaled in
ledger_entries inside the caller's transaction.
"""

from typing import List, Optional

from sqlalchemy import func

from .base import BaseRepository
from ..domain.account import Account, LedgerEntry, LedgerReason
from ..exceptions import AccountNotFound
from ...models import Account as AccountModel
from ...models import LedgerEntry as LedgerEntryModel


def _check_amount(amount: int):
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"amount must be a positive integer, got {amount!r}")


class AccountRepository(BaseRepository[Account]):
    """
    Repository cho Account aggregate

    Handles:
    - Account lookup and creation
    - Atomic debit/credit with a journal entry per change
    """

    async def get_by_id(self, id: int) -> Optional[Account]:
        orm_account = self.session.query(AccountModel).filter_by(id=id).first()
        return Account.from_orm(orm_account) if orm_account else None

    async def get_by_email(self, email: str) -> Optional[Account]:
        orm_account = self.session.query(AccountModel).filter_by(email=email).first()
        return Account.from_orm(orm_account) if orm_account else None

    async def create(
        self,
        email: str,
        display_name: Optional[str] = None,
        initial_credits: int = 0
    ) -> Account:
        """
        Tạo account mới

        A non-zero starting balance is journaled as an opening entry so the
        ledger always sums to the balance.
        """
        if initial_credits < 0:
            raise ValueError("initial_credits cannot be negative")

        orm_account = AccountModel(
            email=email,
            display_name=display_name,
            credits=initial_credits,
            is_active=True
        )
        self.session.add(orm_account)
        self.flush()  # Get auto-generated ID

        if initial_credits:
            self._journal(orm_account.id, initial_credits, initial_credits, LedgerReason.OPENING)

        return Account.from_orm(orm_account)

    async def set_active(self, account_id: int, is_active: bool) -> bool:
        count = self.session.query(AccountModel).filter_by(id=account_id).update(
            {"is_active": is_active},
            synchronize_session="fetch"
        )
        return count > 0

    async def get_balance(self, account_id: int) -> int:
        """
        Raises:
            AccountNotFound: unknown account
        """
        balance = (
            self.session.query(AccountModel.credits)
            .filter(AccountModel.id == account_id)
            .scalar()
        )
        if balance is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return balance

    async def debit(
        self,
        account_id: int,
        amount: int,
        reason: LedgerReason = LedgerReason.DEBIT,
        task_id: Optional[str] = None
    ) -> bool:
        """
        Decrease balance by amount if and only if balance >= amount

        Returns:
            True if debited, False on insufficient balance (nothing written)

        Raises:
            ValueError: amount is not a positive integer
            AccountNotFound: unknown account
        """
        _check_amount(amount)

        count = (
            self.session.query(AccountModel)
            .filter(AccountModel.id == account_id, AccountModel.credits >= amount)
            .update(
                {AccountModel.credits: AccountModel.credits - amount},
                synchronize_session="fetch"
            )
        )

        if count == 0:
            # Distinguish "no such account" from "not enough credits"
            await self.get_balance(account_id)
            return False

        balance_after = await self.get_balance(account_id)
        self._journal(account_id, -amount, balance_after, reason, task_id)
        return True

    async def credit(
        self,
        account_id: int,
        amount: int,
        reason: LedgerReason = LedgerReason.REFUND,
        task_id: Optional[str] = None
    ) -> int:
        """
        Increase balance by amount

        Returns:
            New balance

        Raises:
            ValueError: amount is not a positive integer
            AccountNotFound: unknown account
        """
        _check_amount(amount)

        count = (
            self.session.query(AccountModel)
            .filter(AccountModel.id == account_id)
            .update(
                {AccountModel.credits: AccountModel.credits + amount},
                synchronize_session="fetch"
            )
        )
        if count == 0:
            raise AccountNotFound(f"Account {account_id} not found")

        balance_after = await self.get_balance(account_id)
        self._journal(account_id, amount, balance_after, reason, task_id)
        return balance_after

    async def list_entries(
        self,
        account_id: int,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[LedgerEntry]:
        """Journal entries, oldest first"""
        query = (
            self.session.query(LedgerEntryModel)
            .filter(LedgerEntryModel.account_id == account_id)
            .order_by(LedgerEntryModel.id.asc())
            .offset(skip)
        )
        if limit is not None:
            query = query.limit(limit)
        return [LedgerEntry.from_orm(e) for e in query.all()]

    async def journal_total(self, account_id: int) -> int:
        total = (
            self.session.query(func.coalesce(func.sum(LedgerEntryModel.delta), 0))
            .filter(LedgerEntryModel.account_id == account_id)
            .scalar()
        )
        return int(total)

    def _journal(
        self,
        account_id: int,
        delta: int,
        balance_after: int,
        reason: LedgerReason,
        task_id: Optional[str] = None
    ):
        self.session.add(LedgerEntryModel(
            account_id=account_id,
            delta=delta,
            balance_after=balance_after,
            reason=reason.value,
            task_id=task_id
        ))
        self.flush()
