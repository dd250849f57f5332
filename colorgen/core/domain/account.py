"""
Account Domain Models

Value Objects:
- LedgerEntry: one journal row of a balance change
- LedgerAudit: result of checking the journal against balances and tasks

Aggregate Root:
- Account: credit-holding account
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class LedgerReason(str, Enum):
    """Why a balance changed"""
    OPENING = "opening"
    DEBIT = "debit"
    REFUND = "refund"
    TOP_UP = "top_up"


@dataclass
class Account:
    """
    Aggregate Root cho Account

    Balance is never negative; all mutations go through the ledger repository.
    """
    id: int
    email: str
    credits: int
    display_name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.email:
            raise ValueError("Email cannot be empty")
        if self.credits < 0:
            raise ValueError("credits cannot be negative")

    @staticmethod
    def from_orm(orm_account) -> 'Account':
        return Account(
            id=orm_account.id,
            email=orm_account.email,
            credits=orm_account.credits or 0,
            display_name=orm_account.display_name,
            is_active=bool(orm_account.is_active),
            created_at=orm_account.created_at
        )

    def can_afford(self, amount: int) -> bool:
        return self.credits >= amount

    def __str__(self) -> str:
        return f"Account(id={self.id}, email={self.email}, credits={self.credits})"


@dataclass(frozen=True)
class LedgerEntry:
    account_id: int
    delta: int
    balance_after: int
    reason: LedgerReason
    task_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def from_orm(orm_entry) -> 'LedgerEntry':
        return LedgerEntry(
            id=orm_entry.id,
            account_id=orm_entry.account_id,
            delta=orm_entry.delta,
            balance_after=orm_entry.balance_after,
            reason=LedgerReason(orm_entry.reason),
            task_id=orm_entry.task_id,
            created_at=orm_entry.created_at
        )


@dataclass
class LedgerAudit:
    """
    Reconciliation report for one account

    A consistent account has no discrepancies: the balance equals the journal
    total and every task was charged once and refunded at most once.
    """
    account_id: int
    balance: int
    journal_total: int
    tasks_checked: int = 0
    discrepancies: List[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies
