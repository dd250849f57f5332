"""
Unit tests for AccountRepository (ledger store)

Runs against a real SQLite database: the conditional UPDATE is the thing
under test.
"""
import pytest

from colorgen.core.domain.account import LedgerReason
from colorgen.core.exceptions import AccountNotFound
from colorgen.core.repositories.account_repo import AccountRepository
from colorgen.database import session_scope


@pytest.fixture
def repo_session(session_factory):
    with session_scope(session_factory) as session:
        yield session


@pytest.fixture
def account_repo(repo_session):
    return AccountRepository(repo_session)


class TestAccountRepositoryCreate:

    @pytest.mark.asyncio
    async def test_create_with_opening_entry(self, account_repo):
        account = await account_repo.create("new@example.com", "New", initial_credits=15)
        account_repo.commit()

        assert account.id is not None
        assert account.credits == 15
        entries = await account_repo.list_entries(account.id)
        assert [(e.delta, e.balance_after, e.reason) for e in entries] == [
            (15, 15, LedgerReason.OPENING)
        ]

    @pytest.mark.asyncio
    async def test_create_without_credits_has_empty_journal(self, account_repo):
        account = await account_repo.create("zero@example.com")
        assert await account_repo.list_entries(account.id) == []
        assert await account_repo.journal_total(account.id) == 0

    @pytest.mark.asyncio
    async def test_get_by_email(self, account_repo, make_account):
        account_id = make_account(credits=3, email="find@example.com")
        account = await account_repo.get_by_email("find@example.com")
        assert account.id == account_id
        assert await account_repo.get_by_email("missing@example.com") is None


class TestAccountRepositoryDebit:

    @pytest.mark.asyncio
    async def test_debit_success(self, account_repo, make_account):
        account_id = make_account(credits=20)

        assert await account_repo.debit(account_id, 20, task_id="task_a") is True
        account_repo.commit()

        assert await account_repo.get_balance(account_id) == 0
        last = (await account_repo.list_entries(account_id))[-1]
        assert last.delta == -20
        assert last.balance_after == 0
        assert last.reason == LedgerReason.DEBIT
        assert last.task_id == "task_a"

    @pytest.mark.asyncio
    async def test_debit_insufficient_makes_no_change(self, account_repo, make_account):
        account_id = make_account(credits=10)

        assert await account_repo.debit(account_id, 20) is False

        assert await account_repo.get_balance(account_id) == 10
        assert len(await account_repo.list_entries(account_id)) == 1  # opening only

    @pytest.mark.asyncio
    async def test_debit_unknown_account(self, account_repo):
        with pytest.raises(AccountNotFound):
            await account_repo.debit(999, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    async def test_amount_must_be_positive_integer(self, account_repo, make_account, amount):
        account_id = make_account(credits=20)
        with pytest.raises(ValueError, match="positive integer"):
            await account_repo.debit(account_id, amount)
        with pytest.raises(ValueError, match="positive integer"):
            await account_repo.credit(account_id, amount)

    @pytest.mark.asyncio
    async def test_sequential_debits_never_overdraw(self, account_repo, make_account):
        account_id = make_account(credits=50)

        outcomes = [await account_repo.debit(account_id, 20) for _ in range(4)]

        assert outcomes == [True, True, False, False]
        assert await account_repo.get_balance(account_id) == 10


class TestAccountRepositoryCredit:

    @pytest.mark.asyncio
    async def test_credit_returns_new_balance(self, account_repo, make_account):
        account_id = make_account(credits=5)

        balance = await account_repo.credit(account_id, 20, LedgerReason.REFUND, "task_b")

        assert balance == 25
        assert await account_repo.journal_total(account_id) == 25

    @pytest.mark.asyncio
    async def test_credit_unknown_account(self, account_repo):
        with pytest.raises(AccountNotFound):
            await account_repo.credit(999, 1)

    @pytest.mark.asyncio
    async def test_rollback_discards_balance_and_journal(self, account_repo, make_account, balance_of):
        account_id = make_account(credits=20)

        await account_repo.debit(account_id, 20)
        account_repo.rollback()

        assert balance_of(account_id) == 20
        assert len(await account_repo.list_entries(account_id)) == 1
