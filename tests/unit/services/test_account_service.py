"""
Unit tests for AccountService
"""
import pytest

from colorgen.core.domain.account import LedgerReason
from colorgen.core.domain.task import GenerationInput, TaskKind
from colorgen.core.exceptions import AccountNotFound, InvalidInput
from colorgen.database import session_scope
from colorgen.models import Account as AccountModel
from colorgen.models import GenerationTask as TaskModel
from colorgen.models import LedgerEntry as LedgerEntryModel


class TestCreateAccount:

    @pytest.mark.asyncio
    async def test_create_normalises_email(self, account_service):
        account = await account_service.create_account("  Artist@Example.COM ", "Artist", 30)

        assert account.email == "artist@example.com"
        assert account.credits == 30
        assert account.is_active is True

        entries = await account_service.list_ledger(account.id)
        assert [e.reason for e in entries] == [LedgerReason.OPENING]

    @pytest.mark.asyncio
    async def test_duplicate_email(self, account_service):
        await account_service.create_account("dup@example.com")
        with pytest.raises(InvalidInput) as exc_info:
            await account_service.create_account("DUP@example.com")
        assert exc_info.value.field == "email"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email, credits", [("", 0), ("   ", 0), ("x@example.com", -1)])
    async def test_invalid_arguments(self, account_service, email, credits):
        with pytest.raises(InvalidInput):
            await account_service.create_account(email, initial_credits=credits)


class TestBalanceOperations:

    @pytest.mark.asyncio
    async def test_top_up(self, account_service, make_account):
        account_id = make_account(credits=5)

        account = await account_service.top_up(account_id, 15)

        assert account.credits == 20
        last = (await account_service.list_ledger(account_id))[-1]
        assert (last.delta, last.balance_after, last.reason) == (15, 20, LedgerReason.TOP_UP)

    @pytest.mark.asyncio
    async def test_top_up_rejects_non_positive(self, account_service, make_account):
        account_id = make_account()
        with pytest.raises(InvalidInput):
            await account_service.top_up(account_id, 0)

    @pytest.mark.asyncio
    async def test_unknown_account(self, account_service):
        with pytest.raises(AccountNotFound):
            await account_service.get_account(404)
        with pytest.raises(AccountNotFound):
            await account_service.top_up(404, 5)
        with pytest.raises(AccountNotFound):
            await account_service.list_ledger(404)
        with pytest.raises(AccountNotFound):
            await account_service.set_active(404, False)

    @pytest.mark.asyncio
    async def test_set_active(self, account_service, make_account):
        account_id = make_account()
        assert (await account_service.set_active(account_id, False)).is_active is False
        assert (await account_service.set_active(account_id, True)).is_active is True


class TestAudit:

    @pytest.mark.asyncio
    async def test_fresh_account_is_consistent(self, account_service, make_account):
        account_id = make_account(credits=20)

        audit = await account_service.audit(account_id)

        assert audit.is_consistent
        assert audit.balance == audit.journal_total == 20
        assert audit.tasks_checked == 0

    @pytest.mark.asyncio
    async def test_detects_balance_drift(self, account_service, make_account, session_factory):
        account_id = make_account(credits=20)
        with session_scope(session_factory) as session:
            session.query(AccountModel).filter_by(id=account_id).update({"credits": 50})
            session.commit()

        audit = await account_service.audit(account_id)

        assert not audit.is_consistent
        assert "differs from journal total" in audit.discrepancies[0]

    @pytest.mark.asyncio
    async def test_detects_missing_refund(
        self, account_service, generation_service, make_account, session_factory
    ):
        account_id = make_account(credits=20)
        handle = await generation_service.submit(
            account_id, TaskKind.TEXT_TO_IMAGE, GenerationInput(prompt="a whale")
        )
        await generation_service.cancel(handle.task_id, account_id)
        with session_scope(session_factory) as session:
            session.query(LedgerEntryModel).filter_by(
                task_id=handle.task_id, reason=LedgerReason.REFUND.value
            ).delete()
            session.commit()

        audit = await account_service.audit(account_id)

        assert any("0 refunds for a cancelled task" in d for d in audit.discrepancies)

    @pytest.mark.asyncio
    async def test_detects_refunded_flag_mismatch(
        self, account_service, generation_service, make_account, session_factory
    ):
        account_id = make_account(credits=20)
        handle = await generation_service.submit(
            account_id, TaskKind.TEXT_TO_IMAGE, GenerationInput(prompt="a whale")
        )
        with session_scope(session_factory) as session:
            session.query(TaskModel).filter_by(task_id=handle.task_id).update({"refunded": True})
            session.commit()

        audit = await account_service.audit(account_id)

        assert audit.tasks_checked == 1
        assert any("refunded flag" in d for d in audit.discrepancies)
