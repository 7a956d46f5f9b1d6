"""AccountApplicationService over the in-memory ledger."""

from unittest.mock import patch

import pytest

from src.pm_account.application import service as account_service
from src.pm_account.application.schemas import cursor_decode, cursor_encode
from src.pm_account.application.service import AccountApplicationService
from src.pm_common.errors import AccountNotFoundError, SimulatedDepositDisabledError
from tests.unit.fakes import FakeAccountRepository


@pytest.fixture
def service(accounts: FakeAccountRepository) -> AccountApplicationService:
    accounts.open("alice", 650_000)
    return AccountApplicationService(accounts)


class TestBalance:
    async def test_minor_and_display(self, service, db) -> None:
        resp = await service.get_balance(db, "alice")
        assert resp.balance_minor == 650_000
        assert resp.balance_display == "NGN 6,500.00"
        assert resp.currency == "NGN"

    async def test_missing_account(self, service, db) -> None:
        with pytest.raises(AccountNotFoundError):
            await service.get_balance(db, "nobody")


class TestSimulatedDeposit:
    async def test_disabled_by_default(self, service, accounts, db) -> None:
        with (
            patch.object(account_service.settings, "ALLOW_SIMULATED_DEPOSITS", False),
            pytest.raises(SimulatedDepositDisabledError),
        ):
            await service.deposit(db, "alice", 100)
        assert accounts.balances["alice"] == 650_000

    async def test_credits_and_records(self, service, accounts, db) -> None:
        with patch.object(account_service.settings, "ALLOW_SIMULATED_DEPOSITS", True):
            resp = await service.deposit(db, "alice", 50_000)

        assert resp.balance_minor == 700_000
        assert resp.deposited_minor == 50_000
        entry = accounts.entries("alice", "DEPOSIT")[0]
        assert (entry.id, entry.balance_after, entry.status) == (resp.ledger_entry_id, 700_000, "COMPLETED")
        db.commit.assert_awaited_once()


class TestLedger:
    async def _seed(self, accounts: FakeAccountRepository) -> None:
        for amount, kind in ((-5000, "ORDER_STAKE"), (5000, "REFUND"), (-700, "ORDER_STAKE")):
            await accounts.record_ledger_entry(None, "alice", kind, amount, 0)

    async def test_newest_first_with_cursor(self, service, accounts, db) -> None:
        await self._seed(accounts)

        page1 = await service.list_ledger(db, "alice", None, 2, None)
        page2 = await service.list_ledger(db, "alice", page1.next_cursor, 2, None)

        assert [i.amount_minor for i in page1.items] == [-700, 5000]
        assert page1.has_more is True
        assert [i.amount_minor for i in page2.items] == [-5000]
        assert page2.next_cursor is None

    async def test_filter_by_type(self, service, accounts, db) -> None:
        await self._seed(accounts)
        page = await service.list_ledger(db, "alice", None, 20, "ORDER_STAKE")
        assert [i.amount_display for i in page.items] == ["-NGN 7.00", "-NGN 50.00"]

    def test_cursor_round_trip(self) -> None:
        assert cursor_decode(cursor_encode(42)) == 42
        assert cursor_decode("garbage!") is None
