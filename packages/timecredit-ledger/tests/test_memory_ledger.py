"""Tests for InMemoryLedger."""
from __future__ import annotations

import asyncio
import random

import pytest
import pytest_asyncio

from timecredit_chain.simulated import SimulatedNetwork
from timecredit_core.exceptions import (
    EmployeeNotFoundError,
    InsufficientBookBalanceError,
    NotAuthorizedError,
    TimeCreditConfigurationError,
    TimeCreditValidationError,
)
from timecredit_core.models import LedgerAction, replay_balance
from timecredit_ledger.base import WalletBalance
from timecredit_ledger.memory import InMemoryLedger

ONE = 10**18


@pytest_asyncio.fixture
async def registered(ledger, owner_address, wallet_address):
    await ledger.register_employee(owner_address, "E001", wallet_address)
    return ledger


class TestRegistration:
    """Tests for employee registration and status."""

    @pytest.mark.asyncio
    async def test_register_and_get(self, ledger, owner_address, wallet_address):
        """Should store a new active employee."""
        receipt = await ledger.register_employee(owner_address, "E001", wallet_address)

        employee = await ledger.get_employee("E001")
        assert employee.wallet_address == wallet_address
        assert employee.active is True
        assert receipt.simulated is True
        assert receipt.record_id.startswith("0x")
        assert [e.user_code for e in await ledger.list_employees()] == ["E001"]

    @pytest.mark.asyncio
    async def test_duplicate_registration_rejected(self, registered, owner_address, wallet_address):
        """Should reject a second registration of the same user code."""
        with pytest.raises(TimeCreditValidationError, match="already registered"):
            await registered.register_employee(owner_address, "E001", wallet_address)

    @pytest.mark.asyncio
    async def test_status_update(self, registered, owner_address):
        """Should flip the active flag."""
        await registered.update_employee_status(owner_address, "E001", False)
        assert (await registered.get_employee("E001")).active is False

    @pytest.mark.asyncio
    async def test_unknown_employee(self, ledger):
        """Should raise EmployeeNotFoundError for an unknown user code."""
        with pytest.raises(EmployeeNotFoundError):
            await ledger.get_employee("NOPE")


class TestOwnerGate:
    """Tests that every mutation is owner-only."""

    @pytest.mark.asyncio
    async def test_non_owner_cannot_mutate(self, registered, stranger_address, wallet_address):
        """Should reject every mutation from a non-owner without changing state."""
        calls = [
            registered.register_employee(stranger_address, "E002", wallet_address),
            registered.update_employee_status(stranger_address, "E001", False),
            registered.credit(stranger_address, "E001", ONE),
            registered.record_withdraw(stranger_address, "E001", 1),
            registered.record_purchase(stranger_address, "E001", 1),
        ]
        for call in calls:
            with pytest.raises(NotAuthorizedError):
                await call

        assert await registered.get_log_count("E001") == 0
        assert (await registered.get_employee("E001")).active is True

    @pytest.mark.asyncio
    async def test_owner_case_insensitive(self, registered, owner_address):
        """Should accept the owner address in lowercase."""
        await registered.credit(owner_address.lower(), "E001", ONE)
        assert await registered.get_book_balance("E001") == ONE

    @pytest.mark.asyncio
    async def test_require_owner(self, ledger, owner_address, stranger_address):
        """Should expose the guard for services."""
        assert await ledger.require_owner(owner_address) == owner_address
        with pytest.raises(NotAuthorizedError):
            await ledger.require_owner(stranger_address)


class TestBookkeeping:
    """Tests for credit, withdraw and purchase records."""

    @pytest.mark.asyncio
    async def test_credit_and_withdraw(self, registered, owner_address):
        """Should keep book balance as credited minus withdrawn."""
        await registered.credit(owner_address, "E001", 3 * ONE)
        await registered.record_withdraw(owner_address, "E001", ONE)

        totals = await registered.get_totals("E001")
        assert totals.total_credited_minor == 3 * ONE
        assert totals.total_withdrawn_minor == ONE
        assert await registered.get_book_balance("E001") == 2 * ONE

    @pytest.mark.asyncio
    async def test_withdraw_beyond_book_balance(self, registered, owner_address):
        """Should reject a withdrawal record that would go negative."""
        await registered.credit(owner_address, "E001", ONE)

        with pytest.raises(InsufficientBookBalanceError) as exc_info:
            await registered.record_withdraw(owner_address, "E001", ONE + 1)
        assert exc_info.value.details["book_balance_minor"] == str(ONE)
        assert await registered.get_log_count("E001") == 1

    @pytest.mark.asyncio
    async def test_record_withdraw_twice_double_counts(self, registered, owner_address):
        """Should count a repeated withdrawal record twice: there is no idempotency key."""
        await registered.credit(owner_address, "E001", 2 * ONE)

        await registered.record_withdraw(owner_address, "E001", ONE)
        await registered.record_withdraw(owner_address, "E001", ONE)

        assert await registered.get_book_balance("E001") == 0
        assert (await registered.get_totals("E001")).total_withdrawn_minor == 2 * ONE

    @pytest.mark.asyncio
    async def test_purchase_leaves_withdrawn_untouched(self, registered, owner_address):
        """Should log a purchase without reducing book balance."""
        await registered.credit(owner_address, "E001", 2 * ONE)
        await registered.record_purchase(owner_address, "E001", ONE)

        assert await registered.get_book_balance("E001") == 2 * ONE
        entries = await registered.get_logs("E001").to_list()
        assert replay_balance(entries) == ONE

    @pytest.mark.asyncio
    async def test_zero_amount_allowed(self, registered, owner_address):
        """Should accept a zero amount (amounts are non-negative)."""
        await registered.credit(owner_address, "E001", 0)
        assert await registered.get_log_count("E001") == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [-1, 1.5, "10", True, None])
    async def test_invalid_amounts(self, registered, owner_address, amount):
        """Should reject negative and non-integer amounts."""
        with pytest.raises(TimeCreditValidationError):
            await registered.credit(owner_address, "E001", amount)

    @pytest.mark.asyncio
    async def test_unknown_employee_mutation(self, ledger, owner_address):
        """Should raise EmployeeNotFoundError on mutation of an unknown employee."""
        with pytest.raises(EmployeeNotFoundError):
            await ledger.credit(owner_address, "GHOST", ONE)

    @pytest.mark.asyncio
    async def test_reads_for_unknown_employee_are_zero(self, ledger):
        """Should report zero totals and an empty log for unknown codes."""
        assert await ledger.get_book_balance("GHOST") == 0
        assert await ledger.get_log_count("GHOST") == 0
        assert await ledger.get_logs("GHOST").to_list() == []


class TestLogs:
    """Tests for the append-only log."""

    @pytest.mark.asyncio
    async def test_entries_in_insertion_order(self, registered, owner_address):
        """Should return entries in the order they were appended."""
        await registered.credit(owner_address, "E001", 5)
        await registered.record_withdraw(owner_address, "E001", 2)
        await registered.record_purchase(owner_address, "E001", 1)

        entries = await registered.get_logs("E001").to_list()
        assert [e.action for e in entries] == [
            LedgerAction.CREDIT, LedgerAction.WITHDRAW, LedgerAction.PURCHASE,
        ]
        assert [e.amount_minor for e in entries] == [5, 2, 1]
        assert entries[0].timestamp < entries[1].timestamp < entries[2].timestamp
        assert await registered.get_log_entry("E001", 1) == entries[1]

    @pytest.mark.asyncio
    async def test_log_view_is_restartable(self, registered, owner_address):
        """Should start again at index 0 on each iteration."""
        await registered.credit(owner_address, "E001", 5)
        await registered.credit(owner_address, "E001", 6)
        view = registered.get_logs("E001")

        first = [e.amount_minor async for e in view]
        second = [e.amount_minor async for e in view]
        assert first == second == [5, 6]

    @pytest.mark.asyncio
    async def test_index_out_of_range(self, registered):
        """Should reject an index past the end of the log."""
        with pytest.raises(TimeCreditValidationError):
            await registered.get_log_entry("E001", 0)
        with pytest.raises(TimeCreditValidationError):
            await registered.get_log_entry("E001", -1)


class TestConcurrency:
    """Tests for interleaved mutations."""

    @pytest.mark.asyncio
    async def test_book_balance_matches_totals_under_interleaving(self, registered, owner_address):
        """Should keep book balance equal to sum of credits minus withdrawals."""
        rng = random.Random(7)
        credits = [rng.randint(1, 1000) for _ in range(40)]
        withdrawals = [rng.randint(1, 500) for _ in range(40)]

        async def credit(amount):
            await asyncio.sleep(0)
            await registered.credit(owner_address, "E001", amount)

        async def withdraw(amount):
            await asyncio.sleep(0)
            try:
                await registered.record_withdraw(owner_address, "E001", amount)
                return amount
            except InsufficientBookBalanceError:
                return 0

        tasks = [credit(a) for a in credits] + [withdraw(a) for a in withdrawals]
        rng.shuffle(tasks)
        results = await asyncio.gather(*tasks)
        withdrawn = sum(r for r in results if r)

        entries = await registered.get_logs("E001").to_list()
        credited_logged = sum(e.amount_minor for e in entries if e.action is LedgerAction.CREDIT)
        withdrawn_logged = sum(e.amount_minor for e in entries if e.action is LedgerAction.WITHDRAW)

        assert credited_logged == sum(credits)
        assert withdrawn_logged == withdrawn
        assert await registered.get_book_balance("E001") == sum(credits) - withdrawn
        assert await registered.get_book_balance("E001") >= 0


class TestEmployeeBalance:
    """Tests for the wallet balance read."""

    @pytest.mark.asyncio
    async def test_wallet_balance_is_separate_from_book_balance(self, owner_address, wallet_address):
        """Should read the wallet balance from the network, not the ledger."""
        network = SimulatedNetwork()
        network.fund(wallet_address, 7 * ONE)
        ledger = InMemoryLedger(owner_address, network=network)
        await ledger.register_employee(owner_address, "E001", wallet_address)
        await ledger.credit(owner_address, "E001", ONE)

        balance = await ledger.get_employee_balance("E001")
        assert isinstance(balance, WalletBalance)
        assert balance.balance_minor == 7 * ONE
        assert await ledger.get_book_balance("E001") == ONE

    @pytest.mark.asyncio
    async def test_wallet_balance_needs_network(self, registered):
        """Should raise a configuration error when no network is attached."""
        with pytest.raises(TimeCreditConfigurationError):
            await registered.get_employee_balance("E001")
