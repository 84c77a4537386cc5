"""Tests for ContractLedger against the simulated network."""
from __future__ import annotations

import pytest

from timecredit_chain.executor import TransactionExecutor
from timecredit_chain.owner import OwnerSigner
from timecredit_chain.simulated import SimulatedNetwork
from timecredit_core.exceptions import (
    EmployeeNotFoundError,
    InsufficientBookBalanceError,
    NotAuthorizedError,
    OwnerMismatchError,
    TimeCreditValidationError,
)
from timecredit_core.models import LedgerAction
from timecredit_ledger.contract import ContractLedger
from timecredit_ledger.memory import InMemoryLedger
from timecredit_ledger.simulated import LEDGER_CALL_GAS, LedgerContractHandler, _HandlerBase

OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
WALLET = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
LEDGER_ADDRESS = "0x" + "1e" * 20
ONE = 10**18
GAS_PRICE = 1_000_000_000


@pytest.fixture
def network():
    net = SimulatedNetwork(chain_id=1337, gas_price=GAS_PRICE)
    net.fund(OWNER_ADDRESS, 100 * ONE)
    net.fund(OTHER_ADDRESS, 100 * ONE)
    return net


@pytest.fixture
def backing(network):
    ledger = InMemoryLedger(OWNER_ADDRESS)
    network.register_contract(LEDGER_ADDRESS, LedgerContractHandler(ledger))
    return ledger


def make_ledger(network, key=OWNER_KEY):
    executor = TransactionExecutor(network, chain_id=1337, poll_interval=0.001)
    return ContractLedger(network, OwnerSigner(executor, key), LEDGER_ADDRESS)


class TestContractLedgerMutations:
    """Tests for owner-signed contract calls."""

    @pytest.mark.asyncio
    async def test_register_credit_withdraw(self, network, backing):
        """Should apply mutations through signed transactions."""
        ledger = make_ledger(network)

        receipt = await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)
        await ledger.credit(OWNER_ADDRESS, "E001", 3 * ONE)
        await ledger.record_withdraw(OWNER_ADDRESS, "E001", ONE)

        assert receipt.simulated is True
        assert receipt.record_id == network.sent[0].tx_hash
        assert len(network.sent) == 3
        assert await ledger.get_book_balance("E001") == 2 * ONE
        assert await backing.get_book_balance("E001") == 2 * ONE

    @pytest.mark.asyncio
    async def test_owner_pays_fixed_gas(self, network, backing):
        """Should charge the owner for gas actually used at the fixed limit."""
        ledger = make_ledger(network)
        before = network.balance_of(OWNER_ADDRESS)

        await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)

        assert network.sent[0].gas == 300_000
        assert network.balance_of(OWNER_ADDRESS) == before - LEDGER_CALL_GAS * GAS_PRICE

    @pytest.mark.asyncio
    async def test_non_owner_caller_sends_nothing(self, network, backing):
        """Should reject a non-owner caller before any transaction."""
        ledger = make_ledger(network)

        with pytest.raises(NotAuthorizedError):
            await ledger.credit(OTHER_ADDRESS, "E001", ONE)
        assert network.sent == []

    @pytest.mark.asyncio
    async def test_signer_not_owner(self, network, backing):
        """Should raise OwnerMismatchError when the server key is not the ledger owner."""
        ledger = make_ledger(network, key=OTHER_KEY)

        with pytest.raises(OwnerMismatchError):
            await ledger.credit(OWNER_ADDRESS, "E001", ONE)
        assert network.sent == []

    @pytest.mark.asyncio
    async def test_book_balance_revert(self, network, backing):
        """Should map the revert to InsufficientBookBalanceError before signing."""
        ledger = make_ledger(network)
        await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)
        await ledger.credit(OWNER_ADDRESS, "E001", ONE)
        sent = len(network.sent)

        with pytest.raises(InsufficientBookBalanceError) as exc_info:
            await ledger.record_withdraw(OWNER_ADDRESS, "E001", 2 * ONE)

        assert exc_info.value.details["book_balance_minor"] == str(ONE)
        assert len(network.sent) == sent

    @pytest.mark.asyncio
    async def test_unknown_employee_revert(self, network, backing):
        """Should map the not-found revert to EmployeeNotFoundError."""
        ledger = make_ledger(network)

        with pytest.raises(EmployeeNotFoundError):
            await ledger.credit(OWNER_ADDRESS, "GHOST", ONE)

    @pytest.mark.asyncio
    async def test_duplicate_registration_revert(self, network, backing):
        """Should map the duplicate revert to a validation error."""
        ledger = make_ledger(network)
        await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)

        with pytest.raises(TimeCreditValidationError, match="already registered"):
            await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)


class TestContractLedgerReads:
    """Tests for eth_call reads."""

    @pytest.mark.asyncio
    async def test_owner_read(self, network, backing):
        """Should read the owner from the contract."""
        ledger = make_ledger(network)
        assert (await ledger.owner()).lower() == OWNER_ADDRESS.lower()

    @pytest.mark.asyncio
    async def test_employee_reads(self, network, backing):
        """Should decode employees and their status."""
        ledger = make_ledger(network)
        await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)
        await ledger.update_employee_status(OWNER_ADDRESS, "E001", False)

        employee = await ledger.get_employee("E001")
        assert employee.user_code == "E001"
        assert employee.wallet_address.lower() == WALLET.lower()
        assert employee.active is False
        assert [e.user_code for e in await ledger.list_employees()] == ["E001"]

        with pytest.raises(EmployeeNotFoundError):
            await ledger.get_employee("GHOST")

    @pytest.mark.asyncio
    async def test_log_reads(self, network, backing):
        """Should decode log entries in order."""
        ledger = make_ledger(network)
        await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)
        await ledger.credit(OWNER_ADDRESS, "E001", 5)
        await ledger.record_purchase(OWNER_ADDRESS, "E001", 2)

        entries = await ledger.get_logs("E001").to_list()
        assert [(e.action, e.amount_minor) for e in entries] == [
            (LedgerAction.CREDIT, 5),
            (LedgerAction.PURCHASE, 2),
        ]
        assert await ledger.get_log_count("E001") == 2
        totals = await ledger.get_totals("E001")
        assert totals.total_credited_minor == 5
        assert totals.total_withdrawn_minor == 0

        with pytest.raises(TimeCreditValidationError):
            await ledger.get_log_entry("E001", 2)

    @pytest.mark.asyncio
    async def test_wallet_balance(self, network, backing):
        """Should report the wallet balance from the network."""
        ledger = make_ledger(network)
        network.fund(WALLET, 4 * ONE)
        await ledger.register_employee(OWNER_ADDRESS, "E001", WALLET)

        balance = await ledger.get_employee_balance("E001")
        assert balance.balance_minor == 4 * ONE


class TestContractHandlers:
    """Tests for the simulated contract handler base."""

    def test_base_is_abstract(self):
        """Should require handlers to define their mutations and gas."""
        with pytest.raises(TypeError):
            _HandlerBase()

        class NoGas(_HandlerBase):
            def _mutations(self):
                return {}

        with pytest.raises(TypeError):
            NoGas()
