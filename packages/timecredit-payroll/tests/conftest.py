"""
Pytest configuration for timecredit-payroll tests.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest
import pytest_asyncio

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

# Add cross-package imports
packages_dir = Path(__file__).parent.parent.parent
for pkg in ["timecredit-core", "timecredit-chain", "timecredit-ledger"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists() and str(pkg_path) not in sys.path:
        sys.path.insert(0, str(pkg_path))

# Set test environment
os.environ.setdefault("TIMECREDIT_ENVIRONMENT", "dev")
os.environ.setdefault("TIMECREDIT_CHAIN_MODE", "simulated")

from timecredit_chain.executor import TransactionExecutor  # noqa: E402
from timecredit_chain.owner import OwnerSigner  # noqa: E402
from timecredit_chain.simulated import SimulatedNetwork  # noqa: E402
from timecredit_ledger.catalog import InMemoryProductCatalog  # noqa: E402
from timecredit_ledger.memory import InMemoryLedger  # noqa: E402
from timecredit_ledger.simulated import CatalogContractHandler  # noqa: E402

ONE = 10**18
GAS_PRICE = 1_000_000_000

# Hardhat accounts #0, #1 and #2
OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
EMPLOYEE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
EMPLOYEE_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
OTHER_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"
OTHER_ADDRESS = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

CATALOG_ADDRESS = "0x" + "ca" * 20


@dataclass
class SimulatedStack:
    network: SimulatedNetwork
    executor: TransactionExecutor
    signer: OwnerSigner
    ledger: InMemoryLedger
    catalog: InMemoryProductCatalog
    catalog_handler: CatalogContractHandler
    owner_address: str = OWNER_ADDRESS
    employee_key: str = EMPLOYEE_KEY
    employee_address: str = EMPLOYEE_ADDRESS
    other_key: str = OTHER_KEY
    other_address: str = OTHER_ADDRESS
    catalog_address: str = CATALOG_ADDRESS


@pytest.fixture
def stack():
    """Owner-funded simulated network with an in-memory ledger and catalog."""
    network = SimulatedNetwork(chain_id=1337, gas_price=GAS_PRICE)
    network.fund(OWNER_ADDRESS, 1_000 * ONE)
    executor = TransactionExecutor(network, chain_id=1337, poll_interval=0.001)
    catalog = InMemoryProductCatalog(OWNER_ADDRESS)
    handler = CatalogContractHandler(catalog)
    network.register_contract(CATALOG_ADDRESS, handler)
    return SimulatedStack(
        network=network,
        executor=executor,
        signer=OwnerSigner(executor, OWNER_KEY),
        ledger=InMemoryLedger(OWNER_ADDRESS, network=network),
        catalog=catalog,
        catalog_handler=handler,
    )


@pytest_asyncio.fixture
async def employee(stack):
    """E001 registered with the Hardhat #1 wallet holding 1 unit."""
    await stack.ledger.register_employee(OWNER_ADDRESS, "E001", EMPLOYEE_ADDRESS)
    stack.network.fund(EMPLOYEE_ADDRESS, ONE)
    return "E001"
