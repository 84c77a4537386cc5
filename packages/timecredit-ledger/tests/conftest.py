"""
Pytest configuration for timecredit-ledger tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

# Add cross-package imports
packages_dir = Path(__file__).parent.parent.parent
for pkg in ["timecredit-core", "timecredit-chain"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists() and str(pkg_path) not in sys.path:
        sys.path.insert(0, str(pkg_path))

# Set test environment
os.environ.setdefault("TIMECREDIT_ENVIRONMENT", "dev")
os.environ.setdefault("TIMECREDIT_CHAIN_MODE", "simulated")

# Hardhat accounts #0, #1 and #2
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
STRANGER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
WALLET_ADDRESS = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


class FakeClock:
    """Deterministic epoch clock; each read advances one second."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1
        return float(self.now)


@pytest.fixture
def owner_address():
    return OWNER_ADDRESS


@pytest.fixture
def stranger_address():
    return STRANGER_ADDRESS


@pytest.fixture
def wallet_address():
    return WALLET_ADDRESS


@pytest.fixture
def ledger():
    from timecredit_ledger.memory import InMemoryLedger

    return InMemoryLedger(OWNER_ADDRESS, clock=FakeClock())


@pytest.fixture
def catalog():
    from timecredit_ledger.catalog import InMemoryProductCatalog

    return InMemoryProductCatalog(OWNER_ADDRESS)
