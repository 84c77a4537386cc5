"""
Pytest configuration for timecredit-chain tests.
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
for pkg in ["timecredit-core"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists() and str(pkg_path) not in sys.path:
        sys.path.insert(0, str(pkg_path))

# Set test environment
os.environ.setdefault("TIMECREDIT_ENVIRONMENT", "dev")
os.environ.setdefault("TIMECREDIT_CHAIN_MODE", "simulated")


@pytest.fixture
def sample_eth_address():
    """Valid Ethereum address for testing."""
    return "0x1234567890123456789012345678901234567890"
