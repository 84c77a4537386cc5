"""
Pytest configuration for timecredit-core tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

# Set test environment
os.environ.setdefault("TIMECREDIT_ENVIRONMENT", "dev")
os.environ.setdefault("TIMECREDIT_CHAIN_MODE", "simulated")
