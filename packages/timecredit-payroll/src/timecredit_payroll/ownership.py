"""Owner identity checks shared by the payroll services."""
from __future__ import annotations

from timecredit_chain.credentials import same_address
from timecredit_chain.owner import OwnerSigner
from timecredit_core.exceptions import NotAuthorizedError, OwnerMismatchError
from timecredit_core.models import Employee
from timecredit_ledger.base import Ledger


async def ensure_ledger_owner(ledger: Ledger, signer: OwnerSigner) -> str:
    """Return the signer address if it is the ledger's configured owner."""
    owner = await ledger.owner()
    if not same_address(owner, signer.address):
        raise OwnerMismatchError(owner, signer.address)
    return signer.address


def require_active(employee: Employee) -> Employee:
    if not employee.active:
        raise NotAuthorizedError(
            f"Employee '{employee.user_code}' is inactive",
            details={"user_code": employee.user_code},
        )
    return employee
