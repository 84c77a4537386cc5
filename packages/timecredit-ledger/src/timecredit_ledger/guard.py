"""Owner gate placed in front of every ledger mutation."""
from __future__ import annotations

import logging

from timecredit_core.exceptions import NotAuthorizedError

logger = logging.getLogger(__name__)


class OwnershipGuard:
    """Compares a caller identity with the single configured owner.

    Addresses compare case-insensitively. Reads never go through the guard.
    """

    def __init__(self, owner: str) -> None:
        if not owner:
            raise ValueError("OwnershipGuard needs an owner address")
        self._owner = owner

    @property
    def owner(self) -> str:
        return self._owner

    def is_owner(self, caller: str) -> bool:
        return isinstance(caller, str) and caller.lower() == self._owner.lower()

    def check(self, caller: str) -> str:
        """Return the caller if it is the owner, else raise NotAuthorizedError."""
        if not self.is_owner(caller):
            logger.warning("Rejected ledger mutation from non-owner %s", caller)
            raise NotAuthorizedError(
                "Only the ledger owner may modify the ledger",
                caller=str(caller),
            )
        return caller
