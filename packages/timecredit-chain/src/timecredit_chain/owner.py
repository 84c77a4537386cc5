"""The one place the owner's private key lives."""
from __future__ import annotations

import logging
from typing import Optional, Union

from pydantic import SecretStr

from timecredit_core.exceptions import TimeCreditConfigurationError, InvalidCredentialError

from .credentials import derive_account
from .executor import SubmittedTransaction, TransactionExecutor

logger = logging.getLogger(__name__)


class OwnerSigner:
    """Issues every owner-originated transaction.

    Each call goes through the executor, which holds the owner's signing
    lane while it fetches a fresh pending nonce, signs and broadcasts.
    Concurrent owner operations therefore queue instead of reusing a nonce.
    """

    def __init__(self, executor: TransactionExecutor, private_key: Union[str, SecretStr]):
        secret = private_key.get_secret_value() if isinstance(private_key, SecretStr) else private_key
        if not secret:
            raise TimeCreditConfigurationError("Owner private key is not configured")
        try:
            self._account = derive_account(secret)
        except InvalidCredentialError as exc:
            raise TimeCreditConfigurationError("Owner private key is invalid") from exc
        self._executor = executor

    def __repr__(self) -> str:
        return f"OwnerSigner(address={self.address})"

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def executor(self) -> TransactionExecutor:
        return self._executor

    async def transfer(
        self,
        to: str,
        value_minor: int,
        gas_limit: int = 21_000,
        wait: bool = True,
    ) -> SubmittedTransaction:
        """Plain value transfer from the owner."""
        logger.info("Owner transfer of %d to %s", value_minor, to)
        return await self._executor.send(
            self._account, to, value=value_minor, gas_limit=gas_limit, wait=wait,
        )

    async def transact(
        self,
        to: str,
        data: str,
        gas_limit: Optional[int] = None,
        value_minor: int = 0,
    ) -> SubmittedTransaction:
        """Owner contract call, preflighted so reverts carry their reason."""
        return await self._executor.send(
            self._account,
            to,
            value=value_minor,
            data=data,
            gas_limit=gas_limit,
            preflight=True,
        )
