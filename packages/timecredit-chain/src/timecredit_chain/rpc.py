"""JSON-RPC client for an Ethereum-compatible node."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from timecredit_core.exceptions import (
    ContractRevertError,
    TimeCreditException,
    exception_from_chain_error,
)

from .abi import decode_revert_reason, to_bytes
from .network import SignedTransaction, TransactionReceipt, ValueNetwork

logger = logging.getLogger(__name__)


class RPCError(Exception):
    """JSON-RPC error object returned by the node."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class JsonRpcNetwork(ValueNetwork):
    """ValueNetwork over HTTP JSON-RPC.

    Transport and node errors are mapped onto the TimeCredit taxonomy. Nothing
    is retried here; a failed broadcast is reported to the caller as is.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: Optional[float] = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._http_client = client
        self._request_id = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make JSON-RPC call."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        client = await self._get_client()
        try:
            response = await client.post(
                self._rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("RPC transport failure on %s: %s", method, e)
            raise exception_from_chain_error(e, method=method) from e

        if "error" in result:
            raise self._map_rpc_error(method, result["error"])

        return result.get("result")

    def _map_rpc_error(self, method: str, error: Any) -> TimeCreditException:
        if not isinstance(error, dict):
            return exception_from_chain_error(RPCError(str(error)), method=method)

        message = str(error.get("message", "unknown RPC error"))
        data = error.get("data")
        if isinstance(data, dict):
            data = data.get("data") or data.get("result")

        reason = decode_revert_reason(data) if isinstance(data, str) else None
        if reason is not None:
            return ContractRevertError(reason, method=method, details={"rpc_code": error.get("code")})

        return exception_from_chain_error(
            RPCError(f"RPC error {error.get('code')}: {message}", code=error.get("code"), data=data),
            method=method,
        )

    async def get_chain_id(self) -> int:
        return int(await self._call("eth_chainId"), 16)

    async def get_balance(self, address: str) -> int:
        result = await self._call("eth_getBalance", [address, "latest"])
        return int(result, 16)

    async def get_gas_price(self) -> int:
        """Get current gas price in wei."""
        result = await self._call("eth_gasPrice")
        return int(result, 16)

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        result = await self._call("eth_getTransactionCount", [address, block])
        return int(result, 16)

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        result = await self._call("eth_estimateGas", [_to_rpc_tx(tx)])
        return int(result, 16)

    async def call(self, to: str, data: str, sender: Optional[str] = None) -> bytes:
        tx: dict[str, Any] = {"to": to, "data": data}
        if sender:
            tx["from"] = sender
        result = await self._call("eth_call", [tx, "latest"])
        return to_bytes(result)

    async def send_transaction(self, signed: SignedTransaction) -> str:
        """Broadcast signed transaction."""
        return await self._call("eth_sendRawTransaction", [signed.raw_transaction])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        payload = await self._call("eth_getTransactionReceipt", [tx_hash])
        if not payload:
            return None
        return TransactionReceipt.from_rpc(payload)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


def _to_rpc_tx(tx: dict[str, Any]) -> dict[str, Any]:
    """Hex-encode integer fields the way nodes expect them."""
    out: dict[str, Any] = {}
    for key, value in tx.items():
        if isinstance(value, int) and not isinstance(value, bool):
            out[key] = hex(value)
        else:
            out[key] = value
    return out
