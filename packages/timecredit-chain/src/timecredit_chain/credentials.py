"""Credential derivation and local transaction signing."""
from __future__ import annotations

import re
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from timecredit_core.exceptions import InvalidCredentialError

from .network import SignedTransaction

_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def derive_account(credential: str) -> LocalAccount:
    """Load the account behind a hex private key ("0x" prefix optional).

    Raises InvalidCredentialError for anything that is not a usable secp256k1
    key. The offending value is never echoed back.
    """
    if not isinstance(credential, str):
        raise InvalidCredentialError("Credential must be a hex string")
    key = credential.strip()
    if key[:2] in ("0x", "0X"):
        key = key[2:]
    if not _KEY_RE.match(key):
        raise InvalidCredentialError("Credential must be 32 bytes of hex")
    try:
        return Account.from_key("0x" + key)
    except Exception as exc:  # eth_keys rejects zero / out-of-range keys
        raise InvalidCredentialError("Credential is not a valid private key") from exc


def derive_address(credential: str) -> str:
    return derive_account(credential).address


def generate_account() -> LocalAccount:
    """Create a fresh random wallet."""
    return Account.create()


def export_credential(account: LocalAccount) -> str:
    return "0x" + bytes(account.key).hex()


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address equality."""
    return bool(a) and bool(b) and a.lower() == b.lower()


def sign_transaction(account: LocalAccount, tx: dict[str, Any]) -> SignedTransaction:
    """Sign a legacy (gasPrice) transaction dict.

    `tx` needs to, value, gas, gasPrice, nonce and chainId; data defaults to
    empty calldata.
    """
    to = Web3.to_checksum_address(tx["to"])
    data = tx.get("data") or "0x"
    payload = {
        "to": to,
        "value": int(tx.get("value", 0)),
        "gas": int(tx["gas"]),
        "gasPrice": int(tx["gasPrice"]),
        "nonce": int(tx["nonce"]),
        "chainId": int(tx["chainId"]),
        "data": data,
    }
    signed = account.sign_transaction(payload)
    return SignedTransaction(
        raw_transaction="0x" + bytes(signed.raw_transaction).hex(),
        tx_hash="0x" + bytes(signed.hash).hex(),
        sender=account.address,
        to=to,
        value=payload["value"],
        data=data,
        gas=payload["gas"],
        gas_price=payload["gasPrice"],
        nonce=payload["nonce"],
        chain_id=payload["chainId"],
    )
