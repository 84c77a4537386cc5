"""Value-network access, signing and transaction execution."""

from .abi import ContractFunction, decode_revert_reason, encode_revert, match_function
from .credentials import (
    derive_account,
    derive_address,
    export_credential,
    generate_account,
    same_address,
    sign_transaction,
)
from .executor import SubmittedTransaction, TransactionExecutor, buffered_gas_limit
from .factory import create_executor, create_network, create_owner_signer
from .lanes import SigningLanes
from .network import SignedTransaction, TransactionReceipt, ValueNetwork
from .owner import OwnerSigner
from .rpc import JsonRpcNetwork, RPCError
from .simulated import ContractHandler, SimulatedNetwork

__all__ = [
    "ContractFunction",
    "decode_revert_reason",
    "encode_revert",
    "match_function",
    "derive_account",
    "derive_address",
    "export_credential",
    "generate_account",
    "same_address",
    "sign_transaction",
    "SubmittedTransaction",
    "TransactionExecutor",
    "buffered_gas_limit",
    "create_executor",
    "create_network",
    "create_owner_signer",
    "SigningLanes",
    "SignedTransaction",
    "TransactionReceipt",
    "ValueNetwork",
    "OwnerSigner",
    "JsonRpcNetwork",
    "RPCError",
    "ContractHandler",
    "SimulatedNetwork",
]
