"""Build the chain stack from settings."""
from __future__ import annotations

import logging
from typing import Optional

from timecredit_core.config import TimeCreditSettings

from .executor import TransactionExecutor
from .lanes import SigningLanes
from .network import ValueNetwork
from .owner import OwnerSigner
from .rpc import JsonRpcNetwork
from .simulated import SimulatedNetwork

logger = logging.getLogger(__name__)


def create_network(settings: TimeCreditSettings) -> ValueNetwork:
    if settings.chain_mode == "simulated":
        logger.info("[SIMULATED] Using in-process value network (chain_id=%d)", settings.chain_id)
        return SimulatedNetwork(chain_id=settings.chain_id)
    return JsonRpcNetwork(settings.rpc_url, timeout=settings.rpc_timeout_seconds)


def create_executor(
    settings: TimeCreditSettings,
    network: ValueNetwork,
    lanes: Optional[SigningLanes] = None,
) -> TransactionExecutor:
    return TransactionExecutor(
        network,
        chain_id=settings.chain_id,
        lanes=lanes,
        await_receipts=settings.await_receipts,
        receipt_timeout=settings.receipt_timeout_seconds,
        poll_interval=settings.receipt_poll_interval_seconds,
    )


def create_owner_signer(settings: TimeCreditSettings, executor: TransactionExecutor) -> OwnerSigner:
    return OwnerSigner(executor, settings.owner_private_key)
