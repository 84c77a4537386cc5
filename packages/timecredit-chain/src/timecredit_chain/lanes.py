"""
Per-address signing lanes.

A lane serializes nonce fetch, signing and broadcast for one sender so two
transfers from the same wallet never race for the same nonce. Different
senders never wait on each other.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class SigningLanes:
    """Registry of asyncio.Lock objects keyed by lower-cased address."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, address: str) -> asyncio.Lock:
        address_lower = address.lower()
        lock = self._locks.get(address_lower)
        if lock is None:
            # no await between lookup and insert, so this cannot race
            lock = asyncio.Lock()
            self._locks[address_lower] = lock
        return lock

    @asynccontextmanager
    async def hold(self, address: str) -> AsyncIterator[None]:
        lock = self._get_lock(address)
        if lock.locked():
            logger.debug("Waiting for signing lane of %s", address)
        async with lock:
            yield

    def is_held(self, address: str) -> bool:
        lock = self._locks.get(address.lower())
        return lock is not None and lock.locked()
