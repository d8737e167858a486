# private_pixels/contract/local.py
"""
PrivatePixels Contract: Local Client

CanvasContractClient bound to an in-memory CanvasStore. Each instance
signs as one sender; connect() returns a client for another account on
the same store. Writes are applied when the pending transaction is
confirmed (wait()), where a store revert becomes TransactionFailedError.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Optional, List, Sequence, Callable

from web3 import Web3

from ..store.canvas_store import CanvasStore, CanvasMetadata, StoreError
from .base import (
    CanvasContractClient,
    ContractClientError,
    PendingTransaction,
    TransactionFailedError,
    TransactionReceipt,
)


logger = logging.getLogger("private-pixels.contract.local")


class _LocalChain:
    """Block/tx counters shared by every client of one store."""

    def __init__(self):
        self.block_number = 0
        self.tx_count = 0

    def next_tx_hash(self, sender: str) -> str:
        self.tx_count += 1
        digest = hashlib.sha256(f"{sender}:{self.tx_count}".encode()).hexdigest()
        return "0x" + digest


class LocalCanvasContract(CanvasContractClient):
    """
    In-process contract client.

    A write is mined when its PendingTransaction is first waited on, so
    transactions land in wait() order and one that is never waited on is
    never applied.

    Args:
        store: Backing CanvasStore
        sender: Signing address (None = read-only)
        latency: Seconds to sleep before each read and confirmation
    """

    def __init__(
        self,
        store: CanvasStore,
        sender: Optional[str] = None,
        latency: float = 0.0,
        _chain: Optional[_LocalChain] = None,
    ):
        self._store = store
        self._sender = Web3.to_checksum_address(sender) if sender else None
        self._latency = latency
        self._chain = _chain or _LocalChain()

    @property
    def address(self) -> str:
        return self._store.address

    @property
    def sender(self) -> Optional[str]:
        return self._sender

    @property
    def store(self) -> CanvasStore:
        return self._store

    def connect(self, sender: str) -> LocalCanvasContract:
        """Client for another sender on the same store."""
        return LocalCanvasContract(self._store, sender, self._latency, _chain=self._chain)

    async def _delay(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)

    # =========================================================================
    # Reads
    # =========================================================================

    async def _read(self, fn: Callable, *args):
        await self._delay()
        try:
            return fn(*args)
        except StoreError as e:
            raise ContractClientError(str(e)) from e

    async def get_canvas_ids(self, user: str) -> List[int]:
        return await self._read(self._store.get_canvas_ids, user)

    async def get_canvas_metadata(self, canvas_id: int) -> CanvasMetadata:
        return await self._read(self._store.get_canvas_metadata, canvas_id)

    async def get_canvas_cells(self, canvas_id: int) -> List[str]:
        return await self._read(self._store.get_canvas_cells, canvas_id)

    async def canvas_count(self) -> int:
        return await self._read(self._store.canvas_count)

    # =========================================================================
    # Writes
    # =========================================================================

    def _submit(self, action: Callable[[str], None]) -> PendingTransaction:
        if self._sender is None:
            raise ContractClientError("A sender is required for write operations")
        sender = self._sender
        tx_hash = self._chain.next_tx_hash(sender)

        async def waiter() -> TransactionReceipt:
            await self._delay()
            mark = len(self._store.events)
            try:
                action(sender)
            except StoreError as e:
                raise TransactionFailedError(f"Transaction reverted: {e}", tx_hash) from e
            self._chain.block_number += 1
            logger.debug("Mined %s in block %d", tx_hash[:10], self._chain.block_number)
            return TransactionReceipt(
                tx_hash=tx_hash,
                status=1,
                block_number=self._chain.block_number,
                events=list(self._store.events[mark:]),
            )

        return PendingTransaction(tx_hash, waiter)

    async def create_canvas(self, label: str) -> PendingTransaction:
        return self._submit(lambda sender: self._store.create_canvas(sender, label))

    async def save_encrypted_cells(
        self,
        canvas_id: int,
        handles: Sequence[str],
        input_proof: bytes,
    ) -> PendingTransaction:
        handles = list(handles)
        return self._submit(
            lambda sender: self._store.save_encrypted_cells(sender, canvas_id, handles, input_proof)
        )

    async def finalize_canvas(self, canvas_id: int) -> PendingTransaction:
        return self._submit(lambda sender: self._store.finalize_canvas(sender, canvas_id))

    async def allow_viewer(self, canvas_id: int, viewer: str) -> PendingTransaction:
        return self._submit(lambda sender: self._store.allow_viewer(sender, canvas_id, viewer))
