# private_pixels/contract/base.py
"""
PrivatePixels Contract: Client Interface

Typed bindings over the PrivatePixels contract.

Reads are idempotent and side-effect free; callers re-invoke them after
every confirmed write (there is no push/subscribe model). Writes are
two-phase: submission returns a PendingTransaction, and wait() resolves
once the transaction is confirmed, raising TransactionFailedError on a
revert. Confirmation latency is unbounded unless the caller passes a
timeout.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Callable, Awaitable, Sequence

from ..store.canvas_store import CanvasMetadata, ContractEvent


# =============================================================================
# Exceptions
# =============================================================================

class ContractClientError(Exception):
    """Base contract client error."""
    pass


class TransactionFailedError(ContractClientError):
    """Transaction reverted or could not be submitted."""
    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


# =============================================================================
# Transactions
# =============================================================================

@dataclass
class TransactionReceipt:
    """Confirmed transaction."""
    tx_hash: str
    status: int
    block_number: int
    events: List[ContractEvent] = field(default_factory=list)

    def event_args(self, name: str) -> Optional[Dict[str, Any]]:
        """Args of the first event called name, if any."""
        for event in self.events:
            if event.name == name:
                return event.args
        return None


class PendingTransaction:
    """Submitted transaction awaiting confirmation."""

    def __init__(self, tx_hash: str, waiter: Callable[[], Awaitable[TransactionReceipt]]):
        self.tx_hash = tx_hash
        self._waiter = waiter
        self._task: Optional[asyncio.Future] = None

    def __repr__(self) -> str:
        return f"PendingTransaction({self.tx_hash})"

    async def wait(self, timeout: Optional[float] = None) -> TransactionReceipt:
        """Wait for confirmation; repeated calls share one result."""
        if self._task is None:
            self._task = asyncio.ensure_future(self._waiter())
        if timeout is None:
            return await asyncio.shield(self._task)
        return await asyncio.wait_for(asyncio.shield(self._task), timeout)


# =============================================================================
# Client Interface
# =============================================================================

class CanvasContractClient(ABC):
    """Read/write bindings over a deployed PrivatePixels contract."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Contract address."""
        pass

    @property
    @abstractmethod
    def sender(self) -> Optional[str]:
        """Address that signs write transactions (None = read-only)."""
        pass

    # =========================================================================
    # Reads
    # =========================================================================

    @abstractmethod
    async def get_canvas_ids(self, user: str) -> List[int]:
        pass

    @abstractmethod
    async def get_canvas_metadata(self, canvas_id: int) -> CanvasMetadata:
        pass

    @abstractmethod
    async def get_canvas_cells(self, canvas_id: int) -> List[str]:
        pass

    @abstractmethod
    async def canvas_count(self) -> int:
        pass

    # =========================================================================
    # Writes
    # =========================================================================

    @abstractmethod
    async def create_canvas(self, label: str) -> PendingTransaction:
        pass

    @abstractmethod
    async def save_encrypted_cells(
        self,
        canvas_id: int,
        handles: Sequence[str],
        input_proof: bytes,
    ) -> PendingTransaction:
        pass

    @abstractmethod
    async def finalize_canvas(self, canvas_id: int) -> PendingTransaction:
        pass

    @abstractmethod
    async def allow_viewer(self, canvas_id: int, viewer: str) -> PendingTransaction:
        pass
