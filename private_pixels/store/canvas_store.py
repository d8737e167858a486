# private_pixels/store/canvas_store.py
"""
PrivatePixels Store: CanvasStore

In-memory model of the PrivatePixels contract: canvases keyed by id, each
owned by an address, holding encrypted cell handles, metadata and viewer
grants. Enforces the contract's policies and records its events.

Policies:
    - Only the owner may save, finalize or share a canvas
    - A save replaces the whole cell list (1..100 handles)
    - Saves require a valid input proof for (contract, sender)
    - Finalize is a one-way latch; a finalized canvas rejects saves and a
      second finalize
    - Viewer grants are additive and cover current and future cells

Usage:
    fhevm = LocalFhevm()
    store = CanvasStore(fhevm)

    canvas_id = store.create_canvas(alice, "first")
    enc = await fhevm.encrypt(store.address, alice, [1, 10, 42])
    store.save_encrypted_cells(alice, canvas_id, enc.handles, enc.input_proof)

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Set, Tuple, Callable

from web3 import Web3

from ..gateway.base import InvalidInputProofError as GatewayProofError
from ..gateway.local import LocalFhevm


# =============================================================================
# Constants
# =============================================================================

MAX_CELLS = 100
LOCAL_CONTRACT_ADDRESS = "0x" + "5" * 40
ZERO_ADDRESS = "0x" + "0" * 40


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class CanvasMetadata:
    """
    Canvas metadata as returned by getCanvasMetadata.

    Attributes:
        owner: Owner address
        label: Free-form label
        created_at: Creation timestamp (Unix seconds)
        updated_at: Last save timestamp (0 = never saved)
        finalized: One-way finalize latch
        cell_count: Number of stored cells
    """
    owner: str = ""
    label: str = ""
    created_at: int = 0
    updated_at: int = 0
    finalized: bool = False
    cell_count: int = 0

    @classmethod
    def from_contract_tuple(cls, data: Tuple) -> CanvasMetadata:
        """Create from contract return tuple."""
        return cls(
            owner=data[0],
            label=data[1],
            created_at=int(data[2]),
            updated_at=int(data[3]),
            finalized=bool(data[4]),
            cell_count=int(data[5]),
        )


EMPTY_METADATA = CanvasMetadata()


@dataclass
class Canvas:
    """Stored canvas record."""
    canvas_id: int
    owner: str
    label: str
    created_at: int
    updated_at: int = 0
    finalized: bool = False
    cells: List[str] = field(default_factory=list)
    viewers: Set[str] = field(default_factory=set)

    def metadata(self) -> CanvasMetadata:
        return CanvasMetadata(
            owner=self.owner,
            label=self.label,
            created_at=self.created_at,
            updated_at=self.updated_at,
            finalized=self.finalized,
            cell_count=len(self.cells),
        )


@dataclass
class ContractEvent:
    """Event emitted by a state-changing call."""
    name: str
    args: Dict[str, Any]


# =============================================================================
# Exceptions
# =============================================================================

class StoreError(Exception):
    """Base canvas store error (a contract revert)."""
    pass


class CanvasNotFoundError(StoreError):
    """Canvas id does not exist."""
    def __init__(self, canvas_id: int):
        self.canvas_id = canvas_id
        super().__init__(f"Canvas not found: {canvas_id}")


class NotCanvasOwnerError(StoreError):
    """Caller is not the canvas owner."""
    def __init__(self, canvas_id: int, caller: str):
        self.canvas_id = canvas_id
        self.caller = caller
        super().__init__(f"Not canvas owner: {canvas_id}, caller: {caller}")


class CanvasFinalizedError(StoreError):
    """Canvas is finalized and can no longer change."""
    def __init__(self, canvas_id: int):
        self.canvas_id = canvas_id
        super().__init__(f"Canvas already finalized: {canvas_id}")


class InvalidCellsError(StoreError):
    """Cell batch is empty or larger than a canvas."""
    pass


class InvalidInputProofError(StoreError):
    """Input proof rejected by the coprocessor."""
    pass


# =============================================================================
# CanvasStore
# =============================================================================

class CanvasStore:
    """
    In-memory PrivatePixels contract.

    All mutating methods take the transaction sender explicitly and raise a
    StoreError subclass where the contract would revert.
    """

    def __init__(
        self,
        fhevm: LocalFhevm,
        address: str = LOCAL_CONTRACT_ADDRESS,
        clock: Callable[[], float] = time.time,
    ):
        self.address = Web3.to_checksum_address(address)
        self._fhevm = fhevm
        self._clock = clock
        self._canvases: Dict[int, Canvas] = {}
        self._owner_canvases: Dict[str, List[int]] = {}
        self._canvas_count = 0
        self.events: List[ContractEvent] = []

    @property
    def fhevm(self) -> LocalFhevm:
        return self._fhevm

    def _now(self) -> int:
        return int(self._clock())

    def _emit(self, name: str, **args) -> ContractEvent:
        event = ContractEvent(name=name, args=args)
        self.events.append(event)
        return event

    def _get(self, canvas_id: int) -> Canvas:
        canvas = self._canvases.get(int(canvas_id))
        if canvas is None:
            raise CanvasNotFoundError(canvas_id)
        return canvas

    def _get_owned(self, sender: str, canvas_id: int) -> Canvas:
        canvas = self._get(canvas_id)
        if canvas.owner.lower() != sender.lower():
            raise NotCanvasOwnerError(canvas_id, sender)
        return canvas

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create_canvas(self, sender: str, label: str) -> int:
        """Create a canvas owned by sender; returns its id."""
        owner = Web3.to_checksum_address(sender)
        self._canvas_count += 1
        canvas_id = self._canvas_count

        self._canvases[canvas_id] = Canvas(
            canvas_id=canvas_id,
            owner=owner,
            label=label,
            created_at=self._now(),
        )
        self._owner_canvases.setdefault(owner.lower(), []).append(canvas_id)

        self._emit("CanvasCreated", owner=owner, canvasId=canvas_id, label=label)
        return canvas_id

    def save_encrypted_cells(
        self,
        sender: str,
        canvas_id: int,
        handles: List[str],
        input_proof: bytes,
    ) -> int:
        """
        Replace the canvas cells with a freshly encrypted batch.

        Returns:
            New cell count
        """
        canvas = self._get_owned(sender, canvas_id)
        if canvas.finalized:
            raise CanvasFinalizedError(canvas_id)
        if not handles:
            raise InvalidCellsError("No cells provided")
        if len(handles) > MAX_CELLS:
            raise InvalidCellsError(f"A canvas holds at most {MAX_CELLS} cells")

        try:
            cells = self._fhevm.verify_input(handles, input_proof, self.address, sender)
        except GatewayProofError as e:
            raise InvalidInputProofError(str(e)) from e

        for handle in cells:
            self._fhevm.allow(handle, self.address)
            self._fhevm.allow(handle, canvas.owner)
            for viewer in canvas.viewers:
                self._fhevm.allow(handle, viewer)

        canvas.cells = cells
        canvas.updated_at = self._now()

        self._emit("CanvasSaved", owner=canvas.owner, canvasId=canvas.canvas_id, cellCount=len(cells))
        return len(cells)

    def finalize_canvas(self, sender: str, canvas_id: int) -> None:
        """Latch the canvas as finalized."""
        canvas = self._get_owned(sender, canvas_id)
        if canvas.finalized:
            raise CanvasFinalizedError(canvas_id)
        canvas.finalized = True
        canvas.updated_at = self._now()
        self._emit("CanvasFinalized", owner=canvas.owner, canvasId=canvas.canvas_id)

    def allow_viewer(self, sender: str, canvas_id: int, viewer: str) -> None:
        """Grant viewer the right to decrypt the canvas cells."""
        canvas = self._get_owned(sender, canvas_id)
        if not Web3.is_address(viewer) or viewer.lower() == ZERO_ADDRESS:
            raise StoreError(f"Invalid viewer address: {viewer!r}")
        viewer = Web3.to_checksum_address(viewer)

        canvas.viewers.add(viewer)
        for handle in canvas.cells:
            self._fhevm.allow(handle, viewer)

        self._emit("ViewerGranted", owner=canvas.owner, canvasId=canvas.canvas_id, viewer=viewer)

    # =========================================================================
    # Read Operations
    # =========================================================================

    def canvas_count(self) -> int:
        return self._canvas_count

    def get_canvas_ids(self, user: str) -> List[int]:
        return list(self._owner_canvases.get(user.lower(), []))

    def get_canvas_metadata(self, canvas_id: int) -> CanvasMetadata:
        return self._get(canvas_id).metadata()

    def get_canvas_cells(self, canvas_id: int) -> List[str]:
        return list(self._get(canvas_id).cells)

    def is_viewer(self, canvas_id: int, account: str) -> bool:
        return account.lower() in {v.lower() for v in self._get(canvas_id).viewers}


# =============================================================================
# Test
# =============================================================================

def run_tests() -> bool:
    """Exercise CanvasStore policies against a LocalFhevm."""
    import asyncio

    print("=" * 70)
    print("PrivatePixels Store: CanvasStore Test")
    print("=" * 70)

    results = {}
    alice = "0x" + "a" * 40
    bob = "0x" + "b" * 40

    async def async_tests():
        fhevm = LocalFhevm()
        await fhevm.initialize()
        store = CanvasStore(fhevm)

        # Test 1: Create
        print("\n[Test 1] Create Canvas")
        print("-" * 40)
        canvas_id = store.create_canvas(alice, "first")
        meta = store.get_canvas_metadata(canvas_id)
        results["create"] = (
            store.get_canvas_ids(alice) == [canvas_id]
            and meta.label == "first"
            and not meta.finalized
            and meta.cell_count == 0
        )
        print(f"  Canvas id: {canvas_id}")
        print(f"  Result: {'PASS ✓' if results['create'] else 'FAIL ✗'}")

        # Test 2: Save
        print("\n[Test 2] Save Encrypted Cells")
        print("-" * 40)
        enc = await fhevm.encrypt(store.address, alice, [1, 10, 42, 77])
        store.save_encrypted_cells(alice, canvas_id, enc.handles, enc.input_proof)
        results["save"] = store.get_canvas_metadata(canvas_id).cell_count == 4
        print(f"  Cells stored: {len(store.get_canvas_cells(canvas_id))}")
        print(f"  Result: {'PASS ✓' if results['save'] else 'FAIL ✗'}")

        # Test 3: Policy errors
        print("\n[Test 3] Policy Errors")
        print("-" * 40)
        ok = True
        try:
            store.finalize_canvas(bob, canvas_id)
            ok = False
        except NotCanvasOwnerError:
            print("  NotCanvasOwnerError: PASS ✓")
        store.finalize_canvas(alice, canvas_id)
        try:
            store.save_encrypted_cells(alice, canvas_id, enc.handles, enc.input_proof)
            ok = False
        except CanvasFinalizedError:
            print("  CanvasFinalizedError: PASS ✓")
        results["policy"] = ok
        print(f"  Result: {'PASS ✓' if results['policy'] else 'FAIL ✗'}")

    asyncio.run(async_tests())

    print("\n" + "=" * 70)
    all_pass = all(results.values())
    print(f"Result: {sum(results.values())}/{len(results)} tests passed")
    print(f"{'ALL TESTS PASSED ✅' if all_pass else 'SOME TESTS FAILED ❌'}")
    print("=" * 70)

    return all_pass


if __name__ == "__main__":
    run_tests()
