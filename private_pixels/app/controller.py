# private_pixels/app/controller.py
"""
PrivatePixels App: Application Controller

PrivatePixelsApp owns all transient client state (selected canvas, cell
selection, decrypted cache, status line) and coordinates the contract
client, the encryption gateway and the wallet in response to user actions.

Action lifecycle:
    Idle -> InFlight -> Success | Failure

    - A second invocation of an action already in flight is refused
      (returns False, touches nothing)
    - Precondition failures set a status and make no remote call
    - Remote failures are logged and surfaced as a "Failed to ..." status
    - The InFlight flag is cleared on every path

Stale reads:
    Every canvas read is tagged with the selection generation at dispatch.
    A response that arrives after the selection changed is discarded.

Usage:
    app = PrivatePixelsApp(contract, wallet, encryptor=fhevm, decryptor=fhevm)
    await app.start()

    app.toggle_cell(42)
    await app.save()
    await app.decrypt()
    print(app.state.status, app.grid_view())

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Set, Any, Callable, Sequence

import numpy as np

from ..adapters.base import WalletAdapter, WalletEvent, SignatureRejectedError
from ..config import PixelsConfig, get_config
from ..contract.base import CanvasContractClient
from ..gateway.base import (
    Encryptor,
    Decryptor,
    DecryptionAuthorization,
    MIN_CELL_VALUE,
    MAX_CELL_VALUE,
    normalize_handle,
)
from ..store.canvas_store import CanvasMetadata, EMPTY_METADATA, MAX_CELLS


logger = logging.getLogger("private-pixels.app")


# =============================================================================
# Constants
# =============================================================================

GRID_SIZE = 10
DEFAULT_LABEL = "Untitled canvas"

# Grid view bit flags
CELL_EMPTY = 0
CELL_SELECTED = 1
CELL_FROM_CHAIN = 2


class Action(Enum):
    """User actions tracked for in-flight state."""
    CREATE = "create"
    SAVE = "save"
    DECRYPT = "decrypt"
    FINALIZE = "finalize"
    SHARE = "share"


class Status:
    """Status line messages."""
    CONNECT_WALLET = "Connect a wallet first"
    CREATING = "Creating canvas..."
    CREATED = "Canvas created"
    CREATE_FAILED = "Failed to create canvas"

    MISSING_SELECTION = "Missing connection or canvas selection"
    EMPTY_SELECTION = "Select at least one cell before saving"
    TOO_MANY_CELLS = "A canvas only holds 100 cells"
    ENCRYPTING = "Encrypting cells with Zama relayer..."
    WAITING = "Waiting for confirmation..."
    SAVED = "Encrypted cells saved"
    SAVE_FAILED = "Failed to save cells"

    NOTHING_TO_DECRYPT = "Nothing to decrypt yet"
    DECRYPTING = "Requesting decryption via relayer..."
    SIGNATURE_REJECTED = "Signature rejected"
    DECRYPTED = "Decryption complete"
    DECRYPT_FAILED = "Failed to decrypt cells"

    SELECT_TO_FINALIZE = "Select a canvas to finalize"
    ALREADY_FINALIZED = "Canvas already finalized"
    FINALIZING = "Finalizing canvas..."
    FINALIZED = "Canvas finalized"
    FINALIZE_FAILED = "Failed to finalize"

    ENTER_VIEWER = "Enter a viewer address to share"
    SHARING = "Granting view permission..."
    SHARED = "Viewer allowed to decrypt"
    SHARE_FAILED = "Failed to grant access"


class RelayerStatus:
    READY = "Ready"
    LOADING = "Preparing SDK..."
    FAILED = "Initialization failed"


# =============================================================================
# User Decryption
# =============================================================================

async def request_user_decryption(
    decryptor: Decryptor,
    wallet: WalletAdapter,
    handles: Sequence[str],
    contract_address: str,
    duration_days: int,
    start_timestamp: Optional[int] = None,
) -> List[int]:
    """
    Run the user-decrypt flow for handles of one contract.

    Generates an ephemeral keypair, has the wallet sign the EIP-712
    request for it and returns the plaintexts in handle order. Handles
    the gateway returned nothing for are skipped.

    Raises:
        SignatureRejectedError: The wallet declined to sign
        GatewayError: The gateway refused or failed the request
    """
    contract_addresses = [contract_address]
    start = int(time.time()) if start_timestamp is None else start_timestamp
    keypair = decryptor.generate_keypair()
    typed_data = decryptor.create_eip712(
        keypair.public_key, contract_addresses, start, duration_days
    )
    signed = await wallet.sign_typed_data(typed_data)

    authorization = DecryptionAuthorization(
        keypair=keypair,
        signature=signed.hex,
        contract_addresses=contract_addresses,
        user_address=wallet.address,
        start_timestamp=start,
        duration_days=duration_days,
    )
    result = await decryptor.user_decrypt(handles, authorization)

    values = []
    for handle in handles:
        value = result.get(normalize_handle(handle))
        if value is None:
            logger.warning("No plaintext returned for handle %s", handle)
            continue
        value = int(value)
        if not MIN_CELL_VALUE <= value <= MAX_CELL_VALUE:
            logger.warning("Plaintext %d for handle %s is not a cell id", value, handle)
            continue
        values.append(value)
    return values


# =============================================================================
# State
# =============================================================================

@dataclass
class AppState:
    """
    Transient client state.

    Attributes:
        address: Connected wallet address
        canvas_ids: Canvases owned by address, in contract order
        selected_canvas_id: Active canvas
        metadata: Metadata of the active canvas (empty until loaded)
        encrypted_cells: Stored handles of the active canvas
        selected_cells: Locally selected cell ids (1..100)
        decrypted_cells: Plaintexts of encrypted_cells, same order
        status: Status line
        label_input: Label for the next created canvas
        share_target: Viewer address for the next share
        in_flight: Actions currently running
    """
    address: Optional[str] = None
    canvas_ids: List[int] = field(default_factory=list)
    selected_canvas_id: Optional[int] = None
    metadata: CanvasMetadata = EMPTY_METADATA
    encrypted_cells: List[str] = field(default_factory=list)
    selected_cells: Set[int] = field(default_factory=set)
    decrypted_cells: List[int] = field(default_factory=list)
    status: str = ""
    label_input: str = DEFAULT_LABEL
    share_target: str = ""
    in_flight: Set[Action] = field(default_factory=set)

    def is_busy(self, action: Action) -> bool:
        return action in self.in_flight


# =============================================================================
# Controller
# =============================================================================

class PrivatePixelsApp:
    """
    Application controller.

    Args:
        contract: Contract client signing as the wallet's account
        wallet: Connected identity (address, EIP-712 signing)
        encryptor: Encryption capability
        decryptor: Decryption capability (default: encryptor)
        config: Configuration (default: process-wide)
        contract_for: Factory returning a contract client for a new
            account; used on wallet account changes
        clock: Time source for decryption request windows
    """

    def __init__(
        self,
        contract: CanvasContractClient,
        wallet: WalletAdapter,
        encryptor: Encryptor,
        decryptor: Optional[Decryptor] = None,
        config: Optional[PixelsConfig] = None,
        contract_for: Optional[Callable[[str], CanvasContractClient]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.contract = contract
        self.wallet = wallet
        self.encryptor = encryptor
        self.decryptor = decryptor if decryptor is not None else encryptor
        self.config = config or get_config()
        self._contract_for = contract_for
        self._clock = clock
        self.state = AppState()
        self._generation = 0
        self._listening = False

    # =========================================================================
    # Wallet Wiring
    # =========================================================================

    async def start(self) -> None:
        """Subscribe to wallet events and load canvases of the current account."""
        if not self._listening:
            self.wallet.on(WalletEvent.CONNECTED, self._on_wallet_event)
            self.wallet.on(WalletEvent.ACCOUNT_CHANGED, self._on_wallet_event)
            self.wallet.on(WalletEvent.DISCONNECTED, self._on_wallet_event)
            self._listening = True
        if self.wallet.is_connected:
            await self.on_account_changed(self.wallet.address)

    async def stop(self) -> None:
        if self._listening:
            self.wallet.off(WalletEvent.CONNECTED, self._on_wallet_event)
            self.wallet.off(WalletEvent.ACCOUNT_CHANGED, self._on_wallet_event)
            self.wallet.off(WalletEvent.DISCONNECTED, self._on_wallet_event)
            self._listening = False

    async def _on_wallet_event(self, event: WalletEvent, data: Any) -> None:
        if event == WalletEvent.DISCONNECTED:
            self.on_disconnected()
        else:
            await self.on_account_changed(self.wallet.address)

    async def on_account_changed(self, address: Optional[str]) -> bool:
        """Switch to a new account and list its canvases."""
        if not address:
            self.on_disconnected()
            return False
        if self._contract_for is not None:
            self.contract = self._contract_for(address)
        self.state.address = address
        logger.debug("Account changed to %s", address)
        return await self.refresh()

    def on_disconnected(self) -> None:
        """Drop every piece of account-bound state."""
        self.state.address = None
        self.state.canvas_ids = []
        self._clear_canvas()
        self.state.status = ""

    # =========================================================================
    # Reads
    # =========================================================================

    async def refresh(self) -> bool:
        """Re-list canvases and reload the active one; failures are logged."""
        try:
            generation = self._generation
            await self.list_canvases()
            # list_canvases already loaded a newly selected canvas
            if generation == self._generation and self.state.selected_canvas_id is not None:
                await self._load_canvas(self.state.selected_canvas_id)
            return True
        except Exception:
            logger.exception("Failed to refresh canvases")
            return False

    async def list_canvases(self) -> List[int]:
        """
        Fetch canvas ids of the connected account.

        An empty list clears the selection; otherwise the first canvas is
        selected when nothing is selected or the selection is gone.
        """
        address = self.state.address
        if not address:
            return []

        ids = [int(i) for i in await self.contract.get_canvas_ids(address)]
        if address != self.state.address:
            logger.debug("Discarding canvas list of previous account %s", address)
            return ids

        self.state.canvas_ids = ids
        if not ids:
            self._clear_canvas()
        elif self.state.selected_canvas_id not in ids:
            await self.select_canvas(ids[0])
        return ids

    async def select_canvas(self, canvas_id: int) -> bool:
        """
        Make canvas_id active.

        Selection, decrypted cache and status are cleared before the first
        read is dispatched.
        """
        self._generation += 1
        s = self.state
        s.selected_canvas_id = canvas_id
        s.metadata = EMPTY_METADATA
        s.encrypted_cells = []
        s.selected_cells = set()
        s.decrypted_cells = []
        s.status = ""

        try:
            return await self._load_canvas(canvas_id)
        except Exception:
            logger.exception("Failed to load canvas %d", canvas_id)
            return False

    async def _load_canvas(self, canvas_id: int, cells: bool = True) -> bool:
        """Fetch metadata (and cells) concurrently; False if the result was stale."""
        generation = self._generation
        logger.debug("Loading canvas %d (generation %d)", canvas_id, generation)

        if cells:
            metadata, handles = await asyncio.gather(
                self.contract.get_canvas_metadata(canvas_id),
                self.contract.get_canvas_cells(canvas_id),
            )
        else:
            metadata = await self.contract.get_canvas_metadata(canvas_id)
            handles = None

        if generation != self._generation or canvas_id != self.state.selected_canvas_id:
            logger.debug("Discarding stale read of canvas %d", canvas_id)
            return False

        self.state.metadata = metadata
        if handles is not None:
            self.state.encrypted_cells = list(handles)
        return True

    def _clear_canvas(self) -> None:
        self._generation += 1
        s = self.state
        s.selected_canvas_id = None
        s.metadata = EMPTY_METADATA
        s.encrypted_cells = []
        s.selected_cells = set()
        s.decrypted_cells = []

    # =========================================================================
    # Local Edits
    # =========================================================================

    def toggle_cell(self, cell_id: int) -> bool:
        """
        Add or remove a cell from the selection.

        Returns:
            True if the selection changed. Out-of-range ids and additions
            beyond 100 cells are ignored.
        """
        if not MIN_CELL_VALUE <= cell_id <= MAX_CELL_VALUE:
            return False
        selected = self.state.selected_cells
        if cell_id in selected:
            selected.remove(cell_id)
            return True
        if len(selected) >= MAX_CELLS:
            return False
        selected.add(cell_id)
        return True

    def reset_selection(self) -> None:
        self.state.selected_cells = set()
        self.state.decrypted_cells = []
        self.state.status = ""

    # =========================================================================
    # Actions
    # =========================================================================

    def _connected(self) -> bool:
        return self.wallet.is_connected and bool(self.state.address)

    def _refuse_reentry(self, action: Action) -> bool:
        if self.state.is_busy(action):
            logger.debug("%s already in flight, ignoring", action.value)
            return True
        return False

    async def create_canvas(self, label: Optional[str] = None) -> bool:
        """Create a canvas (blank label -> "Untitled canvas") and re-list."""
        if self._refuse_reentry(Action.CREATE):
            return False
        s = self.state
        if not self._connected():
            s.status = Status.CONNECT_WALLET
            return False

        text = (s.label_input if label is None else label).strip() or DEFAULT_LABEL
        s.in_flight.add(Action.CREATE)
        s.status = Status.CREATING
        try:
            tx = await self.contract.create_canvas(text)
            receipt = await tx.wait()
            created = receipt.event_args("CanvasCreated")
            logger.info(
                "Created canvas %s (%s)",
                created["canvasId"] if created else "?", receipt.tx_hash,
            )
            await self.list_canvases()
            s.label_input = DEFAULT_LABEL
            s.status = Status.CREATED
            return True
        except Exception:
            logger.exception("Failed to create canvas")
            s.status = Status.CREATE_FAILED
            return False
        finally:
            s.in_flight.discard(Action.CREATE)

    async def save(self) -> bool:
        """Encrypt the selection (ascending) and replace the canvas cells."""
        if self._refuse_reentry(Action.SAVE):
            return False
        s = self.state
        if not self._connected() or not self.encryptor.is_ready or s.selected_canvas_id is None:
            s.status = Status.MISSING_SELECTION
            return False
        cells = sorted(s.selected_cells)
        if not cells:
            s.status = Status.EMPTY_SELECTION
            return False
        if len(cells) > MAX_CELLS:
            s.status = Status.TOO_MANY_CELLS
            return False

        canvas_id = s.selected_canvas_id
        s.in_flight.add(Action.SAVE)
        s.status = Status.ENCRYPTING
        try:
            encrypted = await self.encryptor.encrypt(self.contract.address, s.address, cells)
            tx = await self.contract.save_encrypted_cells(
                canvas_id, encrypted.handles, encrypted.input_proof
            )
            s.status = Status.WAITING
            receipt = await tx.wait()
            logger.info("Saved %d cells to canvas %d (%s)", len(cells), canvas_id, receipt.tx_hash)
            if await self._load_canvas(canvas_id):
                s.decrypted_cells = []
            s.status = Status.SAVED
            return True
        except Exception:
            logger.exception("Failed to save cells to canvas %d", canvas_id)
            s.status = Status.SAVE_FAILED
            return False
        finally:
            s.in_flight.discard(Action.SAVE)

    async def decrypt(self) -> bool:
        """
        Decrypt the stored cells of the active canvas.

        Signs a fresh EIP-712 request for an ephemeral keypair; the
        decrypted values replace both the decrypted cache and the
        selection.
        """
        if self._refuse_reentry(Action.DECRYPT):
            return False
        s = self.state
        if (
            not self.decryptor.is_ready
            or not self._connected()
            or s.selected_canvas_id is None
            or not s.encrypted_cells
        ):
            s.status = Status.NOTHING_TO_DECRYPT
            return False

        handles = list(s.encrypted_cells)
        canvas_id = s.selected_canvas_id
        generation = self._generation
        s.in_flight.add(Action.DECRYPT)
        s.status = Status.DECRYPTING
        try:
            try:
                values = await request_user_decryption(
                    self.decryptor,
                    self.wallet,
                    handles,
                    self.contract.address,
                    self.config.decrypt_duration_days,
                    start_timestamp=int(self._clock()),
                )
            except SignatureRejectedError:
                logger.info("Decryption request for canvas %d not signed", canvas_id)
                s.status = Status.SIGNATURE_REJECTED
                return False

            if generation != self._generation:
                logger.debug("Discarding decryption of canvas %d", canvas_id)
                return False

            s.decrypted_cells = values
            s.selected_cells = set(values)
            s.status = Status.DECRYPTED
            return True
        except Exception:
            logger.exception("Failed to decrypt canvas %d", canvas_id)
            s.status = Status.DECRYPT_FAILED
            return False
        finally:
            s.in_flight.discard(Action.DECRYPT)

    async def finalize(self) -> bool:
        """Permanently lock the active canvas."""
        if self._refuse_reentry(Action.FINALIZE):
            return False
        s = self.state
        if not self._connected() or s.selected_canvas_id is None:
            s.status = Status.SELECT_TO_FINALIZE
            return False
        if s.metadata.finalized:
            s.status = Status.ALREADY_FINALIZED
            return False

        canvas_id = s.selected_canvas_id
        s.in_flight.add(Action.FINALIZE)
        s.status = Status.FINALIZING
        try:
            tx = await self.contract.finalize_canvas(canvas_id)
            receipt = await tx.wait()
            logger.info("Finalized canvas %d (%s)", canvas_id, receipt.tx_hash)
            await self._load_canvas(canvas_id, cells=False)
            s.status = Status.FINALIZED
            return True
        except Exception:
            logger.exception("Failed to finalize canvas %d", canvas_id)
            s.status = Status.FINALIZE_FAILED
            return False
        finally:
            s.in_flight.discard(Action.FINALIZE)

    async def share(self, viewer: Optional[str] = None) -> bool:
        """Allow viewer (default: share_target) to decrypt the active canvas."""
        if self._refuse_reentry(Action.SHARE):
            return False
        s = self.state
        target = (s.share_target if viewer is None else viewer).strip()
        if not self._connected() or s.selected_canvas_id is None or not target:
            s.status = Status.ENTER_VIEWER
            return False

        canvas_id = s.selected_canvas_id
        s.in_flight.add(Action.SHARE)
        s.status = Status.SHARING
        try:
            tx = await self.contract.allow_viewer(canvas_id, target)
            receipt = await tx.wait()
            logger.info("Granted %s on canvas %d (%s)", target, canvas_id, receipt.tx_hash)
            s.status = Status.SHARED
            return True
        except Exception:
            logger.exception("Failed to grant %s on canvas %d", target, canvas_id)
            s.status = Status.SHARE_FAILED
            return False
        finally:
            s.in_flight.discard(Action.SHARE)

    # =========================================================================
    # Views
    # =========================================================================

    def grid_view(self) -> np.ndarray:
        """
        10x10 array of cell flags, row-major from cell 1.

        CELL_SELECTED marks the local selection, CELL_FROM_CHAIN marks
        decrypted values; a cell may carry both.
        """
        grid = np.zeros(GRID_SIZE * GRID_SIZE, dtype=np.uint8)
        selected = self._cell_indices(self.state.selected_cells)
        decrypted = self._cell_indices(self.state.decrypted_cells)
        grid[selected] |= CELL_SELECTED
        grid[decrypted] |= CELL_FROM_CHAIN
        return grid.reshape(GRID_SIZE, GRID_SIZE)

    @staticmethod
    def _cell_indices(cells) -> np.ndarray:
        return np.fromiter(
            (c - 1 for c in cells if MIN_CELL_VALUE <= c <= MAX_CELL_VALUE),
            dtype=np.intp,
        )

    @property
    def relayer_status(self) -> str:
        if self.encryptor.is_ready:
            return RelayerStatus.READY
        if self.encryptor.error is not None:
            return RelayerStatus.FAILED
        return RelayerStatus.LOADING
