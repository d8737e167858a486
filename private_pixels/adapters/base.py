# private_pixels/adapters/base.py
"""
PrivatePixels Adapters: Abstract Wallet Interface

The connected wallet is the user's identity: it provides the address that
owns canvases and signs the EIP-712 user-decrypt authorization.

Supported Operations:
    - Connection management (connect, disconnect)
    - Address tracking with account-changed events
    - Typed-data signing (EIP-712)

Wallet Implementations:
    - LocalWalletAdapter: eth-account private key (CLI, tests)
    - ProviderWalletAdapter: EIP-1193 provider bridge (browser wallets)

Usage:
    wallet = LocalWalletAdapter(private_key)
    await wallet.connect()

    result = await wallet.sign_typed_data(typed_data)
    signature = result.hex

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Dict, Any, List, Callable, Awaitable

from ..gateway.eip712 import TypedData


logger = logging.getLogger("private-pixels.wallet")


# =============================================================================
# Enums
# =============================================================================

class WalletState(Enum):
    """Wallet connection state."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    ERROR = auto()


class WalletEvent(Enum):
    """Wallet events."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ACCOUNT_CHANGED = "accountChanged"
    CHAIN_CHANGED = "chainChanged"


EventCallback = Callable[[WalletEvent, Any], Awaitable[None]]


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class WalletInfo:
    """Information about connected wallet."""
    name: str
    chain_id: int
    address: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SignResult:
    """Signature result."""
    signature: bytes

    @property
    def hex(self) -> str:
        return "0x" + self.signature.hex()


# =============================================================================
# Exceptions
# =============================================================================

class WalletAdapterError(Exception):
    """Base exception for wallet adapter errors."""
    pass


class NotConnectedError(WalletAdapterError):
    """Wallet not connected."""
    pass


class SignatureRejectedError(WalletAdapterError):
    """User rejected signature request."""
    pass


class WalletConnectionError(WalletAdapterError):
    """Failed to connect to wallet."""
    pass


# =============================================================================
# Abstract Base Class
# =============================================================================

class WalletAdapter(ABC):
    """
    Abstract base class for wallet adapters.

    Provides unified interface for:
    - Wallet connection/disconnection
    - Account tracking
    - EIP-712 signing
    """

    def __init__(self, chain_id: int = 1):
        self._chain_id = chain_id
        self._state = WalletState.DISCONNECTED
        self._info: Optional[WalletInfo] = None
        self._event_handlers: Dict[WalletEvent, List[EventCallback]] = {
            e: [] for e in WalletEvent
        }

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == WalletState.CONNECTED

    @property
    def info(self) -> Optional[WalletInfo]:
        return self._info

    @property
    def address(self) -> Optional[str]:
        return self._info.address if self._info else None

    @property
    def chain_id(self) -> int:
        return self._info.chain_id if self._info else self._chain_id

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    # =========================================================================
    # Connection Management
    # =========================================================================

    @abstractmethod
    async def connect(self) -> WalletInfo:
        """
        Connect to wallet.

        Raises:
            WalletConnectionError: If connection fails
        """
        pass

    async def disconnect(self) -> None:
        self._state = WalletState.DISCONNECTED
        self._info = None
        await self._emit(WalletEvent.DISCONNECTED)

    # =========================================================================
    # Signing
    # =========================================================================

    @abstractmethod
    async def sign_typed_data(self, typed_data: TypedData) -> SignResult:
        """
        Sign typed data using EIP-712.

        Raises:
            NotConnectedError: If not connected
            SignatureRejectedError: If the user declines
        """
        pass

    # =========================================================================
    # Event Handling
    # =========================================================================

    def on(self, event: WalletEvent, callback: EventCallback) -> None:
        """Register event handler."""
        self._event_handlers[event].append(callback)

    def off(self, event: WalletEvent, callback: EventCallback) -> None:
        """Unregister event handler."""
        if callback in self._event_handlers[event]:
            self._event_handlers[event].remove(callback)

    async def _emit(self, event: WalletEvent, data: Any = None) -> None:
        """Emit event to all handlers; a failing handler does not stop the rest."""
        for handler in list(self._event_handlers[event]):
            try:
                await handler(event, data)
            except Exception:
                logger.exception("Wallet event handler failed for %s", event.value)

    def _require_connected(self) -> None:
        if not self.is_connected:
            raise NotConnectedError("Wallet not connected")
