# private_pixels/adapters/provider.py
"""
PrivatePixels Adapters: EIP-1193 Provider Bridge

Forwards wallet operations to an injected Ethereum provider
(window.ethereum in a browser bridge, or a mock for testing).

Provider methods used:
    eth_requestAccounts   - Connect and fetch accounts
    eth_chainId           - Current chain
    eth_signTypedData_v4  - EIP-712 signing

Provider events:
    accountsChanged       - Re-emitted as WalletEvent.ACCOUNT_CHANGED
    chainChanged          - Re-emitted as WalletEvent.CHAIN_CHANGED

Usage:
    adapter = ProviderWalletAdapter(provider)
    await adapter.connect()
    adapter.on(WalletEvent.ACCOUNT_CHANGED, app.on_account_changed)

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List, Callable

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3

from ..gateway.eip712 import TypedData
from .base import (
    WalletAdapter,
    WalletEvent,
    WalletInfo,
    WalletState,
    SignResult,
    SignatureRejectedError,
    WalletAdapterError,
    WalletConnectionError,
)


# =============================================================================
# Constants
# =============================================================================

ETH_REQUEST_ACCOUNTS = "eth_requestAccounts"
ETH_ACCOUNTS = "eth_accounts"
ETH_CHAIN_ID = "eth_chainId"
ETH_SIGN_TYPED_DATA = "eth_signTypedData_v4"

# EIP-1193 error code for a user-declined request
USER_REJECTED_CODE = 4001


class ProviderRpcError(Exception):
    """EIP-1193 provider error."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code


# =============================================================================
# Provider Interface
# =============================================================================

class EthereumProvider(ABC):
    """
    Abstract Ethereum provider interface.

    Represents window.ethereum in browser or mock for testing.
    Event callbacks may be plain functions or coroutine functions.
    """

    @abstractmethod
    async def request(self, method: str, params: Any = None) -> Any:
        """Send JSON-RPC request."""
        pass

    @abstractmethod
    def on(self, event: str, callback: Callable) -> None:
        """Subscribe to events."""
        pass

    @abstractmethod
    def remove_listener(self, event: str, callback: Callable) -> None:
        """Unsubscribe from events."""
        pass


class MockEthereumProvider(EthereumProvider):
    """
    Mock Ethereum provider for testing.

    Holds real eth-account keys so typed-data signatures recover to the
    reported account.
    """

    def __init__(
        self,
        private_keys: Optional[List[str]] = None,
        chain_id: int = 1,
        auto_approve: bool = True,
    ):
        keys = private_keys or [Account.create().key.hex()]
        self._accounts = [Account.from_key(k) for k in keys]
        self._chain_id = chain_id
        self.auto_approve = auto_approve
        self._event_handlers: Dict[str, List[Callable]] = {}

    @property
    def accounts(self) -> List[str]:
        return [a.address for a in self._accounts]

    async def request(self, method: str, params: Any = None) -> Any:
        """Handle JSON-RPC request."""

        if method in (ETH_REQUEST_ACCOUNTS, ETH_ACCOUNTS):
            return self.accounts

        elif method == ETH_CHAIN_ID:
            return hex(self._chain_id)

        elif method == ETH_SIGN_TYPED_DATA:
            if not self.auto_approve:
                raise ProviderRpcError(USER_REJECTED_CODE, "User rejected request")
            # params: [address, typed_data_json]
            address, data = params[0], params[1]
            account = self._find_account(address)
            signable = encode_typed_data(full_message=json.loads(data))
            return "0x" + bytes(account.sign_message(signable).signature).hex()

        raise ProviderRpcError(4200, f"Unsupported method: {method}")

    def _find_account(self, address: str):
        for account in self._accounts:
            if account.address.lower() == address.lower():
                return account
        raise ProviderRpcError(4100, f"Unknown account {address}")

    async def select_account(self, index: int) -> None:
        """Move an account to the front and fire accountsChanged."""
        account = self._accounts.pop(index)
        self._accounts.insert(0, account)
        await self._emit("accountsChanged", self.accounts)

    def on(self, event: str, callback: Callable) -> None:
        self._event_handlers.setdefault(event, []).append(callback)

    def remove_listener(self, event: str, callback: Callable) -> None:
        if callback in self._event_handlers.get(event, []):
            self._event_handlers[event].remove(callback)

    async def _emit(self, event: str, data: Any) -> None:
        for handler in list(self._event_handlers.get(event, [])):
            result = handler(data)
            if hasattr(result, "__await__"):
                await result


# =============================================================================
# Provider Adapter
# =============================================================================

class ProviderWalletAdapter(WalletAdapter):
    """
    Wallet adapter over an EIP-1193 provider.

    Args:
        provider: Ethereum provider (window.ethereum bridge or mock)
        chain_id: Default chain ID until connected
    """

    def __init__(
        self,
        provider: Optional[EthereumProvider] = None,
        chain_id: int = 1,
    ):
        super().__init__(chain_id)
        self._provider = provider
        self._listening = False

    @property
    def name(self) -> str:
        return "InjectedProvider"

    def _require_provider(self) -> EthereumProvider:
        if self._provider is None:
            raise WalletConnectionError("No Ethereum provider available")
        return self._provider

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self) -> WalletInfo:
        self._state = WalletState.CONNECTING
        provider = self._require_provider()

        try:
            accounts = await provider.request(ETH_REQUEST_ACCOUNTS)
            chain_id = int(await provider.request(ETH_CHAIN_ID), 16)
        except ProviderRpcError as e:
            self._state = WalletState.ERROR
            raise WalletConnectionError(f"Failed to connect: {e}") from e

        if not accounts:
            self._state = WalletState.ERROR
            raise WalletConnectionError("No accounts available")

        self._info = WalletInfo(
            name=self.name,
            chain_id=chain_id,
            address=Web3.to_checksum_address(accounts[0]),
        )
        self._chain_id = chain_id
        self._state = WalletState.CONNECTED
        self._setup_event_listeners()

        await self._emit(WalletEvent.CONNECTED, self._info)
        return self._info

    async def disconnect(self) -> None:
        if self._provider is not None and self._listening:
            self._provider.remove_listener("accountsChanged", self._on_accounts_changed)
            self._provider.remove_listener("chainChanged", self._on_chain_changed)
            self._listening = False
        await super().disconnect()

    def _setup_event_listeners(self) -> None:
        if self._listening:
            return
        self._provider.on("accountsChanged", self._on_accounts_changed)
        self._provider.on("chainChanged", self._on_chain_changed)
        self._listening = True

    async def _on_accounts_changed(self, accounts: List[str]) -> None:
        if not accounts:
            await self.disconnect()
            return
        if self._info:
            self._info.address = Web3.to_checksum_address(accounts[0])
            await self._emit(WalletEvent.ACCOUNT_CHANGED, self._info.address)

    async def _on_chain_changed(self, chain_id_hex: str) -> None:
        chain_id = int(chain_id_hex, 16)
        self._chain_id = chain_id
        if self._info:
            self._info.chain_id = chain_id
        await self._emit(WalletEvent.CHAIN_CHANGED, chain_id)

    # =========================================================================
    # Signing
    # =========================================================================

    async def sign_typed_data(self, typed_data: TypedData) -> SignResult:
        self._require_connected()
        provider = self._require_provider()

        try:
            sig_hex = await provider.request(
                ETH_SIGN_TYPED_DATA,
                [self.address, json.dumps(typed_data.to_dict())],
            )
        except ProviderRpcError as e:
            if e.code == USER_REJECTED_CODE:
                raise SignatureRejectedError(str(e)) from e
            raise WalletAdapterError(f"Signing failed: {e}") from e

        return SignResult(signature=bytes.fromhex(sig_hex.removeprefix("0x")))
