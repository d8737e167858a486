# private_pixels/adapters/local.py
"""
PrivatePixels Adapters: Local Key Wallet

Signs with an eth-account private key held in process. Used by the CLI
(key from configuration) and by tests, where auto_approve=False simulates
a user declining every signature request.
"""

from __future__ import annotations

from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..gateway.eip712 import TypedData
from .base import (
    WalletAdapter,
    WalletEvent,
    WalletInfo,
    WalletState,
    SignResult,
    SignatureRejectedError,
)


class LocalWalletAdapter(WalletAdapter):
    """
    Wallet backed by a local private key.

    Args:
        private_key: Hex key (a fresh random key if None)
        chain_id: Reported chain ID
        auto_approve: When False every signature request is rejected
    """

    def __init__(
        self,
        private_key: Optional[str] = None,
        chain_id: int = 1,
        auto_approve: bool = True,
    ):
        super().__init__(chain_id)
        self._account: LocalAccount = (
            Account.from_key(private_key) if private_key else Account.create()
        )
        self.auto_approve = auto_approve

    @property
    def name(self) -> str:
        return "LocalWallet"

    @property
    def account(self) -> LocalAccount:
        return self._account

    async def connect(self) -> WalletInfo:
        self._info = WalletInfo(
            name=self.name,
            chain_id=self._chain_id,
            address=self._account.address,
        )
        self._state = WalletState.CONNECTED
        await self._emit(WalletEvent.CONNECTED, self._info)
        return self._info

    async def switch_account(self, private_key: str) -> None:
        """Replace the signing key; emits ACCOUNT_CHANGED when connected."""
        self._account = Account.from_key(private_key)
        if self._info:
            self._info.address = self._account.address
            await self._emit(WalletEvent.ACCOUNT_CHANGED, self._account.address)

    async def sign_typed_data(self, typed_data: TypedData) -> SignResult:
        self._require_connected()

        if not self.auto_approve:
            raise SignatureRejectedError("User rejected")

        signed = self._account.sign_message(typed_data.signable())
        return SignResult(signature=bytes(signed.signature))
