# private_pixels/backend.py
"""
PrivatePixels: Component Wiring

A Backend bundles the three collaborators every front end needs: a
contract client, a wallet and a gateway implementing both Encryptor and
Decryptor.

    build_network_backend(config)  - web3.py contract, HTTP relayer,
                                     key from PRIVATE_PIXELS_PRIVATE_KEY
    build_local_backend()          - CanvasStore + LocalFhevm in process
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Callable, Awaitable, Union

from eth_account import Account

from .adapters.base import WalletAdapter
from .adapters.local import LocalWalletAdapter
from .config import PixelsConfig, ConfigError
from .contract.base import CanvasContractClient
from .contract.local import LocalCanvasContract
from .contract.web3_client import Web3CanvasContract
from .gateway.local import LocalFhevm
from .gateway.relayer import RelayerGateway
from .store.canvas_store import CanvasStore


logger = logging.getLogger("private-pixels.backend")

Gateway = Union[LocalFhevm, RelayerGateway]


@dataclass
class Backend:
    """Contract client, wallet and gateway for one signer."""
    contract: CanvasContractClient
    gateway: Gateway
    wallet: Optional[WalletAdapter] = None
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    def require_wallet(self) -> WalletAdapter:
        if self.wallet is None:
            raise ConfigError("PRIVATE_PIXELS_PRIVATE_KEY is required for this command")
        return self.wallet

    async def start(self, gateway: bool = True) -> None:
        """Initialize the gateway (if asked) and connect the wallet; idempotent."""
        if gateway and not self.gateway.is_ready:
            await self.gateway.initialize()
        if self.wallet is not None and not self.wallet.is_connected:
            await self.wallet.connect()

    async def aclose(self) -> None:
        for close in self.closers:
            await close()
        self.closers.clear()


def build_network_backend(config: PixelsConfig) -> Backend:
    """Backend talking to the configured chain and relayer."""
    account = Account.from_key(config.private_key) if config.private_key else None
    wallet = (
        LocalWalletAdapter(config.private_key, chain_id=config.chain_id)
        if config.private_key else None
    )
    gateway = RelayerGateway.from_config(config)
    logger.debug("Network backend on %s (chain %d)", config.rpc_url, config.chain_id)
    return Backend(
        contract=Web3CanvasContract(config, account=account),
        gateway=gateway,
        wallet=wallet,
        closers=[gateway.aclose],
    )


def build_local_backend(
    private_key: Optional[str] = None,
    store: Optional[CanvasStore] = None,
    latency: float = 0.0,
) -> Backend:
    """
    In-process backend.

    Args:
        private_key: Signer key (random if None)
        store: Existing store to share between signers
        latency: Simulated seconds per read/confirmation
    """
    store = store or CanvasStore(LocalFhevm())
    wallet = LocalWalletAdapter(private_key, chain_id=store.fhevm.chain_id)
    return Backend(
        contract=LocalCanvasContract(store, wallet.account.address, latency=latency),
        gateway=store.fhevm,
        wallet=wallet,
    )
