# private_pixels/adapters/__init__.py
"""
PrivatePixels Wallet Adapters

Components:
    WalletAdapter: Abstract wallet interface
    LocalWalletAdapter: eth-account private key wallet
    ProviderWalletAdapter: EIP-1193 provider bridge
"""

from .base import (
    WalletAdapter,
    WalletState,
    WalletEvent,
    WalletInfo,
    SignResult,
    WalletAdapterError,
    NotConnectedError,
    SignatureRejectedError,
    WalletConnectionError,
)
from .local import LocalWalletAdapter
from .provider import (
    EthereumProvider,
    MockEthereumProvider,
    ProviderRpcError,
    ProviderWalletAdapter,
)

__all__ = [
    "WalletAdapter",
    "WalletState",
    "WalletEvent",
    "WalletInfo",
    "SignResult",
    "WalletAdapterError",
    "NotConnectedError",
    "SignatureRejectedError",
    "WalletConnectionError",
    "LocalWalletAdapter",
    "EthereumProvider",
    "MockEthereumProvider",
    "ProviderRpcError",
    "ProviderWalletAdapter",
]
