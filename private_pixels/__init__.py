# private_pixels/__init__.py
"""
PrivatePixels: Encrypted Pixel Canvases

Each canvas is a 10x10 grid whose selected cells (ids 1..100) are stored
on chain as FHE ciphertext handles. Only the owner and the viewers they
grant can decrypt them.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │  private_pixels                                         │
    │  ├── app/          # PrivatePixelsApp controller        │
    │  ├── adapters/     # Wallets (local key, EIP-1193)      │
    │  ├── contract/     # Contract clients (web3.py, local)  │
    │  ├── gateway/      # Encryptor/Decryptor, relayer       │
    │  ├── store/        # In-memory contract model           │
    │  ├── backend.py    # Component wiring                   │
    │  ├── config.py     # Environment configuration          │
    │  └── cli.py        # Command line                       │
    └─────────────────────────────────────────────────────────┘
"""

__version__ = "0.1.0"

from .config import PixelsConfig, ConfigError, get_config, set_config, load_config

from .store.canvas_store import (
    CanvasStore,
    CanvasMetadata,
    EMPTY_METADATA,
    MAX_CELLS,
)

from .gateway import (
    Encryptor,
    Decryptor,
    LocalFhevm,
    RelayerGateway,
    GatewayError,
)

from .contract import (
    CanvasContractClient,
    LocalCanvasContract,
    Web3CanvasContract,
    PendingTransaction,
    TransactionReceipt,
    ContractClientError,
    TransactionFailedError,
)

from .adapters import (
    WalletAdapter,
    WalletEvent,
    LocalWalletAdapter,
    ProviderWalletAdapter,
    SignatureRejectedError,
)

from .app import PrivatePixelsApp, AppState, Status

from .backend import Backend, build_local_backend, build_network_backend

__all__ = [
    "__version__",
    "PixelsConfig",
    "ConfigError",
    "get_config",
    "set_config",
    "load_config",
    "CanvasStore",
    "CanvasMetadata",
    "EMPTY_METADATA",
    "MAX_CELLS",
    "Encryptor",
    "Decryptor",
    "LocalFhevm",
    "RelayerGateway",
    "GatewayError",
    "CanvasContractClient",
    "LocalCanvasContract",
    "Web3CanvasContract",
    "PendingTransaction",
    "TransactionReceipt",
    "ContractClientError",
    "TransactionFailedError",
    "WalletAdapter",
    "WalletEvent",
    "LocalWalletAdapter",
    "ProviderWalletAdapter",
    "SignatureRejectedError",
    "PrivatePixelsApp",
    "AppState",
    "Status",
    "Backend",
    "build_local_backend",
    "build_network_backend",
]
