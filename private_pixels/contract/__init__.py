# private_pixels/contract/__init__.py
"""
PrivatePixels Contract Layer

Components:
    CanvasContractClient: Read/write interface
    Web3CanvasContract: JSON-RPC client (web3.py)
    LocalCanvasContract: Client bound to an in-memory CanvasStore
"""

from .base import (
    CanvasContractClient,
    PendingTransaction,
    TransactionReceipt,
    ContractClientError,
    TransactionFailedError,
)
from .local import LocalCanvasContract
from .web3_client import Web3CanvasContract

__all__ = [
    "CanvasContractClient",
    "PendingTransaction",
    "TransactionReceipt",
    "ContractClientError",
    "TransactionFailedError",
    "LocalCanvasContract",
    "Web3CanvasContract",
]
