# private_pixels/gateway/__init__.py
"""
PrivatePixels Gateway Layer

Encryption capabilities injected into the application controller.

Components:
    Encryptor / Decryptor  - Capability interfaces
    LocalFhevm             - In-process coprocessor (local network, tests)
    RelayerGateway         - HTTP relayer client
    create_user_decrypt_request - EIP-712 authorization payload
"""

from .base import (
    Encryptor,
    Decryptor,
    EncryptedInput,
    Keypair,
    DecryptionAuthorization,
    GatewayError,
    GatewayNotReadyError,
    InvalidInputProofError,
    AuthorizationError,
    RelayerError,
    MIN_CELL_VALUE,
    MAX_CELL_VALUE,
    normalize_handle,
    validate_cell_values,
)

from .eip712 import (
    EIP712Domain,
    TypedData,
    create_user_decrypt_request,
    recover_signer,
)

from .local import LocalFhevm, AccessControlList
from .relayer import RelayerGateway

__all__ = [
    "Encryptor",
    "Decryptor",
    "EncryptedInput",
    "Keypair",
    "DecryptionAuthorization",
    "GatewayError",
    "GatewayNotReadyError",
    "InvalidInputProofError",
    "AuthorizationError",
    "RelayerError",
    "MIN_CELL_VALUE",
    "MAX_CELL_VALUE",
    "normalize_handle",
    "validate_cell_values",
    "EIP712Domain",
    "TypedData",
    "create_user_decrypt_request",
    "recover_signer",
    "LocalFhevm",
    "AccessControlList",
    "RelayerGateway",
]
