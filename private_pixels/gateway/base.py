# private_pixels/gateway/base.py
"""
PrivatePixels Gateway: Encryption Capabilities

The relayer SDK is a black box to the rest of the package. It is modelled as
two narrow capabilities that the application controller receives by
injection:

    Encryptor  - plaintext cell ids -> ciphertext handles + one input proof
    Decryptor  - ciphertext handles + signed authorization -> plaintext ints

Decryption follows the user-decrypt flow: the caller creates an ephemeral
X25519 keypair, signs an EIP-712 request naming the public key, and the
gateway returns every plaintext re-encrypted (sealed box) to that key. Only
the holder of the ephemeral private key can open the results.

Updated: 2026-10-18
Version: 0.1.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Sequence

from nacl.exceptions import CryptoError
from nacl.public import PrivateKey, SealedBox


# =============================================================================
# Constants
# =============================================================================

MIN_CELL_VALUE = 1
MAX_CELL_VALUE = 100
HANDLE_SIZE = 32
CLEARTEXT_SIZE = 4  # euint32


# =============================================================================
# Exceptions
# =============================================================================

class GatewayError(Exception):
    """Base exception for encryption gateway errors."""
    pass


class GatewayNotReadyError(GatewayError):
    """Gateway used before initialize() completed."""
    pass


class InvalidInputProofError(GatewayError):
    """Input proof does not match the submitted handles."""
    pass


class AuthorizationError(GatewayError):
    """Decryption request not authorized (signature, window or ACL)."""
    pass


class RelayerError(GatewayError):
    """Relayer returned an error or an unusable response."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class EncryptedInput:
    """Batch of ciphertext handles with their aggregate input proof."""
    handles: List[str]
    input_proof: bytes

    def __len__(self) -> int:
        return len(self.handles)


@dataclass
class Keypair:
    """Ephemeral X25519 keypair for user decryption."""
    public_key: bytes
    private_key: bytes = field(repr=False)

    @classmethod
    def generate(cls) -> Keypair:
        sk = PrivateKey.generate()
        return cls(public_key=bytes(sk.public_key), private_key=bytes(sk))

    def open_sealed(self, sealed: bytes) -> int:
        """Open a value re-encrypted to this keypair."""
        try:
            cleartext = SealedBox(PrivateKey(self.private_key)).decrypt(sealed)
        except CryptoError as e:
            raise GatewayError(f"Cannot open re-encrypted value: {e}") from e
        return int.from_bytes(cleartext, "big")


@dataclass
class DecryptionAuthorization:
    """
    Everything the gateway needs to serve a user-decrypt request.

    Attributes:
        keypair: Ephemeral keypair named in the signed request
        signature: 0x-prefixed EIP-712 signature by user_address
        contract_addresses: Contracts the request covers
        user_address: Signer address
        start_timestamp: Window start (Unix seconds)
        duration_days: Window length
    """
    keypair: Keypair
    signature: str
    contract_addresses: List[str]
    user_address: str
    start_timestamp: int
    duration_days: int


# =============================================================================
# Helpers
# =============================================================================

def normalize_handle(handle) -> str:
    """Return a handle as lowercase 0x-prefixed bytes32 hex."""
    if isinstance(handle, (bytes, bytearray)):
        raw = bytes(handle)
    else:
        text = str(handle)
        raw = bytes.fromhex(text[2:] if text.startswith("0x") else text)
    if len(raw) != HANDLE_SIZE:
        raise GatewayError(f"Handle must be {HANDLE_SIZE} bytes, got {len(raw)}")
    return "0x" + raw.hex()


def validate_cell_values(values: Sequence[int]) -> List[int]:
    """Check that every value is a cell id in [1, 100]."""
    checked = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, int):
            raise GatewayError(f"Cell value must be an int, got {v!r}")
        if not MIN_CELL_VALUE <= v <= MAX_CELL_VALUE:
            raise GatewayError(
                f"Cell value {v} outside [{MIN_CELL_VALUE}, {MAX_CELL_VALUE}]"
            )
        checked.append(v)
    return checked


# =============================================================================
# Capability Interfaces
# =============================================================================

class _GatewayLifecycle:
    """Readiness tracking shared by gateway implementations."""

    def __init__(self):
        self._ready = False
        self._error: Optional[BaseException] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_loading(self) -> bool:
        return not self._ready and self._error is None

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def _require_ready(self) -> None:
        if not self._ready:
            raise GatewayNotReadyError("Gateway not initialized")


class Encryptor(ABC):
    """Turns plaintext cell ids into ciphertext handles + a validity proof."""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @property
    def error(self) -> Optional[BaseException]:
        """Initialization failure, if any."""
        return None

    @abstractmethod
    async def encrypt(
        self,
        contract_address: str,
        user_address: str,
        values: Sequence[int],
    ) -> EncryptedInput:
        """
        Encrypt a batch of values for one contract/user pair.

        Returns:
            EncryptedInput with one handle per value (same order) and a
            single proof covering the whole batch.
        """
        pass


class Decryptor(ABC):
    """Turns on-chain ciphertext handles back into plaintext."""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @property
    def error(self) -> Optional[BaseException]:
        return None

    def generate_keypair(self) -> Keypair:
        return Keypair.generate()

    @abstractmethod
    def create_eip712(
        self,
        public_key: bytes,
        contract_addresses: Sequence[str],
        start_timestamp: int,
        duration_days: int,
    ):
        """Build the typed-data payload the user must sign."""
        pass

    @abstractmethod
    async def user_decrypt(
        self,
        handles: Sequence[str],
        authorization: DecryptionAuthorization,
    ) -> Dict[str, int]:
        """
        Decrypt handles the signer is allowed to read.

        Returns:
            Mapping of normalized handle -> plaintext integer
        """
        pass
