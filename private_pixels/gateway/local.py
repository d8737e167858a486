# private_pixels/gateway/local.py
"""
PrivatePixels Gateway: Local Coprocessor

In-process stand-in for the FHE coprocessor + relayer, used by the local
development network and the test suite. It reproduces the observable
contract of the real service without any homomorphic arithmetic:

    - Ciphertexts are sealed with ChaCha20-Poly1305 under a network key
    - Handles are keccak256 digests (bytes32), opaque to every caller
    - Input proofs are HMACs binding a batch of handles to (contract, user)
    - An ACL records which accounts may use each handle
    - User decryption checks the EIP-712 signature, validity window,
      contract list and ACL, then re-encrypts each plaintext to the
      caller's ephemeral X25519 key

Usage:
    fhevm = LocalFhevm()
    await fhevm.initialize()

    enc = await fhevm.encrypt(contract, alice, [1, 10, 42])
    handles = fhevm.verify_input(enc.handles, enc.input_proof, contract, alice)
    fhevm.allow(handles[0], alice)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import struct
import time
from dataclasses import dataclass
from typing import Optional, Dict, List, Set, Sequence, Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from nacl.public import PublicKey, SealedBox
from web3 import Web3

from .base import (
    CLEARTEXT_SIZE,
    AuthorizationError,
    DecryptionAuthorization,
    Decryptor,
    EncryptedInput,
    Encryptor,
    GatewayError,
    InvalidInputProofError,
    _GatewayLifecycle,
    normalize_handle,
    validate_cell_values,
)
from .eip712 import (
    TypedData,
    check_validity_window,
    create_user_decrypt_request,
    recover_signer,
)


logger = logging.getLogger("private-pixels.gateway.local")

PROOF_VERSION = 0x01
LOCAL_CHAIN_ID = 31337
LOCAL_DECRYPTION_ADDRESS = "0x" + "d" * 40


# =============================================================================
# Access Control
# =============================================================================

class AccessControlList:
    """Per-handle set of accounts allowed to use a ciphertext."""

    def __init__(self):
        self._allowed: Dict[str, Set[str]] = {}

    def allow(self, handle: str, account: str) -> None:
        self._allowed.setdefault(normalize_handle(handle), set()).add(account.lower())

    def is_allowed(self, handle: str, account: str) -> bool:
        return account.lower() in self._allowed.get(normalize_handle(handle), set())

    def allowed_accounts(self, handle: str) -> Set[str]:
        return set(self._allowed.get(normalize_handle(handle), set()))


@dataclass
class _Ciphertext:
    nonce: bytes
    sealed: bytes
    contract_address: str


# =============================================================================
# LocalFhevm
# =============================================================================

class LocalFhevm(_GatewayLifecycle, Encryptor, Decryptor):
    """
    Simulated coprocessor implementing both gateway capabilities.

    The contract side (CanvasStore) uses verify_input() and allow(); the
    client side uses encrypt() and user_decrypt() like any gateway.
    """

    def __init__(
        self,
        chain_id: int = LOCAL_CHAIN_ID,
        verifying_contract: str = LOCAL_DECRYPTION_ADDRESS,
        network_key: Optional[bytes] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__()
        self.chain_id = chain_id
        self.verifying_contract = Web3.to_checksum_address(verifying_contract)
        self._aead = ChaCha20Poly1305(network_key or ChaCha20Poly1305.generate_key())
        self._proof_key = secrets.token_bytes(32)
        self._ciphertexts: Dict[str, _Ciphertext] = {}
        self._clock = clock
        self.acl = AccessControlList()

    async def initialize(self) -> None:
        self._ready = True

    # =========================================================================
    # Encryption (client side)
    # =========================================================================

    async def encrypt(
        self,
        contract_address: str,
        user_address: str,
        values: Sequence[int],
    ) -> EncryptedInput:
        self._require_ready()
        values = validate_cell_values(values)
        if not values:
            raise GatewayError("Nothing to encrypt")

        contract = contract_address.lower()
        handles = []
        for index, value in enumerate(values):
            nonce = secrets.token_bytes(12)
            sealed = self._aead.encrypt(
                nonce, value.to_bytes(CLEARTEXT_SIZE, "big"), contract.encode()
            )
            digest = Web3.keccak(
                b"pp-handle" + nonce + sealed + bytes.fromhex(contract[2:])
                + struct.pack(">H", index)
            )
            handle = normalize_handle(bytes(digest))
            self._ciphertexts[handle] = _Ciphertext(nonce, sealed, contract)
            handles.append(handle)

        proof = self._input_proof(handles, contract, user_address.lower())
        logger.debug("Encrypted %d values for %s", len(handles), contract)
        return EncryptedInput(handles=handles, input_proof=proof)

    def _input_proof(self, handles: Sequence[str], contract: str, user: str) -> bytes:
        mac = hmac.new(self._proof_key, digestmod=hashlib.sha256)
        mac.update(contract.encode())
        mac.update(user.encode())
        mac.update(struct.pack(">H", len(handles)))
        for h in handles:
            mac.update(bytes.fromhex(h[2:]))
        return bytes([PROOF_VERSION]) + mac.digest()

    # =========================================================================
    # Contract Side
    # =========================================================================

    def verify_input(
        self,
        handles: Sequence[str],
        input_proof: bytes,
        contract_address: str,
        user_address: str,
    ) -> List[str]:
        """
        Check a submitted batch against its proof.

        Returns:
            Normalized handles, in submission order

        Raises:
            InvalidInputProofError: Proof does not cover exactly these handles
                for this contract/user pair, or a handle is unknown
        """
        try:
            normalized = [normalize_handle(h) for h in handles]
        except GatewayError as e:
            raise InvalidInputProofError(str(e)) from e
        expected = self._input_proof(normalized, contract_address.lower(), user_address.lower())
        if not hmac.compare_digest(bytes(input_proof), expected):
            raise InvalidInputProofError("Input proof verification failed")
        for h in normalized:
            ct = self._ciphertexts.get(h)
            if ct is None or ct.contract_address != contract_address.lower():
                raise InvalidInputProofError(f"Unknown ciphertext handle {h}")
        return normalized

    def allow(self, handle: str, account: str) -> None:
        self.acl.allow(handle, account)

    def is_allowed(self, handle: str, account: str) -> bool:
        return self.acl.is_allowed(handle, account)

    # =========================================================================
    # User Decryption
    # =========================================================================

    def create_eip712(
        self,
        public_key: bytes,
        contract_addresses: Sequence[str],
        start_timestamp: int,
        duration_days: int,
    ) -> TypedData:
        return create_user_decrypt_request(
            public_key,
            contract_addresses,
            start_timestamp,
            duration_days,
            chain_id=self.chain_id,
            verifying_contract=self.verifying_contract,
        )

    def reencrypt(
        self,
        handles: Sequence[str],
        public_key: bytes,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> Dict[str, bytes]:
        """
        Serve a user-decrypt request: plaintexts sealed to public_key.

        Raises:
            AuthorizationError: Bad signature, window, contract or ACL
            GatewayError: Unknown handle
        """
        self._require_ready()
        typed = self.create_eip712(public_key, contract_addresses, start_timestamp, duration_days)
        signer = recover_signer(typed, signature)
        if signer.lower() != user_address.lower():
            raise AuthorizationError(f"Signature is not from {user_address}")
        check_validity_window(start_timestamp, duration_days, now=self._clock())

        contracts = {a.lower() for a in contract_addresses}
        box = SealedBox(PublicKey(bytes(public_key)))
        results: Dict[str, bytes] = {}
        for raw in handles:
            handle = normalize_handle(raw)
            ct = self._ciphertexts.get(handle)
            if ct is None:
                raise GatewayError(f"Unknown ciphertext handle {handle}")
            if ct.contract_address not in contracts:
                raise AuthorizationError(f"Handle {handle[:10]}... belongs to another contract")
            if not self.acl.is_allowed(handle, ct.contract_address):
                raise AuthorizationError(f"Contract not allowed on {handle[:10]}...")
            if not self.acl.is_allowed(handle, user_address):
                raise AuthorizationError(f"{user_address} not allowed on {handle[:10]}...")
            results[handle] = box.encrypt(self._cleartext(handle, ct))
        return results

    def _cleartext(self, handle: str, ct: _Ciphertext) -> bytes:
        try:
            return self._aead.decrypt(ct.nonce, ct.sealed, ct.contract_address.encode())
        except InvalidTag as e:
            raise GatewayError(f"Corrupted ciphertext {handle}") from e

    async def user_decrypt(
        self,
        handles: Sequence[str],
        authorization: DecryptionAuthorization,
    ) -> Dict[str, int]:
        sealed = self.reencrypt(
            handles,
            authorization.keypair.public_key,
            authorization.signature,
            authorization.contract_addresses,
            authorization.user_address,
            authorization.start_timestamp,
            authorization.duration_days,
        )
        return {h: authorization.keypair.open_sealed(v) for h, v in sealed.items()}
