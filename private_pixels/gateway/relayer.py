# private_pixels/gateway/relayer.py
"""
PrivatePixels Gateway: HTTP Relayer Client

Talks JSON over HTTP to an FHE relayer:

    GET  /v1/keyurl         - readiness / public key material
    POST /v1/input-proof    - encrypt a batch, returns handles + proof
    POST /v1/user-decrypt   - re-encrypt handles to a user public key

Results of user-decrypt are sealed to the ephemeral keypair and opened
locally; the relayer never returns plaintext.

Usage:
    gateway = RelayerGateway.from_config(get_config())
    await gateway.initialize()

    enc = await gateway.encrypt(contract, user, [1, 2, 3])
    values = await gateway.user_decrypt(handles, authorization)
"""

from __future__ import annotations

import logging
from typing import Optional, Dict, Any, Sequence

import httpx

from ..config import PixelsConfig
from .base import (
    DecryptionAuthorization,
    Decryptor,
    EncryptedInput,
    Encryptor,
    RelayerError,
    _GatewayLifecycle,
    normalize_handle,
    validate_cell_values,
)
from .eip712 import TypedData, create_user_decrypt_request


logger = logging.getLogger("private-pixels.gateway.relayer")

PATH_KEYURL = "/v1/keyurl"
PATH_INPUT_PROOF = "/v1/input-proof"
PATH_USER_DECRYPT = "/v1/user-decrypt"

CIPHERTEXT_BITS = 32


def _strip0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


class RelayerGateway(_GatewayLifecycle, Encryptor, Decryptor):
    """Encryptor/Decryptor backed by a remote relayer."""

    def __init__(
        self,
        base_url: str,
        chain_id: int,
        gateway_chain_id: int,
        verifying_contract: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.gateway_chain_id = gateway_chain_id
        self.verifying_contract = verifying_contract
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: PixelsConfig, **kwargs) -> RelayerGateway:
        return cls(
            base_url=config.relayer_url,
            chain_id=config.chain_id,
            gateway_chain_id=config.gateway_chain_id,
            verifying_contract=config.decryption_address,
            **kwargs,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(self, method: str, path: str, payload: Optional[Dict] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            raise RelayerError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise RelayerError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise RelayerError(f"{method} {path} returned invalid JSON") from e
        if not isinstance(body, dict) or "response" not in body:
            raise RelayerError(f"{method} {path} returned unexpected body")
        return body["response"]

    async def initialize(self) -> None:
        """Fetch key material; marks the gateway ready or records the error."""
        try:
            await self._request("GET", PATH_KEYURL)
        except RelayerError as e:
            self._error = e
            logger.error("Relayer initialization failed: %s", e)
            raise
        self._ready = True
        logger.info("Relayer ready at %s", self.base_url)

    # =========================================================================
    # Capabilities
    # =========================================================================

    async def encrypt(
        self,
        contract_address: str,
        user_address: str,
        values: Sequence[int],
    ) -> EncryptedInput:
        self._require_ready()
        values = validate_cell_values(values)
        result = await self._request("POST", PATH_INPUT_PROOF, {
            "contractChainId": self.chain_id,
            "contractAddress": contract_address,
            "userAddress": user_address,
            "bits": CIPHERTEXT_BITS,
            "values": values,
        })
        try:
            handles = [normalize_handle(h) for h in result["handles"]]
            proof = bytes.fromhex(_strip0x(result["inputProof"]))
        except (KeyError, TypeError, ValueError) as e:
            raise RelayerError(f"Malformed input-proof response: {e}") from e
        if len(handles) != len(values):
            raise RelayerError(
                f"Relayer returned {len(handles)} handles for {len(values)} values"
            )
        return EncryptedInput(handles=handles, input_proof=proof)

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
            chain_id=self.gateway_chain_id,
            verifying_contract=self.verifying_contract,
        )

    async def user_decrypt(
        self,
        handles: Sequence[str],
        authorization: DecryptionAuthorization,
    ) -> Dict[str, int]:
        self._require_ready()
        contract = authorization.contract_addresses[0]
        result = await self._request("POST", PATH_USER_DECRYPT, {
            "handleContractPairs": [
                {"handle": normalize_handle(h), "contractAddress": contract} for h in handles
            ],
            "requestValidity": {
                "startTimestamp": str(authorization.start_timestamp),
                "durationDays": str(authorization.duration_days),
            },
            "contractsChainId": str(self.chain_id),
            "contractAddresses": list(authorization.contract_addresses),
            "userAddress": authorization.user_address,
            "signature": _strip0x(authorization.signature),
            "publicKey": authorization.keypair.public_key.hex(),
        })

        values: Dict[str, int] = {}
        try:
            for item in result:
                handle = normalize_handle(item["handle"])
                sealed = bytes.fromhex(_strip0x(item["payload"]))
                values[handle] = authorization.keypair.open_sealed(sealed)
        except (KeyError, TypeError, ValueError) as e:
            raise RelayerError(f"Malformed user-decrypt response: {e}") from e
        return values
