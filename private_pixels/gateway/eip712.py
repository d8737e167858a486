# private_pixels/gateway/eip712.py
"""
PrivatePixels Gateway: EIP-712 User-Decrypt Request

Typed-data payload authorizing the gateway to re-encrypt ciphertexts to an
ephemeral public key:

    domain:  {name: "Decryption", version: "1", chainId, verifyingContract}
    UserDecryptRequestVerification(
        bytes     publicKey,
        address[] contractAddresses,
        uint256   startTimestamp,
        uint256   durationDays,
    )
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Sequence

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from web3 import Web3

from .base import AuthorizationError


DOMAIN_NAME = "Decryption"
DOMAIN_VERSION = "1"
PRIMARY_TYPE = "UserDecryptRequestVerification"
SECONDS_PER_DAY = 86400
MAX_DURATION_DAYS = 365

USER_DECRYPT_TYPES: Dict[str, List[Dict[str, str]]] = {
    PRIMARY_TYPE: [
        {"name": "publicKey", "type": "bytes"},
        {"name": "contractAddresses", "type": "address[]"},
        {"name": "startTimestamp", "type": "uint256"},
        {"name": "durationDays", "type": "uint256"},
    ],
}


@dataclass
class EIP712Domain:
    """EIP-712 domain separator."""
    name: str
    version: str
    chain_id: int
    verifying_contract: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to EIP-712 format."""
        domain = {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
        }
        if self.verifying_contract:
            domain["verifyingContract"] = self.verifying_contract
        return domain

    def type_fields(self) -> List[Dict[str, str]]:
        fields = [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
        ]
        if self.verifying_contract:
            fields.append({"name": "verifyingContract", "type": "address"})
        return fields


@dataclass
class TypedData:
    """A complete EIP-712 payload ready for signing."""
    domain: EIP712Domain
    types: Dict[str, List[Dict[str, str]]]
    primary_type: str
    message: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Full eth_signTypedData_v4 document."""
        return {
            "types": {"EIP712Domain": self.domain.type_fields(), **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message,
        }

    def signable(self) -> SignableMessage:
        return encode_typed_data(full_message=self.to_dict())


def create_user_decrypt_request(
    public_key: bytes,
    contract_addresses: Sequence[str],
    start_timestamp: int,
    duration_days: int,
    chain_id: int,
    verifying_contract: str,
) -> TypedData:
    """Build the UserDecryptRequestVerification payload."""
    if not contract_addresses:
        raise AuthorizationError("At least one contract address is required")
    if not 0 < duration_days <= MAX_DURATION_DAYS:
        raise AuthorizationError(f"durationDays must be in 1..{MAX_DURATION_DAYS}")

    domain = EIP712Domain(
        name=DOMAIN_NAME,
        version=DOMAIN_VERSION,
        chain_id=chain_id,
        verifying_contract=Web3.to_checksum_address(verifying_contract),
    )
    message = {
        "publicKey": "0x" + bytes(public_key).hex(),
        "contractAddresses": [Web3.to_checksum_address(a) for a in contract_addresses],
        "startTimestamp": int(start_timestamp),
        "durationDays": int(duration_days),
    }
    return TypedData(
        domain=domain,
        types=USER_DECRYPT_TYPES,
        primary_type=PRIMARY_TYPE,
        message=message,
    )


def recover_signer(typed_data: TypedData, signature: str) -> str:
    """Recover the checksummed address that signed typed_data."""
    sig = signature if signature.startswith("0x") else "0x" + signature
    try:
        return Account.recover_message(typed_data.signable(), signature=sig)
    except Exception as e:
        raise AuthorizationError(f"Invalid signature: {e}") from e


def check_validity_window(
    start_timestamp: int,
    duration_days: int,
    now: Optional[float] = None,
) -> None:
    """Raise unless now lies inside [start, start + duration)."""
    now = time.time() if now is None else now
    if start_timestamp > now:
        raise AuthorizationError("Request window has not started")
    if now >= start_timestamp + duration_days * SECONDS_PER_DAY:
        raise AuthorizationError("Request window has expired")
