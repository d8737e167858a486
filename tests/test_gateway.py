# tests/test_gateway.py
"""
PrivatePixels Encryption Gateway Test Suite

Categories:
  G1. Helpers (handles, cell values, sealed results)
  G2. EIP-712 user-decrypt request
  G3. LocalFhevm encryption and input proofs
  G4. LocalFhevm user decryption (signature, window, ACL)
"""

import asyncio
import time

import pytest
from eth_account import Account

from private_pixels.gateway import (
    AuthorizationError,
    DecryptionAuthorization,
    GatewayError,
    GatewayNotReadyError,
    InvalidInputProofError,
    Keypair,
    LocalFhevm,
    create_user_decrypt_request,
    normalize_handle,
    recover_signer,
    validate_cell_values,
)
from private_pixels.gateway.eip712 import check_validity_window, SECONDS_PER_DAY
from nacl.public import PublicKey, SealedBox

from conftest import ALICE, ALICE_KEY, BOB, BOB_KEY


CONTRACT = "0x" + "5" * 40
OTHER_CONTRACT = "0x" + "6" * 40


def sign(typed, key):
    return "0x" + bytes(Account.sign_message(typed.signable(), private_key=key).signature).hex()


def authorize(fhevm, key, user, contracts=(CONTRACT,), start=None, days=10):
    keypair = fhevm.generate_keypair()
    start = int(time.time()) if start is None else start
    typed = fhevm.create_eip712(keypair.public_key, list(contracts), start, days)
    return DecryptionAuthorization(
        keypair=keypair,
        signature=sign(typed, key),
        contract_addresses=list(contracts),
        user_address=user,
        start_timestamp=start,
        duration_days=days,
    )


def encrypt_and_allow(fhevm, values, user=ALICE, contract=CONTRACT):
    enc = asyncio.run(fhevm.encrypt(contract, user, values))
    for handle in enc.handles:
        fhevm.allow(handle, contract)
        fhevm.allow(handle, user)
    return enc


# =============================================================================
# G1. Helpers
# =============================================================================

def test_normalize_handle():
    raw = bytes(range(32))
    expected = "0x" + raw.hex()
    assert normalize_handle(raw) == expected
    assert normalize_handle(expected.upper().replace("0X", "0x")) == expected
    assert normalize_handle(raw.hex()) == expected
    with pytest.raises(GatewayError):
        normalize_handle(b"\x00" * 31)


def test_validate_cell_values():
    assert validate_cell_values([1, 50, 100]) == [1, 50, 100]
    for bad in ([0], [101], [True], ["5"], [2.0]):
        with pytest.raises(GatewayError):
            validate_cell_values(bad)


def test_keypair_opens_sealed_value():
    keypair = Keypair.generate()
    sealed = SealedBox(PublicKey(keypair.public_key)).encrypt((77).to_bytes(4, "big"))
    assert keypair.open_sealed(sealed) == 77

    with pytest.raises(GatewayError):
        Keypair.generate().open_sealed(sealed)


# =============================================================================
# G2. EIP-712 Request
# =============================================================================

def test_typed_data_document():
    typed = create_user_decrypt_request(
        b"\x01\x02", [CONTRACT], 1700000000, 10,
        chain_id=31337, verifying_contract="0x" + "d" * 40,
    )
    doc = typed.to_dict()

    assert doc["primaryType"] == "UserDecryptRequestVerification"
    assert doc["domain"]["name"] == "Decryption"
    assert doc["domain"]["version"] == "1"
    assert doc["domain"]["chainId"] == 31337
    assert [f["name"] for f in doc["types"]["UserDecryptRequestVerification"]] == [
        "publicKey", "contractAddresses", "startTimestamp", "durationDays",
    ]
    assert "EIP712Domain" in doc["types"]
    assert doc["message"]["publicKey"] == "0x0102"
    assert doc["message"]["durationDays"] == 10


def test_recover_signer():
    typed = create_user_decrypt_request(
        b"\xaa" * 32, [CONTRACT], 1700000000, 10,
        chain_id=1, verifying_contract="0x" + "d" * 40,
    )
    assert recover_signer(typed, sign(typed, ALICE_KEY)) == ALICE
    # Relayer payloads carry the signature without 0x
    assert recover_signer(typed, sign(typed, BOB_KEY)[2:]) == BOB


def test_request_parameters_checked():
    with pytest.raises(AuthorizationError):
        create_user_decrypt_request(b"\x00", [], 0, 10, chain_id=1, verifying_contract=CONTRACT)
    with pytest.raises(AuthorizationError):
        create_user_decrypt_request(b"\x00", [CONTRACT], 0, 0, chain_id=1, verifying_contract=CONTRACT)


def test_validity_window():
    start = 1_000_000
    check_validity_window(start, 10, now=start)
    check_validity_window(start, 10, now=start + 10 * SECONDS_PER_DAY - 1)
    with pytest.raises(AuthorizationError):
        check_validity_window(start, 10, now=start + 10 * SECONDS_PER_DAY)
    with pytest.raises(AuthorizationError):
        check_validity_window(start, 10, now=start - 1)


# =============================================================================
# G3. Encryption
# =============================================================================

def test_encrypt_requires_initialize():
    fhevm = LocalFhevm()
    assert fhevm.is_loading
    with pytest.raises(GatewayNotReadyError):
        asyncio.run(fhevm.encrypt(CONTRACT, ALICE, [1]))


def test_encrypt_batch(fhevm):
    enc = asyncio.run(fhevm.encrypt(CONTRACT, ALICE, [1, 10, 42, 77]))

    assert len(enc) == 4
    assert len(set(enc.handles)) == 4
    assert all(h == normalize_handle(h) for h in enc.handles)
    assert fhevm.verify_input(enc.handles, enc.input_proof, CONTRACT, ALICE) == enc.handles


def test_equal_values_get_distinct_handles(fhevm):
    a = asyncio.run(fhevm.encrypt(CONTRACT, ALICE, [5]))
    b = asyncio.run(fhevm.encrypt(CONTRACT, ALICE, [5]))
    assert a.handles != b.handles


def test_encrypt_rejects_bad_values(fhevm):
    with pytest.raises(GatewayError):
        asyncio.run(fhevm.encrypt(CONTRACT, ALICE, [0]))
    with pytest.raises(GatewayError):
        asyncio.run(fhevm.encrypt(CONTRACT, ALICE, []))


def test_verify_input_rejects_foreign_user(fhevm):
    enc = asyncio.run(fhevm.encrypt(CONTRACT, ALICE, [1]))
    with pytest.raises(InvalidInputProofError):
        fhevm.verify_input(enc.handles, enc.input_proof, CONTRACT, BOB)


# =============================================================================
# G4. User Decryption
# =============================================================================

def test_user_decrypt_round_trip(fhevm):
    enc = encrypt_and_allow(fhevm, [1, 10, 42, 77])
    result = asyncio.run(fhevm.user_decrypt(enc.handles, authorize(fhevm, ALICE_KEY, ALICE)))

    assert [result[h] for h in enc.handles] == [1, 10, 42, 77]


def test_user_decrypt_requires_acl(fhevm):
    enc = encrypt_and_allow(fhevm, [3])
    with pytest.raises(AuthorizationError):
        asyncio.run(fhevm.user_decrypt(enc.handles, authorize(fhevm, BOB_KEY, BOB)))

    fhevm.allow(enc.handles[0], BOB)
    result = asyncio.run(fhevm.user_decrypt(enc.handles, authorize(fhevm, BOB_KEY, BOB)))
    assert result[enc.handles[0]] == 3


def test_user_decrypt_requires_contract_acl(fhevm):
    enc = asyncio.run(fhevm.encrypt(CONTRACT, ALICE, [3]))
    fhevm.allow(enc.handles[0], ALICE)
    with pytest.raises(AuthorizationError):
        asyncio.run(fhevm.user_decrypt(enc.handles, authorize(fhevm, ALICE_KEY, ALICE)))


def test_user_decrypt_rejects_wrong_signer(fhevm):
    enc = encrypt_and_allow(fhevm, [3])
    auth = authorize(fhevm, BOB_KEY, BOB)
    auth.user_address = ALICE
    with pytest.raises(AuthorizationError):
        asyncio.run(fhevm.user_decrypt(enc.handles, auth))


def test_user_decrypt_rejects_other_contract(fhevm):
    enc = encrypt_and_allow(fhevm, [3])
    auth = authorize(fhevm, ALICE_KEY, ALICE, contracts=(OTHER_CONTRACT,))
    with pytest.raises(AuthorizationError):
        asyncio.run(fhevm.user_decrypt(enc.handles, auth))


def test_user_decrypt_rejects_expired_request(fhevm):
    enc = encrypt_and_allow(fhevm, [3])
    start = int(time.time()) - 11 * SECONDS_PER_DAY
    auth = authorize(fhevm, ALICE_KEY, ALICE, start=start, days=10)
    with pytest.raises(AuthorizationError):
        asyncio.run(fhevm.user_decrypt(enc.handles, auth))


def test_user_decrypt_rejects_swapped_keypair(fhevm):
    enc = encrypt_and_allow(fhevm, [3])
    auth = authorize(fhevm, ALICE_KEY, ALICE)
    # Signature names a different public key
    auth.keypair = Keypair.generate()
    with pytest.raises(AuthorizationError):
        asyncio.run(fhevm.user_decrypt(enc.handles, auth))
