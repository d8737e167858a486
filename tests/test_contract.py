# tests/test_contract.py
"""
PrivatePixels Contract Client Test Suite

Categories:
  K1. Two-phase writes (submit, wait, receipt)
  K2. Reverts and read errors
  K3. Multiple senders on one store
  K4. JSON-RPC client (construction, signing, receipts, reverts)
"""

import asyncio

import pytest
from eth_abi import encode
from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.providers.async_base import AsyncBaseProvider

from private_pixels.config import load_abi
from private_pixels.contract import (
    ContractClientError,
    LocalCanvasContract,
    TransactionFailedError,
    Web3CanvasContract,
)

from conftest import ALICE, ALICE_KEY, BOB


# =============================================================================
# K1. Two-phase Writes
# =============================================================================

def test_write_applies_on_wait(store):
    contract = LocalCanvasContract(store, ALICE)

    async def flow():
        tx = await contract.create_canvas("first")
        assert store.canvas_count() == 0
        receipt = await tx.wait()
        return tx, receipt

    tx, receipt = asyncio.run(flow())
    assert receipt.status == 1
    assert receipt.tx_hash == tx.tx_hash
    assert receipt.event_args("CanvasCreated")["canvasId"] == 1
    assert receipt.event_args("CanvasSaved") is None
    assert store.get_canvas_ids(ALICE) == [1]


def test_wait_is_idempotent(store):
    contract = LocalCanvasContract(store, ALICE)

    async def flow():
        tx = await contract.create_canvas("once")
        first = await tx.wait()
        second = await tx.wait()
        return first, second

    first, second = asyncio.run(flow())
    assert first is second
    assert store.canvas_count() == 1


def test_writes_mine_in_wait_order(store):
    contract = LocalCanvasContract(store, ALICE)

    async def flow():
        first = await contract.create_canvas("first")
        second = await contract.create_canvas("second")
        await contract.create_canvas("never")
        await second.wait()
        await first.wait()

    asyncio.run(flow())
    assert store.canvas_count() == 2
    assert store.get_canvas_metadata(1).label == "second"
    assert store.get_canvas_metadata(2).label == "first"


def test_save_and_read_back(store, fhevm):
    contract = LocalCanvasContract(store, ALICE)

    async def flow():
        await (await contract.create_canvas("art")).wait()
        enc = await fhevm.encrypt(contract.address, ALICE, [1, 10, 42, 77])
        tx = await contract.save_encrypted_cells(1, enc.handles, enc.input_proof)
        receipt = await tx.wait()
        cells = await contract.get_canvas_cells(1)
        meta = await contract.get_canvas_metadata(1)
        return enc, receipt, cells, meta

    enc, receipt, cells, meta = asyncio.run(flow())
    assert cells == enc.handles
    assert meta.cell_count == 4
    assert receipt.event_args("CanvasSaved")["cellCount"] == 4


def test_block_numbers_increase(store):
    contract = LocalCanvasContract(store, ALICE)

    async def flow():
        a = await (await contract.create_canvas("a")).wait()
        b = await (await contract.create_canvas("b")).wait()
        return a, b

    a, b = asyncio.run(flow())
    assert b.block_number == a.block_number + 1
    assert a.tx_hash != b.tx_hash


# =============================================================================
# K2. Reverts and Errors
# =============================================================================

def test_revert_raises_on_wait(store):
    contract = LocalCanvasContract(store, ALICE)

    async def flow():
        await (await contract.create_canvas("a")).wait()
        await (await contract.finalize_canvas(1)).wait()
        tx = await contract.finalize_canvas(1)
        await tx.wait()

    with pytest.raises(TransactionFailedError) as info:
        asyncio.run(flow())
    assert info.value.tx_hash is not None


def test_write_without_sender(store):
    contract = LocalCanvasContract(store)
    with pytest.raises(ContractClientError):
        asyncio.run(contract.create_canvas("nobody"))


def test_read_of_unknown_canvas(store):
    contract = LocalCanvasContract(store)
    with pytest.raises(ContractClientError):
        asyncio.run(contract.get_canvas_metadata(5))


def test_wait_timeout(store):
    contract = LocalCanvasContract(store, ALICE, latency=0.5)

    async def flow():
        tx = await contract.create_canvas("slow")
        await tx.wait(timeout=0.01)

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(flow())


# =============================================================================
# K3. Multiple Senders
# =============================================================================

def test_connect_shares_store(store):
    alice = LocalCanvasContract(store, ALICE)
    bob = alice.connect(BOB)

    async def flow():
        await (await alice.create_canvas("alice")).wait()
        await (await bob.create_canvas("bob")).wait()
        # Bob cannot finalize Alice's canvas
        await (await bob.finalize_canvas(1)).wait()

    with pytest.raises(TransactionFailedError):
        asyncio.run(flow())

    assert bob.sender == BOB
    assert bob.address == alice.address
    assert asyncio.run(bob.get_canvas_ids(ALICE)) == [1]
    assert asyncio.run(bob.canvas_count()) == 2


# =============================================================================
# K4. JSON-RPC Client
# =============================================================================

def test_packaged_abi():
    names = {entry.get("name") for entry in load_abi()}
    for name in (
        "getCanvasIds", "getCanvasMetadata", "getCanvasCells", "canvasCount",
        "createCanvas", "saveEncryptedCells", "finalizeCanvas", "allowViewer",
        "CanvasCreated", "CanvasSaved", "CanvasFinalized", "ViewerGranted",
    ):
        assert name in names


def test_web3_client_read_only(pixels_config):
    contract = Web3CanvasContract(pixels_config)

    assert contract.address == pixels_config.contract_address
    assert contract.sender is None
    with pytest.raises(ContractClientError):
        asyncio.run(contract.create_canvas("no key"))


class StubNode(AsyncBaseProvider):
    """
    Minimal JSON-RPC node: answers the calls a signed write and a read make.

    revert: message returned by eth_estimateGas as an execution error
    receipt_status: receipt status, or None to never mine
    """

    chain_id = 11155111

    def __init__(self, contract_address, revert=None, receipt_status=1, call_result=b""):
        super().__init__()
        self.contract_address = contract_address
        self.revert = revert
        self.receipt_status = receipt_status
        self.call_result = call_result
        self.methods = []
        self.sent = []
        self._id = 0

    async def is_connected(self, show_traceback=False):
        return True

    async def make_request(self, method, params):
        self._id += 1
        self.methods.append(method)
        if method == "eth_estimateGas" and self.revert:
            return {
                "jsonrpc": "2.0",
                "id": self._id,
                "error": {"code": 3, "message": self.revert, "data": None},
            }
        return {"jsonrpc": "2.0", "id": self._id, "result": self._result(method, params)}

    def _result(self, method, params):
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_getTransactionCount":
            return "0x0"
        if method == "eth_estimateGas":
            return "0x5208"
        if method == "eth_maxPriorityFeePerGas":
            return "0x3b9aca00"
        if method == "eth_getBlockByNumber":
            return {
                "number": "0x10",
                "hash": "0x" + "ab" * 32,
                "parentHash": "0x" + "cd" * 32,
                "baseFeePerGas": "0x1",
                "gasLimit": "0x1c9c380",
                "gasUsed": "0x0",
                "timestamp": "0x6553f100",
                "transactions": [],
            }
        if method == "eth_sendRawTransaction":
            raw = params[0]
            digest = Web3.keccak(hexstr=raw) if isinstance(raw, str) else Web3.keccak(raw)
            tx_hash = Web3.to_hex(digest)
            self.sent.append(tx_hash)
            return tx_hash
        if method == "eth_getTransactionReceipt":
            if self.receipt_status is None:
                return None
            return self._receipt(params[0])
        if method == "eth_call":
            return Web3.to_hex(self.call_result)
        raise AssertionError(f"Unexpected RPC method {method}")

    def _receipt(self, tx_hash):
        tx_hash = Web3.to_hex(hexstr=tx_hash) if isinstance(tx_hash, str) else Web3.to_hex(tx_hash)
        block_hash = "0x" + "ef" * 32
        created = {
            "address": self.contract_address,
            "topics": [
                Web3.to_hex(Web3.keccak(text="CanvasCreated(address,uint256,string)")),
                "0x" + "00" * 12 + ALICE[2:].lower(),
                Web3.to_hex((1).to_bytes(32, "big")),
            ],
            "data": Web3.to_hex(encode(["string"], ["art"])),
            "logIndex": "0x0",
            "transactionIndex": "0x0",
            "transactionHash": tx_hash,
            "blockHash": block_hash,
            "blockNumber": "0x11",
            "removed": False,
        }
        return {
            "transactionHash": tx_hash,
            "transactionIndex": "0x0",
            "blockHash": block_hash,
            "blockNumber": "0x11",
            "from": ALICE,
            "to": self.contract_address,
            "status": hex(self.receipt_status),
            "gasUsed": "0x5208",
            "cumulativeGasUsed": "0x5208",
            "logs": [created],
        }


def signing_client(config, node, **kwargs):
    return Web3CanvasContract(
        config,
        account=Account.from_key(ALICE_KEY),
        w3=AsyncWeb3(node),
        poll_interval=0.01,
        **kwargs,
    )


def test_web3_client_signs_and_decodes_events(pixels_config):
    node = StubNode(pixels_config.contract_address)
    contract = signing_client(pixels_config, node)

    async def flow():
        tx = await contract.create_canvas("art")
        return tx, await tx.wait()

    tx, receipt = asyncio.run(flow())
    assert node.sent == [tx.tx_hash]
    assert receipt.tx_hash == tx.tx_hash
    assert receipt.status == 1
    assert receipt.block_number == 17
    created = receipt.event_args("CanvasCreated")
    assert created["canvasId"] == 1
    assert created["label"] == "art"
    assert created["owner"] == ALICE
    assert receipt.event_args("CanvasSaved") is None


def test_web3_client_revert_on_submit(pixels_config):
    node = StubNode(pixels_config.contract_address, revert="execution reverted: Not canvas owner")
    contract = signing_client(pixels_config, node)

    with pytest.raises(TransactionFailedError):
        asyncio.run(contract.finalize_canvas(1))
    assert "eth_sendRawTransaction" not in node.methods


def test_web3_client_failed_receipt(pixels_config):
    node = StubNode(pixels_config.contract_address, receipt_status=0)
    contract = signing_client(pixels_config, node)

    async def flow():
        tx = await contract.create_canvas("art")
        await tx.wait()

    with pytest.raises(TransactionFailedError) as info:
        asyncio.run(flow())
    assert info.value.tx_hash == node.sent[0]


def test_web3_client_receipt_timeout(pixels_config):
    node = StubNode(pixels_config.contract_address, receipt_status=None)
    contract = signing_client(pixels_config, node, receipt_timeout=0.05)

    async def flow():
        tx = await contract.create_canvas("art")
        await tx.wait()

    with pytest.raises(TransactionFailedError):
        asyncio.run(flow())
    assert node.methods.count("eth_getTransactionReceipt") > 1


def test_web3_client_reads(pixels_config):
    node = StubNode(pixels_config.contract_address, call_result=encode(["uint256"], [2]))
    contract = Web3CanvasContract(pixels_config, w3=AsyncWeb3(node))

    assert asyncio.run(contract.canvas_count()) == 2
    assert "eth_call" in node.methods
