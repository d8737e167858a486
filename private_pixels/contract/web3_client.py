# private_pixels/contract/web3_client.py
"""
PrivatePixels Contract: JSON-RPC Client

CanvasContractClient over a blockchain node, using web3.py's AsyncWeb3
for calls and eth-account for local transaction signing.

Requirements:
    pip install web3

Usage:
    contract = Web3CanvasContract(
        get_config(),
        account=Account.from_key("0x..."),  # Optional, for write ops
    )

    ids = await contract.get_canvas_ids(owner)
    tx = await contract.create_canvas("first")
    receipt = await tx.wait()
    canvas_id = receipt.event_args("CanvasCreated")["canvasId"]
"""

from __future__ import annotations

import logging
from typing import Optional, List, Sequence

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, AsyncHTTPProvider, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from ..config import PixelsConfig
from ..gateway.base import normalize_handle
from ..store.canvas_store import CanvasMetadata, ContractEvent
from .base import (
    CanvasContractClient,
    ContractClientError,
    PendingTransaction,
    TransactionFailedError,
    TransactionReceipt,
)


logger = logging.getLogger("private-pixels.contract.web3")

EVENT_NAMES = ("CanvasCreated", "CanvasSaved", "CanvasFinalized", "ViewerGranted")


class Web3CanvasContract(CanvasContractClient):
    """
    PrivatePixels contract over JSON-RPC.

    Args:
        config: Resolved configuration (address, ABI, RPC URL, chain ID)
        account: Signing account for writes (None = read-only)
        w3: Pre-built AsyncWeb3 instance (default: HTTP provider on rpc_url)
        poll_interval: Seconds between receipt polls
        receipt_timeout: Seconds to wait for a receipt (None = no limit;
            PendingTransaction.wait(timeout=) also bounds it)
    """

    def __init__(
        self,
        config: PixelsConfig,
        account: Optional[LocalAccount] = None,
        w3: Optional[AsyncWeb3] = None,
        poll_interval: float = 2.0,
        receipt_timeout: Optional[float] = None,
    ):
        self._config = config
        self._account = account
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(config.rpc_url))
        self._poll_interval = poll_interval
        self._receipt_timeout = receipt_timeout
        self._contract = self._w3.eth.contract(
            address=config.contract_address,
            abi=config.abi,
        )

    @property
    def address(self) -> str:
        return self._config.contract_address

    @property
    def sender(self) -> Optional[str]:
        return self._account.address if self._account else None

    # =========================================================================
    # Reads
    # =========================================================================

    async def _call(self, fn):
        try:
            return await fn.call()
        except (Web3Exception, ValueError) as e:
            raise ContractClientError(f"Call failed: {e}") from e

    async def get_canvas_ids(self, user: str) -> List[int]:
        ids = await self._call(
            self._contract.functions.getCanvasIds(Web3.to_checksum_address(user))
        )
        return [int(i) for i in ids]

    async def get_canvas_metadata(self, canvas_id: int) -> CanvasMetadata:
        data = await self._call(self._contract.functions.getCanvasMetadata(int(canvas_id)))
        return CanvasMetadata.from_contract_tuple(data)

    async def get_canvas_cells(self, canvas_id: int) -> List[str]:
        cells = await self._call(self._contract.functions.getCanvasCells(int(canvas_id)))
        return [normalize_handle(bytes(c)) for c in cells]

    async def canvas_count(self) -> int:
        return int(await self._call(self._contract.functions.canvasCount()))

    # =========================================================================
    # Writes
    # =========================================================================

    async def _send(self, fn) -> PendingTransaction:
        if self._account is None:
            raise ContractClientError("Private key required for write operations")
        sender = self._account.address

        try:
            tx = await fn.build_transaction({
                "from": sender,
                "chainId": self._config.chain_id,
                "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
            })
        except ContractLogicError as e:
            raise TransactionFailedError(f"Transaction would revert: {e}") from e
        except (Web3Exception, ValueError) as e:
            raise ContractClientError(f"Failed to build transaction: {e}") from e

        signed = self._account.sign_transaction(tx)
        try:
            raw_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, ValueError) as e:
            raise TransactionFailedError(f"Failed to send transaction: {e}") from e

        tx_hash = "0x" + bytes(raw_hash).hex()
        logger.info("Submitted %s", tx_hash)
        return PendingTransaction(tx_hash, lambda: self._wait_for_receipt(tx_hash))

    async def _wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._receipt_timeout,
                poll_latency=self._poll_interval,
            )
        except TimeExhausted as e:
            raise TransactionFailedError(f"No receipt for {tx_hash}: {e}", tx_hash) from e

        if receipt["status"] != 1:
            raise TransactionFailedError(f"Transaction failed: {tx_hash}", tx_hash)

        events = []
        for name in EVENT_NAMES:
            for log in getattr(self._contract.events, name)().process_receipt(receipt, errors=DISCARD):
                events.append(ContractEvent(name=name, args=dict(log["args"])))

        logger.info("Confirmed %s in block %d", tx_hash, receipt["blockNumber"])
        return TransactionReceipt(
            tx_hash=tx_hash,
            status=receipt["status"],
            block_number=receipt["blockNumber"],
            events=events,
        )

    async def create_canvas(self, label: str) -> PendingTransaction:
        return await self._send(self._contract.functions.createCanvas(label))

    async def save_encrypted_cells(
        self,
        canvas_id: int,
        handles: Sequence[str],
        input_proof: bytes,
    ) -> PendingTransaction:
        cells = [bytes.fromhex(normalize_handle(h)[2:]) for h in handles]
        return await self._send(
            self._contract.functions.saveEncryptedCells(int(canvas_id), cells, bytes(input_proof))
        )

    async def finalize_canvas(self, canvas_id: int) -> PendingTransaction:
        return await self._send(self._contract.functions.finalizeCanvas(int(canvas_id)))

    async def allow_viewer(self, canvas_id: int, viewer: str) -> PendingTransaction:
        return await self._send(
            self._contract.functions.allowViewer(int(canvas_id), Web3.to_checksum_address(viewer))
        )
