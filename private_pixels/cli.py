# private_pixels/cli.py
"""
PrivatePixels command line.

Commands:
    address                                  Print the contract address
    create-canvas [--label L]                Create a canvas
    save-cells --canvas N --cells 1,2,3      Encrypt and store cell ids
    decrypt-canvas --canvas N                Decrypt stored cells
    list-canvases [--owner A]                Canvas ids of an owner
    show-canvas --canvas N                   Canvas metadata
    finalize-canvas --canvas N               Lock a canvas
    allow-viewer --canvas N --viewer A       Let A decrypt a canvas

Configuration comes from PRIVATE_PIXELS_* environment variables (see
private_pixels.config); write commands need PRIVATE_PIXELS_PRIVATE_KEY.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional, List, Sequence

from . import __version__
from .adapters.base import WalletAdapterError
from .app.controller import request_user_decryption
from .backend import Backend, build_network_backend
from .config import ConfigError, ENV_PREFIX, get_config, load_config, set_config
from .contract.base import ContractClientError
from .gateway.base import GatewayError, MIN_CELL_VALUE, MAX_CELL_VALUE
from .store.canvas_store import MAX_CELLS


logger = logging.getLogger("private-pixels.cli")


class CliError(Exception):
    """Invalid command input."""
    pass


# =============================================================================
# Parsing
# =============================================================================

def parse_cell_list(text: str) -> List[int]:
    """
    Parse a comma separated list of cell ids.

    Non-numeric entries are dropped; order and duplicates are kept.

    Raises:
        CliError: No ids, more than 100 ids, or an id outside [1, 100]
    """
    cells = []
    for part in str(text).split(","):
        part = part.strip()
        try:
            cells.append(int(part))
        except ValueError:
            continue

    if not cells:
        raise CliError("No cell ids provided")
    if len(cells) > MAX_CELLS:
        raise CliError("Only 100 cells fit a canvas")
    for cell in cells:
        if not MIN_CELL_VALUE <= cell <= MAX_CELL_VALUE:
            raise CliError(f"Cell id {cell} outside {MIN_CELL_VALUE}-{MAX_CELL_VALUE}")
    return cells


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="private-pixels",
        description="Encrypted pixel canvases on an FHE-enabled chain",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    parser.add_argument("--env-file", default=None,
                        help="Read configuration from this .env file")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("address", help="Print the PrivatePixels address")

    p = sub.add_parser("create-canvas", help="Create a new encrypted canvas")
    p.add_argument("--label", default="", help="Optional label for the canvas")

    p = sub.add_parser("save-cells", help="Encrypt and save cell ids to a canvas")
    p.add_argument("--canvas", type=int, required=True, help="Canvas id to update")
    p.add_argument("--cells", required=True, help="Comma separated list of cell ids (1-100)")

    p = sub.add_parser("decrypt-canvas", help="Decrypt stored cells for a canvas")
    p.add_argument("--canvas", type=int, required=True, help="Canvas id to decrypt")

    p = sub.add_parser("list-canvases", help="List canvas ids of an owner")
    p.add_argument("--owner", default=None, help="Owner address (default: signer)")

    p = sub.add_parser("show-canvas", help="Print canvas metadata")
    p.add_argument("--canvas", type=int, required=True)

    p = sub.add_parser("finalize-canvas", help="Finalize a canvas")
    p.add_argument("--canvas", type=int, required=True)

    p = sub.add_parser("allow-viewer", help="Allow an address to decrypt a canvas")
    p.add_argument("--canvas", type=int, required=True)
    p.add_argument("--viewer", required=True, help="Viewer address")

    return parser


def _configure_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        name = os.getenv(ENV_PREFIX + "LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


# =============================================================================
# Commands
# =============================================================================

def _format_time(ts: int) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


async def _create_canvas(backend: Backend, args) -> None:
    backend.require_wallet()
    tx = await backend.contract.create_canvas(args.label)
    print(f"Waiting for tx {tx.tx_hash}...")
    receipt = await tx.wait()
    created = receipt.event_args("CanvasCreated")
    canvas_id = created["canvasId"] if created else await backend.contract.canvas_count()
    print(f"Canvas created on tx {tx.tx_hash} with id {canvas_id}")


async def _save_cells(backend: Backend, args) -> None:
    cells = parse_cell_list(args.cells)
    wallet = backend.require_wallet()
    encrypted = await backend.gateway.encrypt(backend.contract.address, wallet.address, cells)
    tx = await backend.contract.save_encrypted_cells(
        args.canvas, encrypted.handles, encrypted.input_proof
    )
    print(f"Waiting for tx {tx.tx_hash}...")
    await tx.wait()
    print(f"Saved {len(cells)} cells to canvas {args.canvas}")


async def _decrypt_canvas(backend: Backend, args) -> None:
    wallet = backend.require_wallet()
    handles = await backend.contract.get_canvas_cells(args.canvas)
    if not handles:
        print(f"Canvas {args.canvas} has no cells yet")
        return
    values = await request_user_decryption(
        backend.gateway,
        wallet,
        handles,
        backend.contract.address,
        get_config().decrypt_duration_days,
    )
    print(f"Canvas {args.canvas} cells: {', '.join(str(v) for v in values)}")


async def _list_canvases(backend: Backend, args) -> None:
    owner = args.owner or backend.require_wallet().address
    ids = await backend.contract.get_canvas_ids(owner)
    if not ids:
        print(f"No canvases for {owner}")
        return
    print(f"Canvases of {owner}: {', '.join(str(i) for i in ids)}")


async def _show_canvas(backend: Backend, args) -> None:
    meta = await backend.contract.get_canvas_metadata(args.canvas)
    print(f"Canvas {args.canvas}")
    print(f"  Owner:     {meta.owner}")
    print(f"  Label:     {meta.label or '-'}")
    print(f"  Created:   {_format_time(meta.created_at)}")
    print(f"  Updated:   {_format_time(meta.updated_at)}")
    print(f"  Finalized: {'yes' if meta.finalized else 'no'}")
    print(f"  Cells:     {meta.cell_count}")


async def _finalize_canvas(backend: Backend, args) -> None:
    backend.require_wallet()
    tx = await backend.contract.finalize_canvas(args.canvas)
    print(f"Waiting for tx {tx.tx_hash}...")
    await tx.wait()
    print(f"Canvas {args.canvas} finalized")


async def _allow_viewer(backend: Backend, args) -> None:
    backend.require_wallet()
    tx = await backend.contract.allow_viewer(args.canvas, args.viewer)
    print(f"Waiting for tx {tx.tx_hash}...")
    await tx.wait()
    print(f"Viewer {args.viewer} allowed on canvas {args.canvas}")


COMMANDS = {
    "create-canvas": _create_canvas,
    "save-cells": _save_cells,
    "decrypt-canvas": _decrypt_canvas,
    "list-canvases": _list_canvases,
    "show-canvas": _show_canvas,
    "finalize-canvas": _finalize_canvas,
    "allow-viewer": _allow_viewer,
}

# Commands that need the relayer/coprocessor
GATEWAY_COMMANDS = {"save-cells", "decrypt-canvas"}


async def _run(args, backend: Optional[Backend]) -> None:
    owned = backend is None
    if owned:
        backend = build_network_backend(get_config())
    try:
        await backend.start(gateway=args.command in GATEWAY_COMMANDS)
        await COMMANDS[args.command](backend, args)
    finally:
        if owned:
            await backend.aclose()


def main(argv: Optional[Sequence[str]] = None, backend: Optional[Backend] = None) -> int:
    """
    Entry point.

    Args:
        argv: Arguments (default: sys.argv[1:])
        backend: Pre-built backend (default: network backend from config)

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.env_file:
            set_config(load_config(args.env_file))

        if args.command == "address":
            address = backend.contract.address if backend else get_config().contract_address
            print(f"PrivatePixels address is {address}")
            return 0

        asyncio.run(_run(args, backend))
        return 0
    except (
        CliError, ConfigError, ContractClientError, GatewayError, WalletAdapterError, ValueError,
    ) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
