# private_pixels/store/__init__.py
"""
PrivatePixels Store Layer

Contract-side data model: canvases, encrypted cells, viewer grants.

Components:
    CanvasStore: In-memory PrivatePixels contract (local network, tests)
    CanvasMetadata: getCanvasMetadata record
"""

from .canvas_store import (
    CanvasStore,
    Canvas,
    CanvasMetadata,
    ContractEvent,
    EMPTY_METADATA,
    MAX_CELLS,
    LOCAL_CONTRACT_ADDRESS,
    StoreError,
    CanvasNotFoundError,
    NotCanvasOwnerError,
    CanvasFinalizedError,
    InvalidCellsError,
    InvalidInputProofError,
)

__all__ = [
    "CanvasStore",
    "Canvas",
    "CanvasMetadata",
    "ContractEvent",
    "EMPTY_METADATA",
    "MAX_CELLS",
    "LOCAL_CONTRACT_ADDRESS",
    "StoreError",
    "CanvasNotFoundError",
    "NotCanvasOwnerError",
    "CanvasFinalizedError",
    "InvalidCellsError",
    "InvalidInputProofError",
]
