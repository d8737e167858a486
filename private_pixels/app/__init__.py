# private_pixels/app/__init__.py
"""
PrivatePixels Application Layer

Components:
    PrivatePixelsApp: Controller coordinating wallet, gateway and contract
    AppState: Transient client state
"""

from .controller import (
    PrivatePixelsApp,
    request_user_decryption,
    AppState,
    Action,
    Status,
    RelayerStatus,
    GRID_SIZE,
    DEFAULT_LABEL,
    CELL_EMPTY,
    CELL_SELECTED,
    CELL_FROM_CHAIN,
)

__all__ = [
    "PrivatePixelsApp",
    "request_user_decryption",
    "AppState",
    "Action",
    "Status",
    "RelayerStatus",
    "GRID_SIZE",
    "DEFAULT_LABEL",
    "CELL_EMPTY",
    "CELL_SELECTED",
    "CELL_FROM_CHAIN",
]
