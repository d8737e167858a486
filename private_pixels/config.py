# private_pixels/config.py
"""
PrivatePixels: Process-wide Configuration

Contract address, ABI, RPC/relayer endpoints and decryption parameters are
resolved once at startup from the environment (optionally seeded from a
.env file) and shared by every component.

Environment:
    PRIVATE_PIXELS_CONTRACT_ADDRESS      Deployed PrivatePixels address
    PRIVATE_PIXELS_RPC_URL               JSON-RPC endpoint of the chain
    PRIVATE_PIXELS_RELAYER_URL           Base URL of the FHE relayer
    PRIVATE_PIXELS_CHAIN_ID              Host chain ID (default: Sepolia)
    PRIVATE_PIXELS_GATEWAY_CHAIN_ID      Chain ID of the decryption domain
    PRIVATE_PIXELS_DECRYPTION_ADDRESS    verifyingContract of the EIP-712 domain
    PRIVATE_PIXELS_PRIVATE_KEY           Signer key for CLI write operations
    PRIVATE_PIXELS_DECRYPT_DURATION_DAYS Validity window of decrypt requests
    PRIVATE_PIXELS_LOG_LEVEL             Logging level for the CLI

Usage:
    from private_pixels.config import get_config

    config = get_config()
    contract = Web3CanvasContract(config)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, List, Dict, Any

from dotenv import load_dotenv
from web3 import Web3


# =============================================================================
# Constants
# =============================================================================

ENV_PREFIX = "PRIVATE_PIXELS_"

DEFAULT_CONTRACT_ADDRESS = "0x1B67488E15f11E6f98FE6B61a42a561455bdd887"
DEFAULT_RPC_URL = "https://ethereum-sepolia-rpc.publicnode.com"
DEFAULT_RELAYER_URL = "https://relayer.testnet.zama.cloud"
SEPOLIA_CHAIN_ID = 11155111
DEFAULT_GATEWAY_CHAIN_ID = 55815
DEFAULT_DECRYPTION_ADDRESS = "0xb6E160B1ff80D67Bfe90A85eE06Ce0A2613607D1"
DEFAULT_DECRYPT_DURATION_DAYS = 10

ABI_PATH = Path(__file__).parent / "contracts" / "abi" / "PrivatePixels.json"


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Invalid or missing configuration value."""
    pass


# =============================================================================
# ABI
# =============================================================================

def load_abi(path: Path = ABI_PATH) -> List[Dict[str, Any]]:
    """Load contract ABI from JSON file (bare list or {"abi": [...]})."""
    if not path.exists():
        raise ConfigError(f"ABI file not found: {path}")
    with open(path) as f:
        data = json.load(f)
    return data.get("abi", data) if isinstance(data, dict) else data


# =============================================================================
# Config
# =============================================================================

@dataclass(frozen=True)
class PixelsConfig:
    """
    Resolved runtime configuration.

    Attributes:
        contract_address: Checksummed PrivatePixels address
        rpc_url: Chain JSON-RPC endpoint
        relayer_url: FHE relayer base URL
        chain_id: Host chain ID
        gateway_chain_id: Chain ID used in the decryption EIP-712 domain
        decryption_address: verifyingContract of the decryption domain
        private_key: Optional signer key (CLI writes)
        decrypt_duration_days: Validity window for user decryption
        abi: Contract ABI
    """
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    rpc_url: str = DEFAULT_RPC_URL
    relayer_url: str = DEFAULT_RELAYER_URL
    chain_id: int = SEPOLIA_CHAIN_ID
    gateway_chain_id: int = DEFAULT_GATEWAY_CHAIN_ID
    decryption_address: str = DEFAULT_DECRYPTION_ADDRESS
    private_key: Optional[str] = field(default=None, repr=False)
    decrypt_duration_days: int = DEFAULT_DECRYPT_DURATION_DAYS
    abi: List[Dict[str, Any]] = field(default_factory=load_abi, repr=False)

    def __post_init__(self):
        for name in ("contract_address", "decryption_address"):
            value = getattr(self, name)
            if not Web3.is_address(value):
                raise ConfigError(f"{name} is not a valid address: {value!r}")
            object.__setattr__(self, name, Web3.to_checksum_address(value))
        if self.decrypt_duration_days <= 0:
            raise ConfigError("decrypt_duration_days must be positive")

    def with_overrides(self, **changes) -> PixelsConfig:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw, 0)
    except ValueError as e:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e


def load_config(env_file: Optional[Path] = None) -> PixelsConfig:
    """
    Build configuration from environment variables.

    Args:
        env_file: Optional .env file; variables already set in the
            environment take precedence.
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return PixelsConfig(
        contract_address=_env("CONTRACT_ADDRESS", DEFAULT_CONTRACT_ADDRESS),
        rpc_url=_env("RPC_URL", DEFAULT_RPC_URL),
        relayer_url=_env("RELAYER_URL", DEFAULT_RELAYER_URL),
        chain_id=_env_int("CHAIN_ID", SEPOLIA_CHAIN_ID),
        gateway_chain_id=_env_int("GATEWAY_CHAIN_ID", DEFAULT_GATEWAY_CHAIN_ID),
        decryption_address=_env("DECRYPTION_ADDRESS", DEFAULT_DECRYPTION_ADDRESS),
        private_key=_env("PRIVATE_KEY"),
        decrypt_duration_days=_env_int("DECRYPT_DURATION_DAYS", DEFAULT_DECRYPT_DURATION_DAYS),
    )


_config: Optional[PixelsConfig] = None


def get_config() -> PixelsConfig:
    """Process-wide configuration, loaded on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[PixelsConfig]) -> None:
    """Replace (or with None, reset) the process-wide configuration."""
    global _config
    _config = config
