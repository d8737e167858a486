# tests/conftest.py
"""Shared fixtures: process config, local chain and signers."""

import asyncio

import pytest
from eth_account import Account

from private_pixels.app import PrivatePixelsApp
from private_pixels.backend import build_local_backend
from private_pixels.config import PixelsConfig, set_config
from private_pixels.gateway.local import LocalFhevm
from private_pixels.store.canvas_store import CanvasStore


ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32
CAROL_KEY = "0x" + "33" * 32

ALICE = Account.from_key(ALICE_KEY).address
BOB = Account.from_key(BOB_KEY).address
CAROL = Account.from_key(CAROL_KEY).address


@pytest.fixture(autouse=True)
def pixels_config():
    config = PixelsConfig(decrypt_duration_days=10)
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def fhevm():
    fhevm = LocalFhevm()
    asyncio.run(fhevm.initialize())
    return fhevm


@pytest.fixture
def store(fhevm):
    return CanvasStore(fhevm)


class CallRecorder:
    """Proxy recording the names of methods called on a target."""

    def __init__(self, target):
        self._target = target
        self.calls = []

    def __getattr__(self, name):
        attr = getattr(self._target, name)
        if callable(attr):
            def record(*args, **kwargs):
                self.calls.append(name)
                return attr(*args, **kwargs)
            return record
        return attr


def make_app(store, private_key, config, latency=0.0, auto_approve=True):
    """App for one signer on a shared store; call `await app.start()` in the loop."""
    backend = build_local_backend(private_key, store=store, latency=latency)
    backend.wallet.auto_approve = auto_approve
    app = PrivatePixelsApp(
        backend.contract,
        backend.wallet,
        encryptor=backend.gateway,
        decryptor=backend.gateway,
        config=config,
        contract_for=backend.contract.connect,
    )
    return app, backend
