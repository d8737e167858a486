# tests/test_cli.py
"""
PrivatePixels CLI Test Suite

Commands run against an in-process backend shared by several signers.
"""

import pytest

from private_pixels.backend import Backend, build_local_backend
from private_pixels.cli import CliError, build_parser, main, parse_cell_list
from private_pixels.contract import LocalCanvasContract

from conftest import ALICE, ALICE_KEY, BOB, BOB_KEY, CAROL_KEY


@pytest.fixture
def alice(store):
    return build_local_backend(ALICE_KEY, store=store)


def run(capsys, backend, *argv):
    code = main(list(argv), backend=backend)
    out, err = capsys.readouterr()
    return code, out, err


# =============================================================================
# Cell Lists
# =============================================================================

def test_parse_cell_list():
    assert parse_cell_list("1,10,42,77") == [1, 10, 42, 77]
    assert parse_cell_list(" 5 , x, 3,,5 ") == [5, 3, 5]


@pytest.mark.parametrize("text, message", [
    ("", "No cell ids provided"),
    ("a,b", "No cell ids provided"),
    ("0,4", "Cell id 0 outside 1-100"),
    ("4,101", "Cell id 101 outside 1-100"),
    (",".join(["1"] * 101), "Only 100 cells fit a canvas"),
])
def test_parse_cell_list_rejects(text, message):
    with pytest.raises(CliError, match=message):
        parse_cell_list(text)


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


# =============================================================================
# Commands
# =============================================================================

def test_address(capsys, alice):
    code, out, _ = run(capsys, alice, "address")
    assert code == 0
    assert out.strip() == f"PrivatePixels address is {alice.contract.address}"


def test_create_save_decrypt(capsys, alice):
    code, out, _ = run(capsys, alice, "create-canvas", "--label", "art")
    assert code == 0
    assert out.startswith("Waiting for tx 0x")
    assert out.strip().endswith("with id 1")

    code, out, _ = run(capsys, alice, "save-cells", "--canvas", "1", "--cells", "1,10,42,77")
    assert code == 0
    assert "Saved 4 cells to canvas 1" in out

    code, out, _ = run(capsys, alice, "decrypt-canvas", "--canvas", "1")
    assert code == 0
    assert out.strip() == "Canvas 1 cells: 1, 10, 42, 77"


def test_decrypt_empty_canvas(capsys, alice):
    run(capsys, alice, "create-canvas")
    code, out, _ = run(capsys, alice, "decrypt-canvas", "--canvas", "1")
    assert code == 0
    assert out.strip() == "Canvas 1 has no cells yet"


def test_list_and_show(capsys, alice, store):
    code, out, _ = run(capsys, alice, "list-canvases")
    assert out.strip() == f"No canvases for {ALICE}"

    run(capsys, alice, "create-canvas", "--label", "first")
    run(capsys, alice, "create-canvas")

    code, out, _ = run(capsys, alice, "list-canvases")
    assert code == 0
    assert out.strip() == f"Canvases of {ALICE}: 1, 2"

    code, out, _ = run(capsys, alice, "list-canvases", "--owner", BOB)
    assert out.strip() == f"No canvases for {BOB}"

    code, out, _ = run(capsys, alice, "show-canvas", "--canvas", "1")
    assert code == 0
    assert f"Owner:     {ALICE}" in out
    assert "Label:     first" in out
    assert "Finalized: no" in out
    assert "Cells:     0" in out

    _, out, _ = run(capsys, alice, "show-canvas", "--canvas", "2")
    assert "Label:     -" in out


def test_finalize(capsys, alice):
    run(capsys, alice, "create-canvas")
    code, out, _ = run(capsys, alice, "finalize-canvas", "--canvas", "1")
    assert code == 0
    assert "Canvas 1 finalized" in out

    _, out, _ = run(capsys, alice, "show-canvas", "--canvas", "1")
    assert "Finalized: yes" in out

    code, _, err = run(capsys, alice, "save-cells", "--canvas", "1", "--cells", "3")
    assert code == 1
    assert err.startswith("Error: ")


def test_viewer_decrypts_shared_canvas(capsys, alice, store):
    bob = build_local_backend(BOB_KEY, store=store)
    carol = build_local_backend(CAROL_KEY, store=store)

    run(capsys, alice, "create-canvas")
    run(capsys, alice, "save-cells", "--canvas", "1", "--cells", "77,5")

    code, out, _ = run(capsys, alice, "allow-viewer", "--canvas", "1", "--viewer", BOB)
    assert code == 0
    assert f"Viewer {BOB} allowed on canvas 1" in out

    code, out, _ = run(capsys, bob, "decrypt-canvas", "--canvas", "1")
    assert code == 0
    # Stored in the order given
    assert out.strip() == "Canvas 1 cells: 77, 5"

    code, _, err = run(capsys, carol, "decrypt-canvas", "--canvas", "1")
    assert code == 1
    assert "Error:" in err


# =============================================================================
# Errors
# =============================================================================

def test_bad_cells_exit_code(capsys, alice):
    run(capsys, alice, "create-canvas")
    code, out, err = run(capsys, alice, "save-cells", "--canvas", "1", "--cells", "a,b")
    assert code == 1
    assert out == ""
    assert err.strip() == "Error: No cell ids provided"


def test_non_owner_write_fails(capsys, alice, store):
    bob = build_local_backend(BOB_KEY, store=store)
    run(capsys, alice, "create-canvas")

    code, _, err = run(capsys, bob, "finalize-canvas", "--canvas", "1")
    assert code == 1
    assert err.startswith("Error: ")


def test_unknown_canvas(capsys, alice):
    code, _, err = run(capsys, alice, "show-canvas", "--canvas", "9")
    assert code == 1
    assert err.startswith("Error: ")


def test_write_without_key(capsys, store):
    backend = Backend(contract=LocalCanvasContract(store), gateway=store.fhevm)
    code, _, err = run(capsys, backend, "create-canvas")
    assert code == 1
    assert "PRIVATE_PIXELS_PRIVATE_KEY" in err

    # Reads still work
    code, out, _ = run(capsys, backend, "list-canvases", "--owner", ALICE)
    assert code == 0
