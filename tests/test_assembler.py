# tests/test_assembler.py
import pytest

from core.assembler import CONV, TransAssembler
from core.deck import parse_deck
from core.grid import Grid
from core.nnc import NNC

# dx = dy = 100 ft, dz = 10 ft, k = 0.1 md (kz = 0.01 md)
T_X = CONV * 0.1 * (100.0 * 10.0) / 100.0
T_Z = CONV * 0.01 * (100.0 * 100.0) / 10.0


def assemble(deck_text: str, grid: dict) -> TransAssembler:
    g = Grid.from_inputs(grid)
    return TransAssembler(grid=g, nnc=NNC.from_deck(g, parse_deck(deck_text)))


def test_cartesian_connections_only():
    asm = TransAssembler(grid=Grid.from_inputs({"nx": 3, "ny": 3, "nz": 1}))
    conns = asm.connections()
    assert len(conns) == 12
    assert conns[0][:2] == (0, 1)
    assert conns[0][2] == pytest.approx(T_X)


def test_inactive_cells_are_disconnected():
    g = {"nx": 3, "ny": 1, "nz": 1, "actnum": [1, 0, 1]}
    asm = TransAssembler(grid=Grid.from_inputs(g))
    assert asm.connections() == []


def test_nnc_edit_and_editr_applied():
    asm = assemble("""
NNC
1 1 1 3 3 1 5.0 /
1 1 1 3 3 1 1.0 /
/
EDITNNC
1 1 1 1 1 2 0.5 /
1 1 1 3 2 1 2.0 /
/
EDITNNCR
3 1 1 1 3 1 7.0 /
/
""", {"nx": 3, "ny": 3, "nz": 2})
    assert asm.trans[(0, 8)] == pytest.approx(6.0)
    # k-neighbours (offset nx*ny) are not filtered, so the multiplier reaches them
    assert asm.trans[(0, 9)] == pytest.approx(0.5 * T_Z)
    assert asm.trans[(2, 6)] == pytest.approx(7.0)
    assert asm.unmatched_edits == [(0, 5)]


def test_matrix_is_symmetric():
    asm = assemble("""
NNC
1 1 1 3 3 1 5.0 /
/
""", {"nx": 3, "ny": 3, "nz": 1})
    A = asm.matrix()
    assert A.shape == (9, 9)
    assert (A - A.T).nnz == 0
    assert A[0, 8] == pytest.approx(5.0)
    assert A[8, 0] == pytest.approx(5.0)
    assert asm.total_trans()[0] == pytest.approx(2 * T_X + 5.0)
