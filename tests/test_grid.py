# tests/test_grid.py
import numpy as np
import pytest

from core.grid import Grid


def test_from_inputs_defaults():
    g = Grid.from_inputs({"nx": 4, "ny": 3, "nz": 2})
    assert g.num_cells == 24
    assert g.num_active == 24
    assert g.kx.shape == (24,)
    # kz defaults to a tenth of kx
    assert np.allclose(g.kz, 0.1 * g.kx)


def test_index_roundtrip():
    g = Grid.from_inputs({"nx": 4, "ny": 3, "nz": 2})
    assert g.get_idx(3, 2, 1) == 23
    assert g.get_idx(4, 0, 0) == -1
    for idx in (0, 5, 13, 23):
        assert g.get_idx(*g.ijk(idx)) == idx
    with pytest.raises(IndexError):
        g.global_index(0, 3, 0)


def test_actnum_3d_shape():
    actnum = np.ones((2, 3, 4), dtype=int)
    actnum[1, 2, 3] = 0
    g = Grid.from_inputs({"nx": 4, "ny": 3, "nz": 2, "actnum": actnum})
    assert not g.cell_active(3, 2, 1)
    assert g.cell_active(0, 0, 0)
    assert g.num_active == 23


def test_rock_arrays():
    g = Grid.from_inputs({"nx": 2, "ny": 1, "nz": 1}, rock={"kx_md": [1.0, 3.0], "kz_md": 0.5})
    assert list(g.kx) == [1.0, 3.0]
    assert list(g.kz) == [0.5, 0.5]


@pytest.mark.parametrize("g", [{"nx": 2, "ny": 2}, {"nx": 0, "ny": 2, "nz": 1}])
def test_bad_dimensions(g):
    with pytest.raises(ValueError):
        Grid.from_inputs(g)


def test_actnum_wrong_size():
    with pytest.raises(ValueError):
        Grid.from_inputs({"nx": 2, "ny": 2, "nz": 1, "actnum": [1, 1, 1]})
