# core/grid.py
from __future__ import annotations
import numpy as np
from dataclasses import dataclass

_EPS = 1e-12


@dataclass
class Grid:
    """Cartesian grid: extents, cell sizes, rock arrays and ACTNUM.

    Global index is k * (nx * ny) + j * nx + i with 0-based (i, j, k), i fastest.
    """
    nx: int
    ny: int
    nz: int
    dx: float
    dy: float
    dz: float
    num_cells: int
    # Rock properties (flattened length = num_cells)
    kx: np.ndarray
    ky: np.ndarray
    kz: np.ndarray
    actnum: np.ndarray

    @staticmethod
    def _flatten_or_fill(arr, shape, fill, dtype=float):
        if arr is None:
            return np.full(int(np.prod(shape)), fill, dtype=dtype)
        a = np.asarray(arr, dtype=dtype)
        if a.ndim == 3 and a.shape == shape:
            return a.reshape(-1)
        if a.ndim == 1 and a.size == np.prod(shape):
            return a.copy()
        if a.ndim == 0:
            return np.full(int(np.prod(shape)), a.item(), dtype=dtype)
        raise ValueError(f"array of shape {a.shape} does not fit grid shape {shape}")

    @staticmethod
    def from_inputs(g: dict, rock: dict | None = None) -> "Grid":
        try:
            nx, ny, nz = int(g["nx"]), int(g["ny"]), int(g["nz"])
        except KeyError as e:
            raise ValueError(f"grid inputs missing dimension {e}") from None
        if min(nx, ny, nz) <= 0:
            raise ValueError(f"grid dimensions must be positive, got ({nx}, {ny}, {nz})")
        dx, dy, dz = float(g.get("dx", 100.0)), float(g.get("dy", 100.0)), float(g.get("dz", 10.0))
        shape = (nz, ny, nx)
        num = nx * ny * nz

        rock = rock or {}
        kx = Grid._flatten_or_fill(rock.get("kx_md"), shape, 0.1)
        ky = Grid._flatten_or_fill(rock.get("ky_md"), shape, 0.1)
        # If kz not provided, use a vertical multiplier (0.1 × kx)
        kz_raw = rock.get("kz_md")
        kz = Grid._flatten_or_fill(kz_raw, shape, 0.1) if kz_raw is not None else 0.1 * kx
        actnum = Grid._flatten_or_fill(g.get("actnum"), shape, 1, dtype=int) != 0

        return Grid(
            nx=nx, ny=ny, nz=nz,
            dx=dx, dy=dy, dz=dz,
            num_cells=num,
            kx=np.maximum(kx, _EPS),
            ky=np.maximum(ky, _EPS),
            kz=np.maximum(kz, _EPS),
            actnum=actnum,
        )

    def get_idx(self, i: int, j: int, k: int) -> int:
        if 0 <= i < self.nx and 0 <= j < self.ny and 0 <= k < self.nz:
            return k * (self.nx * self.ny) + j * self.nx + i
        return -1

    def global_index(self, i: int, j: int, k: int) -> int:
        idx = self.get_idx(i, j, k)
        if idx < 0:
            raise IndexError(f"cell ({i}, {j}, {k}) outside grid ({self.nx}, {self.ny}, {self.nz})")
        return idx

    def ijk(self, g: int) -> tuple[int, int, int]:
        k = g // (self.nx * self.ny); j = (g - k * self.nx * self.ny) // self.nx; i = g % self.nx
        return i, j, k

    def cell_active(self, i: int, j: int, k: int) -> bool:
        return bool(self.actnum[self.global_index(i, j, k)])

    @property
    def num_active(self) -> int:
        return int(np.count_nonzero(self.actnum))
