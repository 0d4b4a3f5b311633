# core/assembler.py
from __future__ import annotations
import logging
import numpy as np
from scipy.sparse import lil_matrix, csr_matrix
from dataclasses import dataclass, field

from core.grid import Grid
from core.nnc import NNC

logger = logging.getLogger(__name__)

CONV = 0.001127  # md*ft -> field transmissibility units


def harm(a, b): return 2.0 * a * b / (a + b + 1e-30)


@dataclass
class TransAssembler:
    """Cell-to-cell transmissibilities with the NNC table applied on top.

    Order of application:
      1. Cartesian 6-connectivity TPFA between active cells
      2. NNC entries added (duplicate pairs sum up)
      3. EDITNNC overlay multiplies an existing connection
      4. EDITNNCR overlay sets the final value, creating the connection if needed
    """
    grid: Grid
    nnc: NNC | None = None
    opts: dict | None = None

    trans: dict[tuple[int, int], float] = field(default_factory=dict)
    unmatched_edits: list[tuple[int, int]] = field(default_factory=list)

    def __post_init__(self):
        self._build_neighbors()
        if self.nnc is not None:
            self._apply_nnc(self.nnc)

    def _build_neighbors(self):
        g = self.grid
        conv = float((self.opts or {}).get("trans_conv", CONV))
        kx = g.kx.reshape(g.nz, g.ny, g.nx)
        ky = g.ky.reshape(g.nz, g.ny, g.nx)
        kz = g.kz.reshape(g.nz, g.ny, g.nx)

        faces = (
            # (offset, perm, area, dist)
            ((1, 0, 0), kx, g.dy * g.dz, g.dx),
            ((0, 1, 0), ky, g.dx * g.dz, g.dy),
            ((0, 0, 1), kz, g.dx * g.dy, g.dz),
        )
        for (di, dj, dk), perm, area, dist in faces:
            for k in range(g.nz - dk):
                for j in range(g.ny - dj):
                    for i in range(g.nx - di):
                        c = g.get_idx(i, j, k)
                        n = g.get_idx(i + di, j + dj, k + dk)
                        if not (g.actnum[c] and g.actnum[n]):
                            continue
                        k_face = harm(perm[k, j, i], perm[k + dk, j + dj, i + di])
                        self.trans[(c, n)] = conv * k_face * area / dist

    def _apply_nnc(self, nnc: NNC):
        for d in nnc.input:
            self.trans[d.key] = self.trans.get(d.key, 0.0) + d.trans

        for d in nnc.edit:
            if d.key in self.trans:
                self.trans[d.key] *= d.trans
            else:
                self.unmatched_edits.append(d.key)

        for d in nnc.editr:
            self.trans[d.key] = d.trans

        if self.unmatched_edits:
            logger.warning("EDITNNC multipliers with no connection to act on: %s", self.unmatched_edits)

    def connections(self) -> list[tuple[int, int, float]]:
        return [(c, n, T) for (c, n), T in sorted(self.trans.items())]

    def matrix(self) -> csr_matrix:
        """Symmetric num_cells x num_cells matrix of connection transmissibilities."""
        n = self.grid.num_cells
        A = lil_matrix((n, n))
        for (c, nbh), T in self.trans.items():
            A[c, nbh] = T
            A[nbh, c] = T
        return A.tocsr()

    def total_trans(self) -> np.ndarray:
        """Per-cell sum of connection transmissibilities (matrix row sums)."""
        return np.asarray(self.matrix().sum(axis=1)).ravel()
