# core/nnc.py
"""
Canonical non-neighbor connection (NNC) table built from a deck.

Three keyword families feed it, each with its own conflict policy:

  NNC       base transmissibilities, kept as declared (duplicates allowed)
  EDITNNC   multipliers: scale matching NNCs in place, otherwise accumulate
            into the `edit` overlay (one product per cell pair)
  EDITNNCR  absolute values: last declaration for a cell pair wins, kept in
            the `editr` overlay, and any pending `edit` multiplier for the
            same pair is dropped

All three lists are sorted by (cell1, cell2) with cell1 < cell2. Records with
unresolvable geometry (out of bounds, inactive cell) are skipped silently, as
are EDITNNC/EDITNNCR rows between grid neighbours and EDITNNC multipliers of 1.
The NNC keyword itself is not checked for neighbour pairs.
"""
from __future__ import annotations

import bisect
import logging
from collections import deque
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.deck import ConnectionRecord, Deck, KeywordLocation
from core.grid import Grid

logger = logging.getLogger(__name__)


@dataclass(order=True)
class NNCdata:
    cell1: int
    cell2: int
    trans: float

    @property
    def key(self) -> Tuple[int, int]:
        return self.cell1, self.cell2


def _enforce_grid_iface(grid: object) -> None:
    required = ("nx", "ny", "nz", "cell_active", "global_index")
    missing = [name for name in required if not hasattr(grid, name)]
    if missing:
        raise TypeError(f"grid must provide extents and cell addressing; got {type(grid).__name__} missing {missing}.")


# --------------------------- index resolution --------------------------------

def global_index(grid: Grid, i: int, j: int, k: int) -> Optional[int]:
    """0-based global index for 1-based (i, j, k), or None if outside/inactive."""
    i, j, k = i - 1, j - 1, k - 1
    if not (0 <= i < grid.nx):
        return None
    if not (0 <= j < grid.ny):
        return None
    if not (0 <= k < grid.nz):
        return None
    if not grid.cell_active(i, j, k):
        return None
    return grid.global_index(i, j, k)


def make_index_pair(grid: Grid, record: ConnectionRecord) -> Optional[Tuple[int, int]]:
    g1 = global_index(grid, *record.cell1)
    if g1 is None:
        return None
    g2 = global_index(grid, *record.cell2)
    if g2 is None:
        return None
    return (g1, g2) if g1 < g2 else (g2, g1)


def is_neighbor(grid: Grid, g1: int, g2: int) -> bool:
    # Offsets 0, 1, nx, ny; vertical neighbours (nx*ny) are not filtered.
    return abs(g2 - g1) in (0, 1, grid.nx, grid.ny)


# ------------------------------- the table -----------------------------------

@dataclass
class NNC:
    input: List[NNCdata] = field(default_factory=list)
    edit: List[NNCdata] = field(default_factory=list)
    editr: List[NNCdata] = field(default_factory=list)
    input_loc: Optional[KeywordLocation] = None
    edit_loc: Optional[KeywordLocation] = None
    editr_loc: Optional[KeywordLocation] = None

    @staticmethod
    def from_deck(grid: Grid, deck: Deck) -> "NNC":
        _enforce_grid_iface(grid)
        nnc = NNC()
        nnc.load_input(grid, deck)
        nnc.load_edit(grid, deck)
        nnc.load_editr(grid, deck)
        return nnc

    # --- loaders

    def load_input(self, grid: Grid, deck: Deck) -> None:
        skipped = 0
        for keyword in deck.get_keyword_list("NNC"):
            for record in keyword:
                pair = make_index_pair(grid, record)
                if pair is None:
                    skipped += 1
                    continue
                self.input.append(NNCdata(pair[0], pair[1], record.value))

            if self.input_loc is None:
                self.input_loc = keyword.location

        self.input.sort()
        logger.debug("NNC: %d connections, %d records skipped", len(self.input), skipped)

    def load_edit(self, grid: Grid, deck: Deck) -> None:
        nnc_edit: List[NNCdata] = []
        for keyword in deck.get_keyword_list("EDITNNC"):
            for record in keyword:
                if record.value == 1.0:
                    continue
                pair = make_index_pair(grid, record)
                if pair is None or is_neighbor(grid, *pair):
                    continue
                nnc_edit.append(NNCdata(pair[0], pair[1], record.value))

            if self.edit_loc is None:
                self.edit_loc = keyword.location

        nnc_edit.sort()

        # One forward pass over both sorted lists; re-seek with a binary
        # search only when the edit moves on to a different cell pair.
        applied = 0
        pos = 0
        n_input = len(self.input)
        for current in nnc_edit:
            if pos >= n_input or self.input[pos].key != current.key:
                pos = bisect.bisect_left(self.input, current.key, key=attrgetter("key"))

            matched = False
            while pos < n_input and self.input[pos].key == current.key:
                self.input[pos].trans *= current.trans
                pos += 1
                matched = True

            if matched:
                applied += 1
            else:
                self._add_edit(current)

        logger.debug("EDITNNC: %d applied to NNC, %d pairs in overlay", applied, len(self.edit))

    def load_editr(self, grid: Grid, deck: Deck) -> None:
        # Front-pushed so that, after a stable sort on the cell pair, the last
        # declared value of each pair comes first in its group.
        nnc_editr: deque[NNCdata] = deque()
        for keyword in deck.get_keyword_list("EDITNNCR"):
            if not keyword.records:
                continue
            for record in keyword:
                pair = make_index_pair(grid, record)
                if pair is None or is_neighbor(grid, *pair):
                    continue
                nnc_editr.appendleft(NNCdata(pair[0], pair[1], record.value))

            if self.editr_loc is None:
                self.editr_loc = keyword.location

        if not nnc_editr:
            return

        ordered = sorted(nnc_editr, key=attrgetter("key"))
        unique: List[NNCdata] = []
        for nnc in ordered:
            if unique and unique[-1].key == nnc.key:
                continue
            unique.append(nnc)

        # EDITNNCR overwrites the transmissibility anyway, so pending EDITNNC
        # multipliers for the same pair are dropped. NNCs stay untouched as
        # they are still needed for grid construction.
        replaced = {nnc.key for nnc in unique}
        self.edit = [nnc for nnc in self.edit if nnc.key not in replaced]
        self.editr = unique
        logger.debug("EDITNNCR: %d pairs after last-wins merge", len(self.editr))

    def _add_edit(self, edit_node: NNCdata) -> None:
        if self.edit and self.edit[-1].key == edit_node.key:
            self.edit[-1].trans *= edit_node.trans
            return
        self.edit.append(NNCdata(edit_node.cell1, edit_node.cell2, edit_node.trans))

    # --- queries / mutation

    def add_nnc(self, cell1: int, cell2: int, trans: float) -> bool:
        if cell1 > cell2:
            return self.add_nnc(cell2, cell1, trans)
        bisect.insort_left(self.input, NNCdata(cell1, cell2, trans))
        return True

    # In principle each entry could be traced back to its own keyword; for
    # now the first keyword of each category answers for all of them.
    def input_location(self, nnc: NNCdata | None = None) -> KeywordLocation:
        return self.input_loc if self.input_loc is not None else KeywordLocation()

    def edit_location(self, nnc: NNCdata | None = None) -> KeywordLocation:
        return self.edit_loc if self.edit_loc is not None else KeywordLocation()

    def editr_location(self, nnc: NNCdata | None = None) -> KeywordLocation:
        return self.editr_loc if self.editr_loc is not None else KeywordLocation()

    def num_nnc(self) -> int:
        return len(self.input)

    # --- serialization accessories

    @staticmethod
    def serialization_test_object() -> "NNC":
        return NNC(
            input=[NNCdata(1, 2, 1.0), NNCdata(2, 3, 2.0)],
            edit=[NNCdata(1, 2, 1.0), NNCdata(2, 3, 2.0)],
            editr=[NNCdata(1, 2, 1.0), NNCdata(2, 3, 2.0)],
            input_loc=KeywordLocation("NNC?", "File", 123),
            edit_loc=KeywordLocation("EDITNNC?", "File", 123),
            editr_loc=KeywordLocation("EDITNNCR?", "File", 123),
        )

    def to_dict(self) -> Dict[str, Any]:
        def rows(entries: Iterable[NNCdata]) -> List[list]:
            return [[e.cell1, e.cell2, e.trans] for e in entries]

        def loc(location: Optional[KeywordLocation]) -> Optional[list]:
            if location is None:
                return None
            return [location.keyword, location.filename, location.lineno]

        return {
            "input": rows(self.input),
            "edit": rows(self.edit),
            "editr": rows(self.editr),
            "input_loc": loc(self.input_loc),
            "edit_loc": loc(self.edit_loc),
            "editr_loc": loc(self.editr_loc),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "NNC":
        def rows(key: str) -> List[NNCdata]:
            return [NNCdata(int(c1), int(c2), float(t)) for c1, c2, t in d.get(key, [])]

        def loc(key: str) -> Optional[KeywordLocation]:
            raw = d.get(key)
            return None if raw is None else KeywordLocation(str(raw[0]), str(raw[1]), int(raw[2]))

        return NNC(
            input=rows("input"), edit=rows("edit"), editr=rows("editr"),
            input_loc=loc("input_loc"),
            edit_loc=loc("edit_loc"),
            editr_loc=loc("editr_loc"),
        )
