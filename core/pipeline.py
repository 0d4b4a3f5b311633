# core/pipeline.py
from __future__ import annotations

import logging
import time

from core.assembler import CONV, TransAssembler
from core.deck import parse_deck, read_deck
from core.grid import Grid
from core.nnc import NNC

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS = {
    "assemble": True,       # build the transmissibility matrix after the NNC table
    "trans_conv": CONV,     # md*ft -> transmissibility units for Cartesian faces
}


def process_deck(inputs: dict) -> dict:
    """
    Deck -> grid -> canonical NNC table -> (optional) transmissibility matrix.

    inputs:
      deck_text | deck_path   deck source (text wins if both are given)
      grid                    optional grid dict for Grid.from_inputs();
                              defaults to the deck's DIMENS/ACTNUM
      rock                    optional rock dict (kx_md, ky_md, kz_md)
      options                 overrides for DEFAULT_OPTIONS
    """
    t_start = time.time()
    opts = {**DEFAULT_OPTIONS, **(inputs.get("options") or {})}

    if inputs.get("deck_text") is not None:
        deck = parse_deck(inputs["deck_text"])
    elif inputs.get("deck_path") is not None:
        deck = read_deck(inputs["deck_path"])
    else:
        raise ValueError("inputs need either 'deck_text' or 'deck_path'")

    grid_inputs = inputs.get("grid") or deck.grid_inputs()
    grid = Grid.from_inputs(grid_inputs, inputs.get("rock"))
    logger.info("[core/pipeline] grid %dx%dx%d, %d active cells",
                grid.nx, grid.ny, grid.nz, grid.num_active)

    nnc = NNC.from_deck(grid, deck)
    logger.info("[core/pipeline] NNC=%d EDITNNC overlay=%d EDITNNCR overlay=%d",
                len(nnc.input), len(nnc.edit), len(nnc.editr))

    trans = None
    connections = None
    if opts["assemble"]:
        asm = TransAssembler(grid=grid, nnc=nnc, opts=opts)
        trans = asm.matrix()
        connections = asm.connections()

    return dict(
        grid=grid,
        deck=deck,
        nnc=nnc,
        trans=trans,
        connections=connections,
        runtime_s=time.time() - t_start,
    )
