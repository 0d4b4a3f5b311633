# tests/test_smoke.py
from core.nnc import NNCdata
from core.pipeline import process_deck

DECK = """
RUNSPEC
DIMENS
3 3 1 /
GRID
NNC
1 1 1 3 3 1 5.0 /
/
EDIT
EDITNNC
1 1 1 3 3 1 2.0 /
/
EDITNNCR
1 1 1 2 1 1 9.0 /
/
"""


def test_process_deck_runs_end_to_end():
    """
    Exercise the deck -> grid -> NNC -> transmissibility path on a tiny case.
    """
    out = process_deck({"deck_text": DECK})
    # basic sanity checks
    assert out["nnc"].input == [NNCdata(0, 8, 10.0)]
    assert out["nnc"].editr == []
    assert out["trans"].shape == (9, 9)
    assert (0, 8, 10.0) in out["connections"]
    assert out["runtime_s"] >= 0.0


def test_process_deck_from_path_without_assembly(tmp_path):
    path = tmp_path / "CASE.DATA"
    path.write_text(DECK)
    out = process_deck({
        "deck_path": str(path),
        "grid": {"nx": 3, "ny": 3, "nz": 1, "actnum": [1] * 8 + [0]},
        "options": {"assemble": False},
    })
    assert out["nnc"].input == []
    assert out["trans"] is None
    assert out["nnc"].input_location().filename == str(path)
