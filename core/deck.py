# core/deck.py
"""
Minimal ECLIPSE-style deck reader.

Only what the NNC handling needs is interpreted:
  - DIMENS / ACTNUM, so a Grid can be built straight from the deck
  - NNC, EDITNNC and EDITNNCR, turned into ConnectionRecord rows
Every other keyword is kept as raw (repeat-expanded) items.

Syntax handled: `--` comments, quoted strings, `/`-terminated records,
a lone `/` closing multi-record keywords, and `N*` / `N*value` repeats.
Inside a single-record keyword with no record yet, an uppercase word is
read as data unless it is one of KNOWN_KEYWORDS.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

CONNECTION_KEYWORDS = ("NNC", "EDITNNC", "EDITNNCR")

# Keywords that carry no data at all
SECTION_KEYWORDS = frozenset({
    "RUNSPEC", "GRID", "EDIT", "PROPS", "REGIONS", "SOLUTION", "SUMMARY", "SCHEDULE",
    "METRIC", "FIELD", "LAB", "OIL", "WATER", "GAS", "DISGAS", "VAPOIL", "NOECHO", "ECHO", "END",
})

# Keywords made of many records closed by an empty record
MULTI_RECORD_KEYWORDS = frozenset(CONNECTION_KEYWORDS)

KNOWN_KEYWORDS = SECTION_KEYWORDS | MULTI_RECORD_KEYWORDS | {"DIMENS", "ACTNUM"}

# Value used when the 7th item of a connection record is defaulted (None = required)
_VALUE_DEFAULTS: Dict[str, Optional[float]] = {"NNC": None, "EDITNNC": 1.0, "EDITNNCR": None}

_KEYWORD_RE = re.compile(r"^[A-Z][A-Z0-9_+-]{0,7}$")
_TOKEN_RE = re.compile(r"'[^']*'|/|[^\s/']+")


class DeckError(ValueError):
    """Malformed deck text; carries the location of the offending keyword."""

    def __init__(self, message: str, location: "KeywordLocation | None" = None):
        self.location = location
        if location is not None:
            message = f"{message} ({location.keyword} at {location.filename}:{location.lineno})"
        super().__init__(message)


@dataclass(frozen=True)
class KeywordLocation:
    keyword: str = ""
    filename: str = ""
    lineno: int = 0


@dataclass(frozen=True)
class ConnectionRecord:
    """One NNC / EDITNNC / EDITNNCR row: two 1-based (i, j, k) triples and a value."""
    i1: int
    j1: int
    k1: int
    i2: int
    j2: int
    k2: int
    value: float

    @property
    def cell1(self) -> tuple[int, int, int]:
        return self.i1, self.j1, self.k1

    @property
    def cell2(self) -> tuple[int, int, int]:
        return self.i2, self.j2, self.k2


@dataclass
class DeckKeyword:
    name: str
    location: KeywordLocation
    records: List[Any] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class Deck:
    keywords: List[DeckKeyword] = field(default_factory=list)

    def get_keyword_list(self, name: str) -> List[DeckKeyword]:
        """All occurrences of `name`, in declaration order."""
        return [kw for kw in self.keywords if kw.name == name]

    def has_keyword(self, name: str) -> bool:
        return any(kw.name == name for kw in self.keywords)

    def grid_inputs(self) -> dict:
        """Grid dict (nx, ny, nz and optional actnum) for Grid.from_inputs()."""
        dimens = self.get_keyword_list("DIMENS")
        if not dimens or not dimens[0].records:
            raise DeckError("deck has no DIMENS keyword")
        kw = dimens[0]
        items = kw.records[0]
        try:
            nx, ny, nz = (int(x) for x in items[:3])
        except (TypeError, ValueError):
            raise DeckError(f"DIMENS needs three integers, got {items[:3]}", kw.location) from None

        g: Dict[str, Any] = {"nx": nx, "ny": ny, "nz": nz}
        actnum = self.get_keyword_list("ACTNUM")
        if actnum:
            kw = actnum[-1]
            values = [_to_int(x, kw.location) for x in kw.records[0]] if kw.records else []
            if len(values) != nx * ny * nz:
                raise DeckError(f"ACTNUM has {len(values)} values, expected {nx * ny * nz}", kw.location)
            g["actnum"] = values
        return g


# ------------------------------- tokenizing ---------------------------------

def _strip_comment(line: str) -> str:
    in_quote = False
    for pos, ch in enumerate(line):
        if ch == "'":
            in_quote = not in_quote
        elif not in_quote and line.startswith("--", pos):
            return line[:pos]
    return line


def _expand_repeat(token: str) -> List[Optional[str]]:
    """`3*` -> three defaults, `3*0.5` -> three copies, anything else -> itself."""
    if "*" in token and not token.startswith("'"):
        count, _, value = token.partition("*")
        if count.isdigit():
            return [value if value else None] * int(count)
    if token.startswith("'") and token.endswith("'"):
        return [token[1:-1]]
    return [token]


def _to_int(item: Optional[str], location: KeywordLocation) -> int:
    try:
        return int(item)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise DeckError(f"expected integer item, got {item!r}", location) from None


def _to_float(item: Optional[str], location: KeywordLocation) -> float:
    try:
        # Fortran-style exponents (1.0D-3) show up in older decks
        return float(item.replace("D", "E").replace("d", "e"))  # type: ignore[union-attr]
    except (AttributeError, ValueError):
        raise DeckError(f"expected numeric item, got {item!r}", location) from None


def _connection_record(name: str, items: List[Optional[str]], location: KeywordLocation) -> ConnectionRecord:
    if len(items) < 6 or any(x is None for x in items[:6]):
        raise DeckError(f"{name} record needs two (i, j, k) triples, got {items[:6]}", location)
    coords = [_to_int(x, location) for x in items[:6]]

    raw = items[6] if len(items) > 6 else None
    if raw is None:
        default = _VALUE_DEFAULTS[name]
        if default is None:
            raise DeckError(f"{name} record has no value item", location)
        value = default
    else:
        value = _to_float(raw, location)
    return ConnectionRecord(*coords, value=value)


# -------------------------------- parsing -----------------------------------

class _KeywordBuilder:
    def __init__(self, name: str, location: KeywordLocation):
        self.name = name
        self.location = location
        self.records: List[Any] = []
        self.pending: List[Optional[str]] = []
        self.closed = name in SECTION_KEYWORDS

    def add_token(self, token: str) -> None:
        if token != "/":
            self.pending.extend(_expand_repeat(token))
            return
        if not self.pending and self.name in MULTI_RECORD_KEYWORDS:
            self.closed = True
            return
        self._push_record()
        if self.name not in MULTI_RECORD_KEYWORDS:
            self.closed = True

    def _push_record(self) -> None:
        items, self.pending = self.pending, []
        if self.name in CONNECTION_KEYWORDS:
            self.records.append(_connection_record(self.name, items, self.location))
        else:
            self.records.append(items)

    def finish(self) -> DeckKeyword:
        if self.pending:
            raise DeckError("record is not terminated by '/'", self.location)
        return DeckKeyword(self.name, self.location, self.records)


def _starts_keyword(head: str, current: Optional[_KeywordBuilder]) -> bool:
    # Known names always open a keyword between records. Any other uppercase
    # word does so only after a closed or multi-record keyword; inside an
    # open single-record keyword it is an item (e.g. `YES /`).
    if _KEYWORD_RE.match(head) is None:
        return False
    if current is None or current.closed:
        return True
    if current.pending:
        return False
    return head in KNOWN_KEYWORDS or current.name in MULTI_RECORD_KEYWORDS


def parse_deck(text: str, filename: str = "<string>") -> Deck:
    """Parse deck text into keyword occurrences (declaration order preserved)."""
    deck = Deck()
    current: Optional[_KeywordBuilder] = None

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        tokens = _TOKEN_RE.findall(_strip_comment(raw_line))
        if not tokens:
            continue

        if _starts_keyword(tokens[0], current):
            head = tokens[0]
            if current is not None:
                deck.keywords.append(current.finish())
            current = _KeywordBuilder(head, KeywordLocation(head, filename, lineno))
            tokens = tokens[1:]

        for token in tokens:
            if current is None or current.closed:
                where = KeywordLocation(current.name if current else "", filename, lineno)
                raise DeckError(f"data {token!r} outside of any keyword", where)
            current.add_token(token)
            if token == "/":
                break  # rest of the line after '/' is free text

    if current is not None:
        deck.keywords.append(current.finish())

    logger.debug("parsed %d keywords from %s", len(deck.keywords), filename)
    return deck


def read_deck(path: str | Path) -> Deck:
    path = Path(path)
    return parse_deck(path.read_text(), filename=str(path))
