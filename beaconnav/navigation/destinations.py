"""
Destination lookup by spoken or typed name.

Matching runs a cascade of tiers on case- and diacritic-folded names; the
first tier with any match wins:

    1. exact match
    2. prefix match
    3. substring match
    4. substring match with all whitespace removed ("conf room a")

A single candidate in the winning tier is selected. Several candidates are
always offered back as ambiguous, ranked exact > prefix > closeness of name
length to the query length. The length gap is a cheap stand-in for edit
distance and only orders the offered names.
"""

import unicodedata
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from beaconnav.floorplan.store import FloorplanStore
from beaconnav.floorplan.types import Beacon

MAX_AMBIGUOUS = 3


@dataclass(frozen=True, eq=False)
class MatchSuccess:
    name: str
    beacon: Beacon


@dataclass(frozen=True, eq=False)
class MatchAmbiguous:
    candidates: Tuple[Beacon, ...]

    @property
    def names(self) -> List[str]:
        return [b.name for b in self.candidates]


@dataclass(frozen=True)
class MatchNotFound:
    query: str = ""


MatchResult = Union[MatchSuccess, MatchAmbiguous, MatchNotFound]


def normalize_name(text: str) -> str:
    """Fold case and diacritics, trim, and collapse inner whitespace."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.casefold().split())


def _match_tier(query: str, beacons: Sequence[Beacon]) -> List[Beacon]:
    names = [(normalize_name(b.name), b) for b in beacons]

    exact = [b for n, b in names if n == query]
    if exact:
        return exact
    prefix = [b for n, b in names if n.startswith(query)]
    if prefix:
        return prefix
    contains = [b for n, b in names if query in n]
    if contains:
        return contains
    compact = query.replace(" ", "")
    return [b for n, b in names if compact in n.replace(" ", "")]


def _rank_key(query: str, beacon: Beacon) -> Tuple[int, int]:
    name = normalize_name(beacon.name)
    if name == query:
        kind = 0
    elif name.startswith(query):
        kind = 1
    else:
        kind = 2
    return kind, abs(len(name) - len(query))


def resolve_destination(query: str, beacons: Sequence[Beacon]) -> MatchResult:
    """
    Resolve a free-text destination query against beacons.

    Args:
        query: User query, any case, may contain diacritics.
        beacons: Selectable destinations.

    Returns:
        MatchSuccess when the winning tier holds a single candidate,
        MatchAmbiguous with up to three ranked candidates when it holds
        several, MatchNotFound otherwise.

    Example:
        >>> resolve_destination("conference room", beacons)
        MatchAmbiguous(candidates=(<Conference Room A>, <Conference Room B>))
    """
    q = normalize_name(query)
    if not q:
        return MatchNotFound(query)

    candidates = _match_tier(q, beacons)
    if not candidates:
        return MatchNotFound(query)

    # sorted() is stable, so floorplan order breaks ties
    ranked = sorted(candidates, key=lambda b: _rank_key(q, b))
    if len(ranked) == 1:
        return MatchSuccess(ranked[0].name, ranked[0])
    return MatchAmbiguous(tuple(ranked[:MAX_AMBIGUOUS]))


def available_destinations(floorplan: FloorplanStore) -> List[Beacon]:
    """Accessible, non-obstacle beacons sorted by name."""
    return sorted(floorplan.accessible_beacons(), key=lambda b: b.name.casefold())
