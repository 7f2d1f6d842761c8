"""
Round-Robin Enumerator

Enumerates every unordered pair in a group, annotates each pair with its
persisted schedule overlay, and numbers the matches for display.

Numbering:
- Pairs are sorted by (date, time); ties keep pair-enumeration order.
- Pairs sharing one (date, time) form a slot group. Slot groups get a base
  ordinal in first-encounter order; members get a suffix ordinal.
- A slot group with one match shows "GA3"; with several, every member
  shows a suffix, including the first: "GA1.1", "GA1.2".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from tourney.services.entrant_resolver import TBD, is_placeholder_name, player_text
from tourney.services.group_allocator import Group
from tourney.services.match_entry import STAGE_ROUND_ROBIN, TYPE_GROUP, MatchEntry
from tourney.utils.time_slots import date_value, time_value


@dataclass
class NumberedPair:
    key: str
    i: int
    j: int
    date_value: int
    time_value: int
    base_ordinal: int = 0
    suffix_ordinal: int = 0
    slot_size: int = 1

    @property
    def slot_key(self) -> Tuple[int, int]:
        return (self.date_value, self.time_value)

    def match_number(self) -> str:
        if self.slot_size > 1:
            return f"G{self.base_ordinal}.{self.suffix_ordinal}"
        return f"G{self.base_ordinal}"

    def display_number(self, letter: str) -> str:
        if self.slot_size > 1:
            return f"G{letter}{self.base_ordinal}.{self.suffix_ordinal}"
        return f"G{letter}{self.base_ordinal}"


def pair_key(i: int, j: int) -> str:
    """Deterministic key for the unordered pair (i, j), i < j: "{i}-{j-i-1}"."""
    return f"{i}-{j - i - 1}"


def parse_pair_key(key: str) -> Optional[Tuple[int, int]]:
    parts = str(key).split("-")
    try:
        i = int(parts[0])
    except ValueError:
        return None
    try:
        offset = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        offset = 0
    return i, i + 1 + offset


def enumerate_pairs(n: int) -> List[Tuple[int, int, str]]:
    """All (i, j, key) with 0 <= i < j < n, in enumeration order."""
    return [(i, j, pair_key(i, j)) for i in range(n) for j in range(i + 1, n)]


def playable_players(players: Sequence[Any], directory: Optional[Mapping[str, str]] = None) -> List[str]:
    """Display names with placeholder entrants removed."""
    names = [player_text(p, directory) for p in players]
    return [name for name in names if not is_placeholder_name(name)]


def number_pairs(
    pairs: Sequence[Tuple[int, int, str]],
    overlay: Mapping[str, Mapping[str, Any]],
    default_date: str = "",
) -> List[NumberedPair]:
    """
    Sort pairs by their overlay (date, time) and assign slot-group ordinals.

    Unscheduled pairs default to `default_date` (the category's first
    tournament date) and time 0.
    """
    annotated: List[NumberedPair] = []
    for i, j, key in pairs:
        md = overlay.get(key) or {}
        annotated.append(
            NumberedPair(
                key=key,
                i=i,
                j=j,
                date_value=date_value(md.get("date") or default_date),
                time_value=time_value(md.get("time")),
            )
        )
    annotated.sort(key=lambda p: p.slot_key)

    slot_ordinals: Dict[Tuple[int, int], int] = {}
    slot_counts: Dict[Tuple[int, int], int] = {}
    for pair in annotated:
        if pair.slot_key not in slot_ordinals:
            slot_ordinals[pair.slot_key] = len(slot_ordinals) + 1
        slot_counts[pair.slot_key] = slot_counts.get(pair.slot_key, 0) + 1
        pair.base_ordinal = slot_ordinals[pair.slot_key]
        pair.suffix_ordinal = slot_counts[pair.slot_key]

    for pair in annotated:
        pair.slot_size = slot_counts[pair.slot_key]
    return annotated


def group_match_id(category_id: Any, group_id: str, key: str) -> str:
    return f"rr-{category_id}-{group_id}-{key}"


def enumerate_group_matches(
    group: Group,
    category_id: Any,
    category_label: str,
    default_date: str = "",
    directory: Optional[Mapping[str, str]] = None,
) -> List[MatchEntry]:
    """
    Display-ready round-robin matches for one group, in schedule order.

    When the group has no playable entrants the enumeration falls back to
    the keys of its persisted overlay so previously scheduled matches stay
    visible.
    """
    players = playable_players(group.players or [s.player for s in group.standings], directory)
    overlay = group.matches or {}

    if players:
        pairs = enumerate_pairs(len(players))
    else:
        pairs = []
        for key in overlay:
            parsed = parse_pair_key(key)
            if parsed is not None:
                pairs.append((parsed[0], parsed[1], str(key)))

    entries: List[MatchEntry] = []
    for pair in number_pairs(pairs, overlay, default_date):
        md = overlay.get(pair.key) or {}
        p1 = player_text(_side(players, pair.i) or md.get("player1Name") or md.get("player1") or TBD, directory)
        p2 = player_text(_side(players, pair.j) or md.get("player2Name") or md.get("player2") or TBD, directory)
        entries.append(
            MatchEntry(
                id=group_match_id(category_id, group.id, pair.key),
                type=TYPE_GROUP,
                category=category_label,
                category_id=str(category_id or ""),
                match_number=pair.match_number(),
                display_number=pair.display_number(group.letter),
                seed1=group.seed_label(pair.i),
                seed2=group.seed_label(pair.j),
                players_vs=f"{p1} vs {p2}",
                stage=STAGE_ROUND_ROBIN,
                bracket=group.letter,
                match_key=pair.key,
            )
        )
    return entries


def _side(players: Sequence[str], index: int) -> str:
    if 0 <= index < len(players):
        return players[index]
    return ""
