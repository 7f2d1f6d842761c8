"""
Seed Resolver

Rewrites seed tokens ("A1", "C4") into display names using each group's
ranked entrant list. Standings order wins when standings exist; otherwise
the original seed order is used. A token that cannot be resolved is kept
verbatim so an incomplete bracket stays visible.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

from tourney.services.entrant_resolver import player_text
from tourney.services.group_allocator import Group
from tourney.services.match_entry import TYPE_GROUP, MatchEntry

SEED_TOKEN = re.compile(r"^([A-H])(\d+)$", re.IGNORECASE)

RankedLists = Dict[str, List[str]]


def ranked_players(group: Group, directory: Optional[Mapping[str, str]] = None) -> List[str]:
    if group.standings:
        return [player_text(s.player, directory) for s in group.standings]
    return [player_text(p, directory) for p in group.players]


def ranked_lists(groups: Sequence[Group], directory: Optional[Mapping[str, str]] = None) -> RankedLists:
    """Ranked display names per group letter; the first group seen for a letter wins."""
    lists: RankedLists = {}
    for group in groups:
        if group.letter not in lists:
            lists[group.letter] = ranked_players(group, directory)
    return lists


def pick_seed(ranked: Mapping[str, Sequence[str]], letter: str, number: int) -> str:
    """Name at 1-based `number` in the letter's ranked list, else the token itself."""
    names = ranked.get(letter.upper()) or []
    if 1 <= number <= len(names) and names[number - 1]:
        return names[number - 1]
    return f"{letter.upper()}{number}"


def resolve_token(token: str, ranked: Mapping[str, Sequence[str]]) -> str:
    """
    Resolve a seed token such as "A1".

    Non-seed tokens and out-of-range seeds come back unchanged.
    """
    return _lookup(ranked, str(token or "").strip()) or token


def _lookup(ranked: Mapping[str, Sequence[str]], seed: str) -> str:
    m = SEED_TOKEN.match(seed)
    if not m:
        return ""
    names = ranked.get(m.group(1).upper()) or []
    index = int(m.group(2)) - 1
    if 0 <= index < len(names):
        return names[index]
    return ""


def resolve_group_entries(
    entries: Sequence[MatchEntry], ranked: Mapping[str, Sequence[str]], category_id: Any = None
) -> List[MatchEntry]:
    """
    Re-resolve round-robin player text against the ranked lists.

    Each side becomes the ranked name, else its current text, else the seed
    token. Elimination entries and other categories pass through unchanged.
    """
    resolved: List[MatchEntry] = []
    for entry in entries:
        if entry.type != TYPE_GROUP or (category_id is not None and entry.category_id != str(category_id)):
            resolved.append(entry)
            continue
        sides = entry.sides if entry.players_vs else []
        current1 = sides[0] if len(sides) > 0 else ""
        current2 = sides[1] if len(sides) > 1 else ""
        p1 = _lookup(ranked, entry.seed1) or current1 or entry.seed1
        p2 = _lookup(ranked, entry.seed2) or current2 or entry.seed2
        resolved.append(replace(entry, players_vs=f"{p1} vs {p2}"))
    return resolved
