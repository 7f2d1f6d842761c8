"""
Group Allocator - Balanced Group-Stage Partitioning

Partitions a category's approved entrants into lettered groups (A..H).
Sizes differ by at most one; the larger groups are always the earliest
letters. Entrants are dealt breadth-first (A, B, C, ... A, B, ...) in
registration order, so seed 1 of every group is filled before any seed 2.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from math import floor
from typing import Any, Dict, List, Mapping, Optional, Sequence

from tourney.services.entrant_resolver import KIND_SINGLES, Entrant, player_text
from tourney.utils.overlay import merge_overlays

logger = logging.getLogger(__name__)

VALID_BRACKET_SIZES = (1, 2, 4, 8)
DEFAULT_BRACKET_SIZE = 4
GROUP_LETTERS = ("A", "B", "C", "D", "E", "F", "G", "H")


@dataclass
class Standing:
    player: str
    wins: int = 0
    losses: int = 0
    points_for: int = 0
    points_against: int = 0
    qualified: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Standing":
        return cls(
            player=player_text(data.get("player") or data.get("name") or data.get("playerName")),
            wins=int(data.get("wins") or 0),
            losses=int(data.get("losses") or 0),
            points_for=int(data.get("pointsFor") or 0),
            points_against=int(data.get("pointsAgainst") or 0),
            qualified=bool(data.get("qualified") or False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player": self.player,
            "wins": self.wins,
            "losses": self.losses,
            "pointsFor": self.points_for,
            "pointsAgainst": self.points_against,
            "qualified": self.qualified,
        }


@dataclass
class Group:
    letter: str
    entrants: List[Entrant] = field(default_factory=list)
    standings: List[Standing] = field(default_factory=list)
    matches: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return group_id_for_letter(self.letter)

    @property
    def name(self) -> str:
        return f"Group {self.letter}"

    @property
    def players(self) -> List[str]:
        """Seed-ordered display names (index 0 = seed 1)."""
        return [e.display_name for e in self.entrants]

    def seed_label(self, index: int) -> str:
        return f"{self.letter}{index + 1}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "originalPlayers": self.players,
            "standings": [s.to_dict() for s in self.standings],
            "matches": merge_overlays(self.matches),
        }

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], kind: str = KIND_SINGLES, directory: Optional[Mapping[str, str]] = None
    ) -> "Group":
        """Rebuild a stored group; entrants come from its originalPlayers."""
        letter = bracket_letter(data)
        gid = group_id_for_letter(letter)
        names = [player_text(p, directory) for p in data.get("originalPlayers") or []]
        return cls(
            letter=letter,
            entrants=[Entrant(id=f"{gid}-{i}", display_name=n, kind=kind) for i, n in enumerate(names)],
            standings=[Standing.from_dict(s) for s in data.get("standings") or [] if isinstance(s, Mapping)],
            matches=merge_overlays(data.get("matches") or {}),
        )

    @property
    def has_entrants(self) -> bool:
        return bool(self.entrants or self.standings)


def group_id_for_letter(letter: str) -> str:
    return f"group-{letter.lower()}"


def bracket_letter(group: Mapping[str, Any]) -> str:
    """Letter of a stored group from its id ("group-b"), else its name ("Group B"); "A" if neither."""
    gid = str(group.get("id") or "")
    name = str(group.get("name") or "")
    m = re.search(r"group-([a-z])", gid, re.IGNORECASE) or re.search(r"([a-z])$", gid, re.IGNORECASE)
    if m:
        return m.group(1).upper()
    m = re.search(r"\b([A-H])\b", name, re.IGNORECASE)
    if m:
        return m.group(1).upper()
    return "A"


def normalize_bracket_size(value: Any, fallback_group_count: Optional[int] = None) -> int:
    """
    Restrict a bracket size to {1, 2, 4, 8}.

    An unset value falls back to the number of already-persisted groups,
    then to 4. Anything outside the valid set normalizes to 4.
    """
    raw = value
    if raw is None or raw == "":
        raw = fallback_group_count or DEFAULT_BRACKET_SIZE
    try:
        size = int(raw)
    except (TypeError, ValueError):
        size = None
    if size not in VALID_BRACKET_SIZES:
        logger.warning("Invalid bracket size %r; using default %d", value, DEFAULT_BRACKET_SIZE)
        return DEFAULT_BRACKET_SIZE
    return size


def group_letters(bracket_size: Any) -> List[str]:
    size = normalize_bracket_size(bracket_size)
    return list(GROUP_LETTERS[: max(size, 1)])


def compute_group_capacities(total: int, groups_count: int) -> List[int]:
    """
    Capacity for each group.

    - base_size = floor(total / groups_count)
    - first (total % groups_count) groups get base_size + 1
    """
    if groups_count <= 0:
        return []

    base_size = floor(total / groups_count)
    remainder = total % groups_count
    return [base_size + (1 if i < remainder else 0) for i in range(groups_count)]


def distribute_round_robin(items: Sequence[Any], capacities: Sequence[int]) -> List[List[Any]]:
    """
    Deal items across buckets breadth-first, skipping buckets that are full.

    Stops when items run out or every bucket has reached its capacity.
    """
    buckets: List[List[Any]] = [[] for _ in capacities]
    queue = list(items)
    while queue and any(len(bucket) < cap for bucket, cap in zip(buckets, capacities)):
        for index, cap in enumerate(capacities):
            if not queue:
                break
            if len(buckets[index]) < cap:
                buckets[index].append(queue.pop(0))
    return buckets


def allocate_groups(
    entrants: Sequence[Entrant],
    bracket_size: Any = None,
    persisted_groups: Optional[Sequence[Mapping[str, Any]]] = None,
    local_edits: Optional[Mapping[str, Mapping[str, Mapping[str, Any]]]] = None,
) -> List[Group]:
    """
    Build the category's groups from its approved entrants.

    Args:
        entrants: Approved entrants in registration order
        bracket_size: Requested group count (normalized to 1/2/4/8)
        persisted_groups: Stored group dicts; their `matches` overlays and
            the standings of players still in the group are carried onto
            the regenerated groups
        local_edits: Unsaved overlay edits keyed by group id, merged over
            the persisted overlay

    Returns:
        One Group per letter, entrants in seed order
    """
    persisted_by_id = {str(g.get("id")): g for g in (persisted_groups or []) if g.get("id")}
    size = normalize_bracket_size(bracket_size, len(persisted_by_id) or None)
    letters = list(GROUP_LETTERS[:size])

    capacities = compute_group_capacities(len(entrants), len(letters))
    buckets = distribute_round_robin(entrants, capacities)
    local_edits = local_edits or {}

    groups: List[Group] = []
    for letter, members in zip(letters, buckets):
        gid = group_id_for_letter(letter)
        stored = persisted_by_id.get(gid) or {}
        names = [e.display_name for e in members]
        # stored rows for players no longer in this group are dropped; newcomers start at zero
        stored_standings = [Standing.from_dict(s) for s in stored.get("standings") or [] if isinstance(s, Mapping)]
        standings = [s for s in stored_standings if s.player in names]
        ranked = {s.player for s in standings}
        standings.extend(Standing(player=n) for n in names if n not in ranked)
        groups.append(
            Group(
                letter=letter,
                entrants=list(members),
                standings=standings,
                matches=merge_overlays(stored.get("matches") or {}, local_edits.get(gid)),
            )
        )

    logger.info(
        "Allocated %d entrants into %d groups (sizes %s)",
        len(entrants),
        len(groups),
        [len(g.entrants) for g in groups],
    )
    return groups
