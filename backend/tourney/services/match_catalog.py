"""
Match Catalog

Assembles a category's full bracket (groups, round-robin matches, knockout
matches) and the tournament-wide match list the schedule grid draws from.

Everything here is recomputed from stored state on each call; only the
per-group `matches` overlays and stored standings carry over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from tourney.services.elimination import (
    EliminationMatch,
    generate_elimination,
    normalize_stored_matches,
)
from tourney.services.entrant_resolver import (
    approved_for_category,
    build_name_directory,
    entrant_kind_for_division,
    registration_matches_category,
    resolve_entrants,
)
from tourney.services.group_allocator import Group, allocate_groups
from tourney.services.match_entry import MatchEntry
from tourney.services.round_robin import enumerate_group_matches
from tourney.services.seed_resolver import ranked_lists, resolve_group_entries
from tourney.utils.overlay import merge_overlays
from tourney.utils.time_slots import canonical_date

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_LABEL = "Tournament Category"
PRIVILEGED_ROLES = frozenset({"superadmin", "clubadmin"})


@dataclass
class CategoryConfig:
    id: Any
    division: str = ""
    skill_level: str = ""
    age_category: str = ""
    tier: Optional[Any] = None
    bracket_mode: Optional[Any] = None
    groups: List[Dict[str, Any]] = field(default_factory=list)
    elimination_matches: List[Dict[str, Any]] = field(default_factory=list)
    elimination_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Any) -> "CategoryConfig":
        """Build from a stored Category row."""
        group_stage = getattr(record, "group_stage", None) or {}
        return cls(
            id=record.id,
            division=record.division or "",
            skill_level=record.skill_level or "",
            age_category=record.age_category or "",
            tier=record.tier,
            bracket_mode=record.bracket_mode,
            groups=list(group_stage.get("groups") or []),
            elimination_matches=list(record.elimination_matches or []),
            elimination_results=dict(record.elimination_results or {}),
        )


@dataclass(frozen=True)
class RoleContext:
    """Roles of the caller, supplied by whoever invokes the engine."""

    roles: FrozenSet[str] = frozenset()

    @property
    def is_privileged(self) -> bool:
        return bool({r.lower() for r in self.roles} & PRIVILEGED_ROLES)


@dataclass
class CategoryBracket:
    config: CategoryConfig
    label: str
    kind: str
    groups: List[Group]
    group_matches: List[MatchEntry]
    elimination: List[EliminationMatch]

    @property
    def entries(self) -> List[MatchEntry]:
        elim_entries = [m.to_entry(self.config.id, self.label) for m in self.elimination]
        return self.group_matches + elim_entries

    @property
    def is_submittable(self) -> bool:
        """Some group has entrants and every knockout match names real entrants."""
        if not any(g.has_entrants for g in self.groups):
            return False
        return all(m.is_resolved for m in self.elimination)

    def can_submit_points(self, context: RoleContext) -> bool:
        return context.is_privileged and self.is_submittable


def category_label(
    division: Any = "", skill_level: Any = "", age_category: Any = "", tier: Any = None
) -> str:
    """'Division - Skill - Age', with 'Open Tier N' for tiered Open categories."""
    skill = str(skill_level or "").strip()
    if skill == "Open" and tier:
        skill = f"Open Tier {tier}"
    parts = [p for p in (str(division or "").strip(), skill, str(age_category or "").strip()) if p]
    return " - ".join(parts) if parts else DEFAULT_CATEGORY_LABEL


def first_tournament_date(tournament_dates: Sequence[Any]) -> str:
    return canonical_date(tournament_dates[0]) if tournament_dates else ""


def _groups_for(
    config: CategoryConfig,
    registrations: Sequence[Mapping[str, Any]],
    kind: str,
    directory: Mapping[str, str],
    local_edits: Optional[Mapping[str, Mapping[str, Mapping[str, Any]]]],
) -> List[Group]:
    # Stored entrants only stand in when the category has no registrations at all
    if not any(registration_matches_category(r, config.id, config.division) for r in registrations):
        stored = [Group.from_dict(g, kind, directory) for g in config.groups if isinstance(g, Mapping)]
        if any(g.has_entrants for g in stored):
            for group in stored:
                group.matches = merge_overlays(group.matches, (local_edits or {}).get(group.id))
            return stored

    return regenerate_groups(config, registrations, directory, local_edits)


def regenerate_groups(
    config: CategoryConfig,
    registrations: Sequence[Mapping[str, Any]],
    directory: Optional[Mapping[str, str]] = None,
    local_edits: Optional[Mapping[str, Mapping[str, Mapping[str, Any]]]] = None,
) -> List[Group]:
    """Allocate fresh groups from approved registrations, keeping stored overlays by group id."""
    if directory is None:
        directory = build_name_directory(registrations)
    kind = entrant_kind_for_division(config.division)
    approved = approved_for_category(registrations, config.id, config.division)
    entrants = resolve_entrants(approved, kind, directory)
    return allocate_groups(entrants, config.bracket_mode, config.groups, local_edits)


def build_category(
    config: CategoryConfig,
    registrations: Sequence[Mapping[str, Any]],
    tournament_dates: Sequence[Any] = (),
    local_edits: Optional[Mapping[str, Mapping[str, Mapping[str, Any]]]] = None,
    directory: Optional[Mapping[str, str]] = None,
) -> CategoryBracket:
    """
    Build one category's bracket.

    Groups are allocated from the category's approved registrations on every
    call, carrying stored overlays and standings by group id. Stored group
    members are used only when the category has no registrations. Stored
    knockout matches are normalized; otherwise they are generated from the
    bracket size.
    """
    if directory is None:
        directory = build_name_directory(registrations)
    kind = entrant_kind_for_division(config.division)
    label = category_label(config.division, config.skill_level, config.age_category, config.tier)

    groups = _groups_for(config, registrations, kind, directory, local_edits)
    first_date = first_tournament_date(tournament_dates)

    group_matches: List[MatchEntry] = []
    for group in groups:
        group_matches.extend(enumerate_group_matches(group, config.id, label, first_date, directory))

    ranked = ranked_lists(groups, directory)
    group_matches = resolve_group_entries(group_matches, ranked, config.id)

    if config.elimination_matches:
        elimination = normalize_stored_matches(config.elimination_matches, config.id, ranked, directory)
    elif groups:
        size = config.bracket_mode if config.bracket_mode else len(groups)
        elimination = generate_elimination(size, ranked, config.elimination_results)
    else:
        elimination = []

    logger.info(
        "Category %s: %d groups, %d group matches, %d elimination matches",
        config.id,
        len(groups),
        len(group_matches),
        len(elimination),
    )
    return CategoryBracket(
        config=config,
        label=label,
        kind=kind,
        groups=groups,
        group_matches=group_matches,
        elimination=elimination,
    )


def build_catalog(
    categories: Iterable[CategoryConfig],
    registrations: Sequence[Mapping[str, Any]],
    tournament_dates: Sequence[Any] = (),
) -> List[MatchEntry]:
    """Every match of every category, categories in the given order."""
    directory = build_name_directory(registrations)
    entries: List[MatchEntry] = []
    for config in categories:
        entries.extend(build_category(config, registrations, tournament_dates, directory=directory).entries)
    return entries


def index_by_id(entries: Iterable[MatchEntry]) -> Dict[str, MatchEntry]:
    return {e.id: e for e in entries if e.id}


def filter_options(entries: Iterable[MatchEntry]) -> Dict[str, List[str]]:
    """Category and stage choices for the match pool, each led by "All"."""
    entries = list(entries)
    categories = sorted({e.category for e in entries if e.category})
    stages = sorted({e.stage for e in entries if e.stage})
    return {"categories": ["All"] + categories, "stages": ["All"] + stages}
