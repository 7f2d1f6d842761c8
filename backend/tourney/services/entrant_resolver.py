"""
Entrant Resolver

Derives a display identity for a raw registration record. Registrations are
plain dicts as stored by the registration flow (player/partner may be nested
person dicts or bare id strings).

Name derivation never raises: unresolvable entrants degrade to a fixed
placeholder so downstream logic can filter them by exact match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

UNKNOWN_PLAYER = "Unknown Player"
TEAM_PLACEHOLDER = "Team"
TBD = "TBD"

KIND_SINGLES = "singles"
KIND_DOUBLES = "doubles"
KIND_TEAM = "team"

_PLACEHOLDER_NAMES = frozenset({"", "tbd", "unknown", "unknown player", "undefined undefined"})
_OBJECT_ID = re.compile(r"^[a-f0-9]{24}$", re.IGNORECASE)


@dataclass(frozen=True)
class Entrant:
    id: str
    display_name: str
    kind: str


def entrant_kind_for_division(division: Optional[str]) -> str:
    """Category type from its division name: doubles, team, or singles."""
    name = str(division or "").lower()
    if "doubles" in name:
        return KIND_DOUBLES
    if "team" in name:
        return KIND_TEAM
    return KIND_SINGLES


def is_placeholder_name(name: Any) -> bool:
    return str(name or "").strip().lower() in _PLACEHOLDER_NAMES


def person_name(person: Any) -> str:
    """'first last' for a person dict, falling back to its `name` field."""
    if not isinstance(person, Mapping):
        return ""
    return _full_name(person) or str(person.get("name") or "").strip()


def _full_name(person: Mapping[str, Any]) -> str:
    return f"{person.get('firstName') or ''} {person.get('lastName') or ''}".strip()


def _person_id(person: Any) -> str:
    if isinstance(person, Mapping):
        return str(person.get("_id") or person.get("id") or "")
    return ""


def build_name_directory(registrations: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Map person/member ids to display names from approved registrations.

    Lets registrations that reference a player by bare id (instead of an
    embedded person) still resolve to a readable name.
    """
    directory: Dict[str, str] = {}
    for reg in registrations:
        if not is_approved(reg):
            continue
        player = reg.get("player") or reg.get("primaryPlayer")
        if _person_id(player):
            directory[_person_id(player)] = _full_name(player)
        elif isinstance(player, str) and _OBJECT_ID.match(player):
            name = str(reg.get("playerName") or "").strip()
            if name:
                directory[player] = name

        partner = reg.get("partner")
        if _person_id(partner):
            directory[_person_id(partner)] = _full_name(partner)
        elif isinstance(partner, str) and _OBJECT_ID.match(partner):
            name = str(reg.get("partnerName") or "").strip()
            if name:
                directory[partner] = name

        team_name = reg.get("teamName")
        if team_name and isinstance(reg.get("teamMembers"), list):
            for member in reg["teamMembers"]:
                member_id = member if isinstance(member, str) else _person_id(member)
                if member_id:
                    directory[str(member_id)] = team_name
    return directory


def is_approved(reg: Mapping[str, Any]) -> bool:
    return str(reg.get("status") or "").lower() == "approved"


def registration_matches_category(reg: Mapping[str, Any], category_id: Any, division: Any) -> bool:
    """A registration may point at its category by id, by division name, or embed it."""
    reg_cat_id = reg.get("categoryId")
    reg_cat = reg.get("category")
    if isinstance(reg_cat, Mapping):
        reg_cat_str = reg_cat.get("_id") or reg_cat.get("division")
    else:
        reg_cat_str = reg_cat
    if reg_cat_id and str(reg_cat_id) == str(category_id):
        return True
    if reg_cat_str:
        return str(reg_cat_str) == str(category_id) or (division is not None and str(reg_cat_str) == str(division))
    return False


def approved_for_category(
    registrations: Iterable[Mapping[str, Any]], category_id: Any, division: Any = None
) -> List[Mapping[str, Any]]:
    """Approved registrations for one category, in registration order."""
    return [
        reg
        for reg in registrations
        if is_approved(reg) and registration_matches_category(reg, category_id, division)
    ]


def resolve_display_name(
    reg: Mapping[str, Any], kind: str, directory: Optional[Mapping[str, str]] = None
) -> str:
    """Display name for a registration given its category's entrant kind."""
    directory = directory or {}

    if kind == KIND_DOUBLES:
        p1 = reg.get("player") or reg.get("primaryPlayer") or {}
        p2 = reg.get("partner") or {}
        pair = [n for n in (person_name(p1), person_name(p2)) if n]
        return " / ".join(pair) or UNKNOWN_PLAYER

    if kind == KIND_TEAM:
        if reg.get("teamName"):
            return str(reg["teamName"])
        members = reg.get("teamMembers") if isinstance(reg.get("teamMembers"), list) else []
        names = [n for n in (person_name(m) for m in members[:2]) if n]
        if names:
            return " / ".join(names)
        player = reg.get("player")
        if isinstance(player, Mapping) and player.get("teamName"):
            return str(player["teamName"])
        return str(reg.get("playerName") or "") or TEAM_PLACEHOLDER

    from_reg = str(reg.get("playerName") or "").strip()
    if from_reg:
        return from_reg
    for ref in (reg.get("player"), reg.get("primaryPlayer")):
        if isinstance(ref, str) and _OBJECT_ID.match(ref) and directory.get(ref):
            return directory[ref]
    player = reg.get("player") or reg.get("primaryPlayer") or {}
    return person_name(player) or UNKNOWN_PLAYER


def player_text(value: Any, directory: Optional[Mapping[str, str]] = None) -> str:
    """
    Display text for a stored player reference.

    Accepts a person dict, a display name, or a bare id (looked up in the
    name directory); ids that cannot be resolved come back as the unknown
    player placeholder.
    """
    if not value:
        return ""
    directory = directory or {}
    name: Any = value
    if isinstance(value, Mapping):
        candidate = value.get("name") or value.get("player") or value.get("playerName") or value.get("fullName")
        name = candidate if isinstance(candidate, str) else _full_name(value)
    name = str(name)
    if name in directory and directory[name]:
        return directory[name]
    if _OBJECT_ID.match(name):
        return UNKNOWN_PLAYER
    return name


def resolve_entrant(
    reg: Mapping[str, Any], kind: str, directory: Optional[Mapping[str, str]] = None, fallback_id: str = ""
) -> Entrant:
    reg_id = str(reg.get("_id") or reg.get("id") or fallback_id)
    return Entrant(id=reg_id, display_name=resolve_display_name(reg, kind, directory), kind=kind)


def resolve_entrants(
    registrations: Iterable[Mapping[str, Any]],
    kind: str,
    directory: Optional[Mapping[str, str]] = None,
) -> List[Entrant]:
    return [
        resolve_entrant(reg, kind, directory, fallback_id=f"reg-{index}")
        for index, reg in enumerate(registrations)
    ]
