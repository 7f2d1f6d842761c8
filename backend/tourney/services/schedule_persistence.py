"""
Schedule Persistence

Turns a schedule board into what gets stored:
- the schedule document for the board's date (per-date copy plus root copy)
- bracket updates: date/time/court/venue written back into the round-robin
  overlays of every group match on the board, and cleared for matches that
  were scheduled on this date but are no longer on the board

The store itself is a callable supplied by the caller. A failing store is
reported through SaveResult; the board is only read, never modified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from tourney.services.group_allocator import group_id_for_letter
from tourney.services.match_entry import TYPE_GROUP, MatchEntry
from tourney.services.schedule_grid import MatchPlacement, ScheduleBoard
from tourney.utils.overlay import merge_overlays

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save"
SAVED_MESSAGE = "Saved"

# category id -> group id -> pair key -> overlay fields
BracketUpdates = Dict[str, Dict[str, Dict[str, Dict[str, str]]]]


@dataclass
class SaveResult:
    ok: bool
    message: str
    document: Dict[str, Any] = field(default_factory=dict)
    bracket_updates: BracketUpdates = field(default_factory=dict)


def derive_bracket_updates(
    board: ScheduleBoard,
    catalog: Mapping[str, MatchEntry],
    stored_groups: Mapping[str, List[Mapping[str, Any]]],
) -> BracketUpdates:
    """
    Overlay updates for group matches.

    Args:
        board: Board being saved
        catalog: Match entries by id
        stored_groups: Stored group dicts by category id, used to find
            matches previously scheduled on the board's date

    Returns:
        Nested updates; unscheduled matches get empty date/time/court
    """
    updates: BracketUpdates = {}
    scheduled = set()
    schedule_date = str(board.schedule_date or "").strip()

    for venue in board.venues:
        for r_idx, row in enumerate(venue.assignments):
            slot = venue.time_slots[r_idx] if r_idx < len(venue.time_slots) else None
            start = str(slot.start_time if slot else "").strip()
            for c_idx, cell in enumerate(row):
                if not isinstance(cell, MatchPlacement):
                    continue
                entry = catalog.get(cell.id)
                if entry is None or entry.type != TYPE_GROUP or not entry.match_key:
                    continue
                cat_id = str(entry.category_id)
                gid = group_id_for_letter(entry.bracket or "A")
                updates.setdefault(cat_id, {}).setdefault(gid, {})[entry.match_key] = {
                    "date": schedule_date,
                    "time": start,
                    "court": str(c_idx + 1),
                    "venue": str(venue.name or ""),
                }
                scheduled.add((cat_id, gid, entry.match_key))

    if not schedule_date:
        return updates

    for cat_id, groups in stored_groups.items():
        for group in groups or []:
            gid = str(group.get("id") or "")
            for key, md in (group.get("matches") or {}).items():
                md = md or {}
                previous = str(md.get("date") or md.get("mdDate") or "").strip()
                if previous == schedule_date and (str(cat_id), gid, key) not in scheduled:
                    updates.setdefault(str(cat_id), {}).setdefault(gid, {})[key] = {
                        "date": "",
                        "time": "",
                        "court": "",
                        "venue": "",
                    }
    return updates


def apply_group_updates(
    groups: List[Mapping[str, Any]], updates: Mapping[str, Mapping[str, Mapping[str, Any]]]
) -> List[Dict[str, Any]]:
    """Stored groups with their match overlays merged with one category's updates."""
    merged: List[Dict[str, Any]] = []
    for group in groups:
        data = dict(group)
        gid = str(data.get("id") or "")
        if gid in updates:
            data["matches"] = merge_overlays(data.get("matches") or {}, updates[gid])
        merged.append(data)
    return merged


def store_document(
    by_date: Optional[Mapping[str, Any]], document: Mapping[str, Any]
) -> Dict[str, Any]:
    """Per-date map with the document stored under its schedule date."""
    result = dict(by_date or {})
    date = str(document.get("scheduleDate") or "")
    if date:
        result[date] = dict(document)
    return result


PersistFn = Callable[[Dict[str, Any], BracketUpdates], None]


def save_schedule(
    board: ScheduleBoard,
    catalog: Mapping[str, MatchEntry],
    stored_groups: Mapping[str, List[Mapping[str, Any]]],
    persist: PersistFn,
) -> SaveResult:
    """
    Derive the document and bracket updates and hand them to `persist`.

    Saving the same board twice stores the same data.
    """
    document = board.to_document()
    updates = derive_bracket_updates(board, catalog, stored_groups)
    try:
        persist(document, updates)
    except Exception:
        logger.exception("Saving schedule for %s failed", board.schedule_date or "(no date)")
        return SaveResult(ok=False, message=SAVE_FAILED_MESSAGE)

    logger.info(
        "Saved schedule for %s (%d venues, %d categories updated)",
        board.schedule_date or "(no date)",
        len(board.venues),
        len(updates),
    )
    return SaveResult(ok=True, message=SAVED_MESSAGE, document=document, bracket_updates=updates)
