"""
Schedule Grid Manager

A schedule board holds one or more venues for a single date. Each venue is
an independent time-slot x court matrix whose cells hold a match placement,
a free-text note, or nothing.

Rules:
- A match occupies at most one cell across every venue of the board;
  placing it again moves it.
- Mutations build new rows and swap them in only after validation, so a
  rejected call leaves the board untouched.
- Slot series chain end -> start; a preview-count edit replaces only the
  most recently generated series.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from tourney.services.entrant_resolver import TBD
from tourney.services.match_entry import MatchEntry
from tourney.utils.time_slots import add_minutes, parse_clock

logger = logging.getLogger(__name__)

DEFAULT_VENUE_NAME = "Venue 1"
NOTE_TYPE = "note"


class ScheduleGridError(Exception):
    """Base exception for schedule grid errors"""
    pass


class CellOutOfRangeError(ScheduleGridError):
    """Row or court index outside the venue's grid"""
    pass


class VenueError(ScheduleGridError):
    """Invalid venue operation, such as removing the last venue"""
    pass


class UnknownVenueError(VenueError):
    """Venue index does not exist"""
    pass


def new_id() -> str:
    return uuid.uuid4().hex[:10]


@dataclass
class ScheduleSlot:
    id: str
    start_time: str
    duration: str = ""
    end_time: str = ""

    @classmethod
    def from_value(cls, value: Any) -> "ScheduleSlot":
        # Older documents stored bare start times
        if isinstance(value, str):
            return cls(id=new_id(), start_time=value)
        value = value or {}
        return cls(
            id=str(value.get("id") or new_id()),
            start_time=str(value.get("startTime") or ""),
            duration=str(value.get("duration") or ""),
            end_time=str(value.get("endTime") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "startTime": self.start_time,
            "duration": self.duration,
            "endTime": self.end_time,
        }


@dataclass
class Note:
    id: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": NOTE_TYPE, "text": self.text}


@dataclass
class MatchPlacement:
    id: str
    key: str = ""
    label: str = ""
    category: str = ""
    seed_vs: str = ""
    display_number: str = ""
    match_number: str = ""
    stage: str = ""

    @classmethod
    def from_entry(cls, entry: MatchEntry) -> "MatchPlacement":
        return cls(
            id=entry.id,
            key=entry.match_key,
            label=entry.label,
            category=entry.category,
            seed_vs=entry.seed_vs,
            display_number=entry.display_number,
            match_number=entry.match_number,
            stage=entry.stage,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "label": self.label,
            "category": self.category,
            "seedVs": self.seed_vs,
            "displayNumber": self.display_number,
            "matchNumber": self.match_number,
            "stage": self.stage,
        }


Cell = Optional[Union[MatchPlacement, Note]]


def cell_from_dict(value: Any) -> Cell:
    if not isinstance(value, Mapping) or not value.get("id"):
        return None
    if value.get("type") == NOTE_TYPE:
        return Note(id=str(value["id"]), text=str(value.get("text") or ""))
    return MatchPlacement(
        id=str(value["id"]),
        key=str(value.get("key") or ""),
        label=str(value.get("label") or ""),
        category=str(value.get("category") or ""),
        seed_vs=str(value.get("seedVs") or ""),
        display_number=str(value.get("displayNumber") or ""),
        match_number=str(value.get("matchNumber") or ""),
        stage=str(value.get("stage") or ""),
    )


def cell_to_dict(cell: Cell) -> Optional[Dict[str, Any]]:
    return cell.to_dict() if cell is not None else None


def _fit_row(row: Sequence[Cell], width: int) -> List[Cell]:
    cells = list(row)[:width]
    return cells + [None] * (width - len(cells))


@dataclass
class Venue:
    name: str
    court_count: int = 1
    time_slots: List[ScheduleSlot] = field(default_factory=list)
    assignments: List[List[Cell]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> "Venue":
        court_count = _as_int(data.get("courtCount")) or 1
        slots = [ScheduleSlot.from_value(ts) for ts in data.get("timeSlots") or []]
        raw_rows = data.get("assignments")
        if isinstance(raw_rows, list):
            rows = [[cell_from_dict(c) for c in (r or [])] for r in raw_rows]
        else:
            rows = [[None] * court_count for _ in slots]
        return cls(
            name=str(data.get("name") or data.get("venueName") or f"Venue {index + 1}"),
            court_count=court_count,
            time_slots=slots,
            assignments=rows,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "courtCount": self.court_count,
            "timeSlots": [s.to_dict() for s in self.time_slots],
            "assignments": [[cell_to_dict(c) for c in row] for row in self.assignments],
        }

    def cell(self, row: int, col: int) -> Cell:
        if 0 <= row < len(self.assignments) and 0 <= col < len(self.assignments[row]):
            return self.assignments[row][col]
        return None

    def check_cell(self, row: int, col: int) -> None:
        if not (0 <= row < len(self.time_slots)) or not (0 <= col < self.court_count):
            raise CellOutOfRangeError(
                f"Cell ({row}, {col}) is outside {self.name} "
                f"({len(self.time_slots)} slots x {self.court_count} courts)"
            )

    def rows_copy(self) -> List[List[Cell]]:
        """Assignment rows aligned to the slot list and court count."""
        rows = [_fit_row(r, self.court_count) for r in self.assignments[: len(self.time_slots)]]
        while len(rows) < len(self.time_slots):
            rows.append([None] * self.court_count)
        return rows


def _drop_duplicate_placements(venues: Sequence[Venue]) -> None:
    seen: Set[str] = set()
    for venue in venues:
        for row in venue.assignments:
            for c_idx, cell in enumerate(row):
                if not isinstance(cell, MatchPlacement):
                    continue
                if cell.id in seen:
                    logger.warning("Match %s placed more than once; keeping its first cell", cell.id)
                    row[c_idx] = None
                else:
                    seen.add(cell.id)


def _as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def generate_slot_series(
    start_time: str,
    duration: Any,
    count: Any,
    id_factory: Callable[[], str] = new_id,
) -> List[ScheduleSlot]:
    """
    `count` consecutive slots of `duration` minutes starting at `start_time`.

    Returns [] when the start time is not a clock time or the duration is missing.
    """
    safe_count = max(1, _as_int(count) or 1)
    safe_duration = _as_int(duration)
    if parse_clock(start_time) is None or not safe_duration:
        return []

    slots: List[ScheduleSlot] = []
    current = start_time
    for _ in range(safe_count):
        end = add_minutes(current, safe_duration)
        slots.append(ScheduleSlot(id=id_factory(), start_time=current, duration=str(safe_duration), end_time=end))
        current = end
    return slots


def preview_end_time(start_time: str, duration: Any, count: Any) -> str:
    """End of a prospective series: start + duration x count, "" when incomplete."""
    safe_count = max(1, _as_int(count) or 1)
    safe_duration = _as_int(duration)
    if parse_clock(start_time) is None or not safe_duration:
        return ""
    return add_minutes(start_time, safe_duration * safe_count)


@dataclass
class SeriesDefaults:
    start_time: str
    duration: str


def _players_of(entry_or_label: Union[MatchEntry, str]) -> List[str]:
    text = entry_or_label.players_vs if isinstance(entry_or_label, MatchEntry) else entry_or_label
    names = [s.strip() for s in str(text or "").split(" vs ")]
    return [n for n in names if n and n.lower() != TBD.lower()]


class ScheduleBoard:
    """
    Editable schedule for one date.

    `selected` is the index of the venue that slot, court and cell
    operations apply to. `series_len` is the length of the tail series a
    preview-count edit replaces.
    """

    def __init__(
        self,
        schedule_date: str = "",
        venues: Optional[List[Venue]] = None,
        selected: int = 0,
        series_len: int = 0,
    ):
        self.schedule_date = schedule_date
        self.venues: List[Venue] = venues or [Venue(name=DEFAULT_VENUE_NAME)]
        self.selected = max(0, min(selected, len(self.venues) - 1))
        self._series_len = max(0, series_len)

    @property
    def series_len(self) -> int:
        return self._series_len

    # Document shape

    @classmethod
    def from_document(
        cls, document: Optional[Mapping[str, Any]], schedule_date: str = "", venue_name: str = ""
    ) -> "ScheduleBoard":
        """
        Load a stored schedule document.

        Documents without a venues list are single-venue documents and take
        the tournament's venue name. A match placed in more than one cell
        keeps only its first placement (venue, then row, then court order).
        """
        default_name = venue_name or DEFAULT_VENUE_NAME
        if not document:
            return cls(schedule_date=schedule_date, venues=[Venue(name=default_name)])

        date = schedule_date or str(document.get("scheduleDate") or "")
        venues_raw = document.get("venues")
        if isinstance(venues_raw, list) and venues_raw:
            venues = [Venue.from_dict(v or {}, idx) for idx, v in enumerate(venues_raw)]
        else:
            legacy = dict(document)
            legacy["name"] = default_name
            venues = [Venue.from_dict(legacy)]
        _drop_duplicate_placements(venues)
        return cls(schedule_date=date, venues=venues)

    def to_document(self) -> Dict[str, Any]:
        """
        Persisted shape. The root-level courtCount / timeSlots / assignments
        mirror the selected venue for single-venue readers.
        """
        current = self.venue.to_dict()
        return {
            "scheduleDate": self.schedule_date,
            "courtCount": current["courtCount"],
            "timeSlots": current["timeSlots"],
            "assignments": current["assignments"],
            "venues": [v.to_dict() for v in self.venues],
        }

    # Venues

    @property
    def venue(self) -> Venue:
        return self.venues[self.selected]

    def _venue_index(self, index: Optional[int]) -> int:
        idx = self.selected if index is None else index
        if not (0 <= idx < len(self.venues)):
            raise UnknownVenueError(f"Venue index {idx} out of range (0..{len(self.venues) - 1})")
        return idx

    def select_venue(self, index: int) -> Venue:
        self.selected = self._venue_index(index)
        self._series_len = 0
        return self.venue

    def add_venue(self) -> Venue:
        venue = Venue(name=f"Venue {len(self.venues) + 1}", court_count=1)
        self.venues = self.venues + [venue]
        self.selected = len(self.venues) - 1
        self._series_len = 0
        return venue

    def rename_venue(self, name: str, index: Optional[int] = None) -> None:
        self.venues[self._venue_index(index)].name = str(name)

    def remove_venue(self, index: Optional[int] = None) -> None:
        idx = self._venue_index(index)
        if len(self.venues) <= 1:
            raise VenueError("At least one venue must remain")
        self.venues = self.venues[:idx] + self.venues[idx + 1 :]
        self.selected = max(0, min(idx - 1, len(self.venues) - 1))
        self._series_len = 0

    # Time slots

    def add_time_slots(self, start_time: str, duration: Any, count: Any = 1) -> str:
        """
        Append a slot series to the selected venue.

        Returns the end time of the last new slot ("" if nothing was added).
        Appended series are not tracked for tail replacement.
        """
        slots = generate_slot_series(start_time, duration, count)
        if not slots:
            return ""
        venue = self.venue
        rows = venue.rows_copy() + [[None] * venue.court_count for _ in slots]
        venue.time_slots = venue.time_slots + slots
        venue.assignments = rows
        return slots[-1].end_time

    def replace_tail_series(self, start_time: str, duration: Any, count: Any) -> List[ScheduleSlot]:
        """
        Replace the most recently generated series with a new one.

        Slots before that series, including manually added ones, are kept.
        """
        slots = generate_slot_series(start_time, duration, count)
        if not slots:
            return []
        venue = self.venue
        keep = max(0, len(venue.time_slots) - self._series_len)
        rows = venue.rows_copy()[:keep] + [[None] * venue.court_count for _ in slots]
        venue.time_slots = venue.time_slots[:keep] + slots
        venue.assignments = rows
        self._series_len = len(slots)
        return slots

    def remove_time_slot(self, index: int) -> None:
        venue = self.venue
        if not (0 <= index < len(venue.time_slots)):
            raise CellOutOfRangeError(f"Time slot {index} does not exist")
        rows = venue.rows_copy()
        venue.time_slots = venue.time_slots[:index] + venue.time_slots[index + 1 :]
        venue.assignments = rows[:index] + rows[index + 1 :]
        self._series_len = 0

    def close_series_editor(self) -> None:
        self._series_len = 0

    def next_series_defaults(self) -> SeriesDefaults:
        slots = self.venue.time_slots
        if not slots:
            return SeriesDefaults(start_time="", duration="")
        last = slots[-1]
        return SeriesDefaults(start_time=last.end_time or last.start_time, duration=last.duration)

    # Courts

    def update_court_count(self, value: Any) -> int:
        n = max(1, _as_int(value) or 1)
        venue = self.venue
        venue.assignments = [_fit_row(row, n) for row in venue.assignments]
        venue.court_count = n
        return n

    # Cells

    def placed_ids(self) -> Set[str]:
        return {
            cell.id
            for venue in self.venues
            for row in venue.assignments
            for cell in row
            if isinstance(cell, MatchPlacement)
        }

    def locate(self, match_id: str) -> Optional[Tuple[int, int, int]]:
        """(venue index, row, court) of a placed match, or None."""
        for v_idx, venue in enumerate(self.venues):
            for r_idx, row in enumerate(venue.assignments):
                for c_idx, cell in enumerate(row):
                    if isinstance(cell, MatchPlacement) and cell.id == match_id:
                        return v_idx, r_idx, c_idx
        return None

    def place(self, match: Union[MatchEntry, MatchPlacement], row: int, col: int) -> MatchPlacement:
        """
        Move a match into a cell of the selected venue.

        Any previous cell holding the match is cleared first. Whatever the
        destination held is replaced.
        """
        venue = self.venue
        venue.check_cell(row, col)
        placement = MatchPlacement.from_entry(match) if isinstance(match, MatchEntry) else match

        new_rows: Dict[int, List[List[Cell]]] = {}
        for v_idx, v in enumerate(self.venues):
            rows = v.rows_copy() if v is venue else [list(r) for r in v.assignments]
            for r in rows:
                for c, cell in enumerate(r):
                    if isinstance(cell, MatchPlacement) and cell.id == placement.id:
                        r[c] = None
            new_rows[v_idx] = rows
        new_rows[self.selected][row][col] = placement

        for v_idx, rows in new_rows.items():
            self.venues[v_idx].assignments = rows
        logger.debug("Placed %s at %s row %d court %d", placement.id, venue.name, row, col + 1)
        return placement

    def clear_cell(self, row: int, col: int) -> Cell:
        """Empty a cell; a removed match returns to the available pool."""
        venue = self.venue
        venue.check_cell(row, col)
        rows = venue.rows_copy()
        previous = rows[row][col]
        rows[row][col] = None
        venue.assignments = rows
        return previous

    def set_note(self, row: int, col: int, text: str) -> Optional[Note]:
        """Write a note into a cell; blank text clears the cell."""
        venue = self.venue
        venue.check_cell(row, col)
        stripped = str(text or "").strip()
        note = Note(id=f"note-{new_id()}", text=stripped) if stripped else None
        rows = venue.rows_copy()
        rows[row][col] = note
        venue.assignments = rows
        return note

    # Derived views

    def conflicts(
        self, catalog: Optional[Mapping[str, MatchEntry]] = None, venue_index: Optional[int] = None
    ) -> Set[Tuple[int, int]]:
        """
        Cells whose entrants are double-booked within their time row.

        Only placements of the same category are compared. Names are matched
        case-insensitively and TBD sides are ignored.
        """
        catalog = catalog or {}
        venue = self.venues[self._venue_index(venue_index)]
        flagged: Set[Tuple[int, int]] = set()
        for r_idx, row in enumerate(venue.assignments):
            placements = [(c, cell) for c, cell in enumerate(row) if isinstance(cell, MatchPlacement)]
            counts: Dict[Tuple[str, str], int] = {}
            names_by_col: Dict[int, List[str]] = {}
            for c, cell in placements:
                names = [n.lower() for n in _players_of(catalog.get(cell.id) or cell.label)]
                names_by_col[c] = names
                for name in names:
                    counts[(cell.category, name)] = counts.get((cell.category, name), 0) + 1
            for c, cell in placements:
                if any(counts.get((cell.category, n), 0) > 1 for n in names_by_col[c]):
                    flagged.add((r_idx, c))
        return flagged

    def has_conflict(self, row: int, col: int, catalog: Optional[Mapping[str, MatchEntry]] = None) -> bool:
        return (row, col) in self.conflicts(catalog)

    def available(
        self,
        catalog: Iterable[MatchEntry],
        category: Optional[str] = None,
        stage: Optional[str] = None,
        search: str = "",
    ) -> List[MatchEntry]:
        return filter_matches(catalog, category=category, stage=stage, search=search, exclude_ids=self.placed_ids())


def filter_matches(
    matches: Iterable[MatchEntry],
    category: Optional[str] = None,
    stage: Optional[str] = None,
    search: str = "",
    exclude_ids: Optional[Set[str]] = None,
) -> List[MatchEntry]:
    """
    Filter the match pool. "All" or an empty value disables a filter; search
    is a case-insensitive substring over players, seeds, numbers, category
    and stage.
    """
    exclude_ids = exclude_ids or set()
    q = str(search or "").strip().lower()
    result: List[MatchEntry] = []
    for m in matches:
        if not m.id or m.id in exclude_ids:
            continue
        if category and category != "All" and m.category != category:
            continue
        if stage and stage != "All" and m.stage != stage:
            continue
        if q:
            haystack = " ".join(
                str(x or "").lower()
                for x in (m.players_vs, m.label, m.seed_vs, m.display_number, m.match_number, m.category, m.stage)
            )
            if q not in haystack:
                continue
        result.append(m)
    return result


def pick_document(
    by_date: Optional[Mapping[str, Any]], root: Optional[Mapping[str, Any]], schedule_date: str
) -> Optional[Mapping[str, Any]]:
    """Stored document for a date: the per-date copy, else the root copy if it is for that date."""
    if schedule_date and by_date and by_date.get(schedule_date):
        return by_date[schedule_date]
    if root and str(root.get("scheduleDate") or "") == str(schedule_date or ""):
        return root
    return None


def default_schedule_date(
    root: Optional[Mapping[str, Any]], by_date: Optional[Mapping[str, Any]], tournament_dates: Sequence[str]
) -> str:
    """The last saved date, else the first stored date, else the first tournament date."""
    preferred = str((root or {}).get("scheduleDate") or "").strip()
    if preferred:
        return preferred
    keys = [k for k in (by_date or {}) if k]
    if keys:
        return keys[0]
    return tournament_dates[0] if tournament_dates else ""
