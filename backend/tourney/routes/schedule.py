"""
Schedule endpoints: the tournament match pool and the per-date court grid.

Every grid edit loads the stored board for the date, applies one operation
and saves the board back (schedule document plus round-robin overlays).
"""
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from tourney.database import get_session
from tourney.models.category import Category
from tourney.models.tournament import Tournament
from tourney.routes.brackets import registration_records
from tourney.routes.tournaments import get_tournament_or_404
from tourney.services.entrant_resolver import build_name_directory
from tourney.services.match_catalog import (
    CategoryBracket,
    CategoryConfig,
    build_category,
    filter_options,
    index_by_id,
)
from tourney.services.match_entry import MatchEntry
from tourney.services.schedule_grid import (
    ScheduleBoard,
    ScheduleGridError,
    UnknownVenueError,
    default_schedule_date,
    filter_matches,
    pick_document,
    preview_end_time,
)
from tourney.services.schedule_persistence import (
    BracketUpdates,
    apply_group_updates,
    save_schedule,
    store_document,
)
from tourney.utils.time_slots import canonical_date, parse_clock, parse_date_list

router = APIRouter()

T = TypeVar("T")


# ============================================================================
# Request / response models
# ============================================================================


class MatchPoolResponse(BaseModel):
    matches: List[Dict[str, Any]]
    categories: List[str]
    stages: List[str]


class SeriesDefaultsResponse(BaseModel):
    start_time: str
    duration: str


class ScheduleView(BaseModel):
    schedule_date: str
    dates: List[str]
    venue_index: int
    document: Dict[str, Any]
    conflicts: List[List[int]]
    available: List[Dict[str, Any]]
    next_series: SeriesDefaultsResponse


class ScheduleSaveRequest(BaseModel):
    document: Dict[str, Any]


class ScheduleSaveResponse(BaseModel):
    ok: bool
    message: str
    document: Dict[str, Any]
    bracket_updates: Dict[str, Any]


class SlotSeriesRequest(BaseModel):
    venue: int = 0
    start_time: str
    duration: int
    count: int = 1
    # Length of the previously generated series to replace (0 = append)
    replace_last: int = 0

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        if parse_clock(v) is None:
            raise ValueError("start_time must be HH:MM")
        return v.strip()


class SlotPreviewResponse(BaseModel):
    end_time: str


class PlacementRequest(BaseModel):
    venue: int = 0
    row: int
    col: int
    match_id: str


class NoteRequest(BaseModel):
    venue: int = 0
    row: int
    col: int
    text: str = ""


class CourtCountRequest(BaseModel):
    venue: int = 0
    court_count: int


class VenueRenameRequest(BaseModel):
    name: str


# ============================================================================
# Helpers
# ============================================================================


def load_brackets(session: Session, tournament: Tournament) -> List[Tuple[Category, CategoryBracket]]:
    categories = session.exec(
        select(Category).where(Category.tournament_id == tournament.id).order_by(Category.id)
    ).all()
    records = registration_records(session, tournament.id)
    directory = build_name_directory(records)
    dates = tournament.tournament_dates or []
    return [
        (c, build_category(CategoryConfig.from_record(c), records, dates, directory=directory)) for c in categories
    ]


def catalog_entries(brackets: List[Tuple[Category, CategoryBracket]]) -> List[MatchEntry]:
    entries: List[MatchEntry] = []
    for _, bracket in brackets:
        entries.extend(bracket.entries)
    return entries


def resolve_date(tournament: Tournament, date: Optional[str]) -> str:
    if date:
        canon = canonical_date(date)
        if not canon:
            raise HTTPException(status_code=400, detail=f"Invalid date: {date}")
        return canon
    return default_schedule_date(
        tournament.court_assignments, tournament.court_assignments_by_date, parse_date_list(tournament.tournament_dates)
    )


def load_board(tournament: Tournament, schedule_date: str, venue: int = 0) -> ScheduleBoard:
    document = pick_document(tournament.court_assignments_by_date, tournament.court_assignments, schedule_date)
    board = ScheduleBoard.from_document(document, schedule_date=schedule_date, venue_name=tournament.venue_name or "")
    grid_call(board.select_venue, venue)
    return board


def grid_call(fn: Callable[..., T], *args: Any) -> T:
    """Run a grid operation, mapping grid errors to HTTP errors."""
    try:
        return fn(*args)
    except UnknownVenueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScheduleGridError as e:
        raise HTTPException(status_code=400, detail=str(e))


def schedule_view(
    tournament: Tournament, board: ScheduleBoard, entries: List[MatchEntry]
) -> ScheduleView:
    catalog = index_by_id(entries)
    defaults = board.next_series_defaults()
    return ScheduleView(
        schedule_date=board.schedule_date,
        dates=parse_date_list(tournament.tournament_dates),
        venue_index=board.selected,
        document=board.to_document(),
        conflicts=[[r, c] for r, c in sorted(board.conflicts(catalog))],
        available=[m.to_dict() for m in board.available(entries)],
        next_series=SeriesDefaultsResponse(start_time=defaults.start_time, duration=defaults.duration),
    )


def persist_board(
    session: Session,
    tournament: Tournament,
    board: ScheduleBoard,
    brackets: List[Tuple[Category, CategoryBracket]],
) -> ScheduleSaveResponse:
    """Store the board and write bracket updates back into category overlays."""
    stored_groups = {str(c.id): list((c.group_stage or {}).get("groups") or []) for c, _ in brackets}

    def persist(document: Dict[str, Any], updates: BracketUpdates) -> None:
        try:
            tournament.court_assignments = document
            tournament.court_assignments_by_date = store_document(tournament.court_assignments_by_date, document)
            session.add(tournament)
            for category, bracket in brackets:
                category_updates = updates.get(str(category.id))
                if not category_updates:
                    continue
                # Categories whose groups were never stored get their current allocation stored
                groups = stored_groups[str(category.id)] or [g.to_dict() for g in bracket.groups]
                category.group_stage = {
                    **(category.group_stage or {}),
                    "groups": apply_group_updates(groups, category_updates),
                }
                session.add(category)
            session.commit()
        except Exception:
            session.rollback()
            raise

    result = save_schedule(board, index_by_id(catalog_entries(brackets)), stored_groups, persist)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.message)
    session.refresh(tournament)
    return ScheduleSaveResponse(
        ok=result.ok,
        message=result.message,
        document=result.document,
        bracket_updates=result.bracket_updates,
    )


def save_and_view(session: Session, tournament: Tournament, board: ScheduleBoard) -> ScheduleView:
    brackets = load_brackets(session, tournament)
    persist_board(session, tournament, board, brackets)
    # Recompute so match labels reflect the overlays just written
    return schedule_view(tournament, board, catalog_entries(load_brackets(session, tournament)))


# ============================================================================
# Match pool
# ============================================================================


@router.get("/tournaments/{tournament_id}/matches", response_model=MatchPoolResponse)
def list_matches(
    tournament_id: int,
    category: Optional[str] = Query(default=None),
    stage: Optional[str] = Query(default=None),
    q: str = Query(default=""),
    session: Session = Depends(get_session),
):
    """All group and knockout matches of the tournament, optionally filtered"""
    tournament = get_tournament_or_404(session, tournament_id)
    entries = catalog_entries(load_brackets(session, tournament))
    options = filter_options(entries)
    matches = filter_matches(entries, category=category, stage=stage, search=q)
    return MatchPoolResponse(
        matches=[m.to_dict() for m in matches],
        categories=options["categories"],
        stages=options["stages"],
    )


# ============================================================================
# Schedule document
# ============================================================================


@router.get("/tournaments/{tournament_id}/schedule", response_model=ScheduleView)
def get_schedule(
    tournament_id: int,
    date: Optional[str] = Query(default=None),
    venue: int = Query(default=0),
    session: Session = Depends(get_session),
):
    """
    Schedule board for a date (defaults to the last saved date, then the
    first stored date, then the first tournament date), with conflicting
    cells and the matches not yet placed.
    """
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date), venue)
    return schedule_view(tournament, board, catalog_entries(load_brackets(session, tournament)))


@router.put("/tournaments/{tournament_id}/schedule", response_model=ScheduleSaveResponse)
def save_schedule_document(
    tournament_id: int,
    data: ScheduleSaveRequest,
    date: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    """Save a full schedule document and sync round-robin overlays"""
    tournament = get_tournament_or_404(session, tournament_id)
    schedule_date = resolve_date(tournament, date or data.document.get("scheduleDate"))
    board = ScheduleBoard.from_document(data.document, schedule_date=schedule_date, venue_name=tournament.venue_name or "")
    return persist_board(session, tournament, board, load_brackets(session, tournament))


@router.get("/schedule/slot-preview", response_model=SlotPreviewResponse)
def slot_preview(start_time: str, duration: int, count: int = 1):
    """End time of a prospective slot series"""
    return SlotPreviewResponse(end_time=preview_end_time(start_time, duration, count))


# ============================================================================
# Grid edits
# ============================================================================


@router.post("/tournaments/{tournament_id}/schedule/{date}/slots", response_model=ScheduleView)
def add_slots(tournament_id: int, date: str, data: SlotSeriesRequest, session: Session = Depends(get_session)):
    """
    Add a series of time slots. With replace_last > 0 the last
    `replace_last` slots are treated as the previous preview series and
    replaced by the new one.
    """
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date), data.venue)
    if data.replace_last > 0:
        board = ScheduleBoard(board.schedule_date, board.venues, board.selected, series_len=data.replace_last)
        added = bool(board.replace_tail_series(data.start_time, data.duration, data.count))
    else:
        added = bool(board.add_time_slots(data.start_time, data.duration, data.count))
    if not added:
        raise HTTPException(status_code=400, detail="start_time and a positive duration are required")
    return save_and_view(session, tournament, board)


@router.delete("/tournaments/{tournament_id}/schedule/{date}/slots/{index}", response_model=ScheduleView)
def remove_slot(
    tournament_id: int, date: str, index: int, venue: int = Query(default=0), session: Session = Depends(get_session)
):
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date), venue)
    grid_call(board.remove_time_slot, index)
    return save_and_view(session, tournament, board)


@router.put("/tournaments/{tournament_id}/schedule/{date}/cells", response_model=ScheduleView)
def place_match(tournament_id: int, date: str, data: PlacementRequest, session: Session = Depends(get_session)):
    """Move a match into a cell; it leaves whatever cell it held before"""
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date), data.venue)
    entry = index_by_id(catalog_entries(load_brackets(session, tournament))).get(data.match_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Match not found")
    grid_call(board.place, entry, data.row, data.col)
    return save_and_view(session, tournament, board)


@router.delete("/tournaments/{tournament_id}/schedule/{date}/cells", response_model=ScheduleView)
def clear_cell(
    tournament_id: int,
    date: str,
    row: int,
    col: int,
    venue: int = Query(default=0),
    session: Session = Depends(get_session),
):
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date), venue)
    grid_call(board.clear_cell, row, col)
    return save_and_view(session, tournament, board)


@router.put("/tournaments/{tournament_id}/schedule/{date}/notes", response_model=ScheduleView)
def set_note(tournament_id: int, date: str, data: NoteRequest, session: Session = Depends(get_session)):
    """Write a note into a cell; blank text clears it"""
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date), data.venue)
    grid_call(board.set_note, data.row, data.col, data.text)
    return save_and_view(session, tournament, board)


@router.put("/tournaments/{tournament_id}/schedule/{date}/courts", response_model=ScheduleView)
def update_court_count(
    tournament_id: int, date: str, data: CourtCountRequest, session: Session = Depends(get_session)
):
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date), data.venue)
    board.update_court_count(data.court_count)
    return save_and_view(session, tournament, board)


@router.post("/tournaments/{tournament_id}/schedule/{date}/venues", response_model=ScheduleView)
def add_venue(tournament_id: int, date: str, session: Session = Depends(get_session)):
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date))
    board.add_venue()
    return save_and_view(session, tournament, board)


@router.put("/tournaments/{tournament_id}/schedule/{date}/venues/{index}", response_model=ScheduleView)
def rename_venue(
    tournament_id: int, date: str, index: int, data: VenueRenameRequest, session: Session = Depends(get_session)
):
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date))
    grid_call(board.rename_venue, data.name, index)
    grid_call(board.select_venue, index)
    return save_and_view(session, tournament, board)


@router.delete("/tournaments/{tournament_id}/schedule/{date}/venues/{index}", response_model=ScheduleView)
def remove_venue(tournament_id: int, date: str, index: int, session: Session = Depends(get_session)):
    """Remove a venue; at least one must remain"""
    tournament = get_tournament_or_404(session, tournament_id)
    board = load_board(tournament, resolve_date(tournament, date))
    grid_call(board.remove_venue, index)
    return save_and_view(session, tournament, board)
