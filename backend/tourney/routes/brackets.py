"""
Bracket endpoints: groups, round-robin overlays, knockout results and
points-submission status for one category.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from tourney.database import get_session
from tourney.models.category import Category
from tourney.models.registration import Registration
from tourney.models.tournament import Tournament
from tourney.services.group_allocator import normalize_bracket_size
from tourney.services.match_catalog import (
    CategoryBracket,
    CategoryConfig,
    RoleContext,
    build_category,
    regenerate_groups,
)
from tourney.utils.overlay import merge_overlays

router = APIRouter()


class BracketModeUpdate(BaseModel):
    bracket_mode: Optional[int] = None


class GroupMatchesUpdate(BaseModel):
    # pair key -> overlay fields (date, time, court, venue, scores, ...)
    matches: Dict[str, Dict[str, Any]]


class EliminationResultsUpdate(BaseModel):
    # match key -> {"winner": name, "loser": name}
    results: Dict[str, Dict[str, Any]]


class BracketResponse(BaseModel):
    category_id: int
    label: str
    entrant_kind: str
    bracket_size: int
    groups: List[Dict[str, Any]]
    matches: List[Dict[str, Any]]
    submittable: bool


class SubmissionStatusResponse(BaseModel):
    category_id: int
    submittable: bool
    can_submit: bool
    points_submitted: bool
    points_submitted_at: Optional[datetime] = None


def get_role_context(x_user_roles: Optional[str] = Header(default=None)) -> RoleContext:
    """Caller roles from a comma-separated X-User-Roles header."""
    roles = [r.strip() for r in (x_user_roles or "").split(",") if r.strip()]
    return RoleContext(roles=frozenset(roles))


def get_category_or_404(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def registration_records(session: Session, tournament_id: int) -> List[Dict[str, Any]]:
    registrations = session.exec(
        select(Registration).where(Registration.tournament_id == tournament_id).order_by(Registration.id)
    ).all()
    return [r.as_record() for r in registrations]


def load_bracket(session: Session, category: Category) -> CategoryBracket:
    tournament = session.get(Tournament, category.tournament_id)
    dates = (tournament.tournament_dates if tournament else None) or []
    return build_category(
        CategoryConfig.from_record(category),
        registration_records(session, category.tournament_id),
        dates,
    )


def bracket_response(category: Category, bracket: CategoryBracket) -> BracketResponse:
    return BracketResponse(
        category_id=category.id,
        label=bracket.label,
        entrant_kind=bracket.kind,
        bracket_size=normalize_bracket_size(category.bracket_mode, len(bracket.groups) or None),
        groups=[g.to_dict() for g in bracket.groups],
        matches=[e.to_dict() for e in bracket.entries],
        submittable=bracket.is_submittable,
    )


@router.get("/categories/{category_id}/groups", response_model=BracketResponse)
def get_groups(category_id: int, session: Session = Depends(get_session)):
    """Groups, round-robin and knockout matches for a category"""
    category = get_category_or_404(session, category_id)
    return bracket_response(category, load_bracket(session, category))


@router.put("/categories/{category_id}/bracket-mode", response_model=BracketResponse)
def update_bracket_mode(category_id: int, data: BracketModeUpdate, session: Session = Depends(get_session)):
    """
    Change the group count and reallocate entrants.

    Stored match overlays are kept by group id; standings start over.
    """
    category = get_category_or_404(session, category_id)
    category.bracket_mode = normalize_bracket_size(data.bracket_mode)

    config = CategoryConfig.from_record(category)
    config.groups = [
        {"id": g.get("id"), "matches": g.get("matches") or {}} for g in config.groups if isinstance(g, dict)
    ]
    groups = regenerate_groups(config, registration_records(session, category.tournament_id))

    category.group_stage = {"groups": [g.to_dict() for g in groups]}
    category.elimination_matches = None
    session.add(category)
    session.commit()
    session.refresh(category)
    return bracket_response(category, load_bracket(session, category))


@router.put("/categories/{category_id}/groups/{group_id}/matches", response_model=Dict[str, Any])
def update_group_matches(
    category_id: int, group_id: str, data: GroupMatchesUpdate, session: Session = Depends(get_session)
):
    """Merge overlay fields into a group's stored matches; returns the updated group."""
    category = get_category_or_404(session, category_id)
    stored_groups = list((category.group_stage or {}).get("groups") or [])
    if not stored_groups:
        # First edit: store the allocation the category currently shows
        stored_groups = [g.to_dict() for g in load_bracket(session, category).groups]

    updated = None
    groups: List[Dict[str, Any]] = []
    for g in stored_groups:
        g = dict(g)
        if str(g.get("id")) == group_id:
            g["matches"] = merge_overlays(g.get("matches") or {}, data.matches)
            updated = g
        groups.append(g)
    if updated is None:
        raise HTTPException(status_code=404, detail="Group not found")

    category.group_stage = {**(category.group_stage or {}), "groups": groups}
    session.add(category)
    session.commit()
    return updated


@router.put("/categories/{category_id}/elimination-results", response_model=BracketResponse)
def update_elimination_results(
    category_id: int, data: EliminationResultsUpdate, session: Session = Depends(get_session)
):
    category = get_category_or_404(session, category_id)
    category.elimination_results = merge_overlays(category.elimination_results or {}, data.results)
    session.add(category)
    session.commit()
    session.refresh(category)
    return bracket_response(category, load_bracket(session, category))


@router.get("/categories/{category_id}/submission-status", response_model=SubmissionStatusResponse)
def get_submission_status(
    category_id: int,
    session: Session = Depends(get_session),
    roles: RoleContext = Depends(get_role_context),
):
    category = get_category_or_404(session, category_id)
    bracket = load_bracket(session, category)
    return SubmissionStatusResponse(
        category_id=category.id,
        submittable=bracket.is_submittable,
        can_submit=bracket.can_submit_points(roles),
        points_submitted=category.points_submitted,
        points_submitted_at=category.points_submitted_at,
    )


@router.post("/categories/{category_id}/submit-points", response_model=SubmissionStatusResponse)
def submit_points(
    category_id: int,
    session: Session = Depends(get_session),
    roles: RoleContext = Depends(get_role_context),
):
    """Mark a category's points as submitted. Privileged roles only, on a complete bracket."""
    category = get_category_or_404(session, category_id)
    bracket = load_bracket(session, category)
    if not roles.is_privileged:
        raise HTTPException(status_code=403, detail="Submitting points requires an admin role")
    if not bracket.is_submittable:
        raise HTTPException(status_code=400, detail="Bracket is not complete")

    category.points_submitted = True
    category.points_submitted_at = datetime.utcnow()
    session.add(category)
    session.commit()
    session.refresh(category)
    return SubmissionStatusResponse(
        category_id=category.id,
        submittable=True,
        can_submit=True,
        points_submitted=category.points_submitted,
        points_submitted_at=category.points_submitted_at,
    )
