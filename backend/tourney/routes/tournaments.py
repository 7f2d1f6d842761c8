from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from tourney.database import get_session
from tourney.models.category import Category
from tourney.models.registration import Registration
from tourney.models.tournament import Tournament
from tourney.services.match_catalog import category_label
from tourney.utils.time_slots import parse_date_list

router = APIRouter()

REGISTRATION_STATUSES = ("pending", "approved", "rejected", "withdrawn")


def _normalize_status(value: str) -> str:
    s = (value or "").strip().lower()
    if s not in REGISTRATION_STATUSES:
        raise ValueError(f"status must be one of {', '.join(REGISTRATION_STATUSES)}")
    return s


class TournamentCreate(BaseModel):
    name: str
    venue_name: Optional[str] = None
    tournament_dates: List[str] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("tournament_dates", mode="before")
    @classmethod
    def normalize_dates(cls, v):
        return parse_date_list(v)


class TournamentResponse(BaseModel):
    id: int
    name: str
    venue_name: Optional[str]
    tournament_dates: List[str] = []
    court_assignments: Optional[Dict[str, Any]] = None
    court_assignments_by_date: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    @field_validator("tournament_dates", mode="before")
    @classmethod
    def normalize_dates(cls, v):
        """Stored dates may be a comma-separated string in older rows."""
        return parse_date_list(v)

    @field_validator("court_assignments_by_date", mode="before")
    @classmethod
    def default_by_date(cls, v):
        return v or {}

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    division: str
    skill_level: Optional[str] = None
    age_category: Optional[str] = None
    tier: Optional[int] = None
    bracket_mode: Optional[int] = None


class CategoryResponse(BaseModel):
    id: int
    tournament_id: int
    division: str
    skill_level: Optional[str]
    age_category: Optional[str]
    tier: Optional[int]
    bracket_mode: Optional[int]
    label: str
    points_submitted: bool
    points_submitted_at: Optional[datetime]


class RegistrationCreate(BaseModel):
    category_id: Optional[int] = None
    status: str = "pending"
    payload: Dict[str, Any] = {}

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _normalize_status(v)


class RegistrationStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _normalize_status(v)


class RegistrationResponse(BaseModel):
    id: int
    tournament_id: int
    category_id: Optional[int]
    status: str
    payload: Dict[str, Any]

    class Config:
        from_attributes = True


def category_response(category: Category) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        tournament_id=category.tournament_id,
        division=category.division,
        skill_level=category.skill_level,
        age_category=category.age_category,
        tier=category.tier,
        bracket_mode=category.bracket_mode,
        label=category_label(category.division, category.skill_level, category.age_category, category.tier),
        points_submitted=category.points_submitted,
        points_submitted_at=category.points_submitted_at,
    )


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    return get_tournament_or_404(session, tournament_id)


@router.get("/tournaments/{tournament_id}/categories", response_model=List[CategoryResponse])
def list_categories(tournament_id: int, session: Session = Depends(get_session)):
    get_tournament_or_404(session, tournament_id)
    categories = session.exec(
        select(Category).where(Category.tournament_id == tournament_id).order_by(Category.id)
    ).all()
    return [category_response(c) for c in categories]


@router.post("/tournaments/{tournament_id}/categories", response_model=CategoryResponse, status_code=201)
def create_category(tournament_id: int, data: CategoryCreate, session: Session = Depends(get_session)):
    get_tournament_or_404(session, tournament_id)
    category = Category(tournament_id=tournament_id, **data.model_dump())
    session.add(category)
    session.commit()
    session.refresh(category)
    return category_response(category)


@router.get("/tournaments/{tournament_id}/registrations", response_model=List[RegistrationResponse])
def list_registrations(tournament_id: int, session: Session = Depends(get_session)):
    get_tournament_or_404(session, tournament_id)
    return session.exec(
        select(Registration).where(Registration.tournament_id == tournament_id).order_by(Registration.id)
    ).all()


@router.post(
    "/tournaments/{tournament_id}/registrations", response_model=RegistrationResponse, status_code=201
)
def create_registration(tournament_id: int, data: RegistrationCreate, session: Session = Depends(get_session)):
    get_tournament_or_404(session, tournament_id)
    if data.category_id is not None:
        category = session.get(Category, data.category_id)
        if not category or category.tournament_id != tournament_id:
            raise HTTPException(status_code=404, detail="Category not found in this tournament")

    registration = Registration(tournament_id=tournament_id, **data.model_dump())
    session.add(registration)
    session.commit()
    session.refresh(registration)
    return registration


@router.patch("/registrations/{registration_id}", response_model=RegistrationResponse)
def update_registration_status(
    registration_id: int, data: RegistrationStatusUpdate, session: Session = Depends(get_session)
):
    registration = session.get(Registration, registration_id)
    if not registration:
        raise HTTPException(status_code=404, detail="Registration not found")
    registration.status = data.status
    session.add(registration)
    session.commit()
    session.refresh(registration)
    return registration
