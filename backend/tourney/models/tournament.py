from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.category import Category
    from tourney.models.registration import Registration


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    venue_name: Optional[str] = None
    # "YYYY-MM-DD" strings, first entry is the default schedule date
    tournament_dates: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    # Last saved schedule document (any date)
    court_assignments: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    # schedule date -> schedule document
    court_assignments_by_date: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    categories: List["Category"] = Relationship(back_populates="tournament")
    registrations: List["Registration"] = Relationship(back_populates="tournament")
