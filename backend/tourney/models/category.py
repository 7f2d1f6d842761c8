from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.tournament import Tournament


class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    division: str
    skill_level: Optional[str] = None
    age_category: Optional[str] = None
    tier: Optional[int] = None
    bracket_mode: Optional[int] = Field(default=None)

    # {"groups": [{id, name, originalPlayers, standings, matches}]}
    group_stage: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    elimination_matches: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    # match key -> {"winner": name, "loser": name}
    elimination_results: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    points_submitted: bool = Field(default=False)
    points_submitted_at: Optional[datetime] = Field(default=None)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="categories")
