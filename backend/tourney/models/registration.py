from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.tournament import Tournament


class Registration(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)
    status: str = Field(default="pending")
    # Raw registration record: playerName, player, partner, teamName, teamMembers, ...
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="registrations")

    def as_record(self) -> Dict[str, Any]:
        """Registration dict in the shape the entrant resolver reads."""
        record = dict(self.payload or {})
        record.setdefault("_id", str(self.id))
        record["status"] = self.status
        if self.category_id is not None:
            record.setdefault("categoryId", str(self.category_id))
        return record
