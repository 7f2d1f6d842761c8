"""
Unified match record shared by the group stage, the elimination stage and
the schedule grid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

TYPE_GROUP = "group"
TYPE_ELIMINATION = "elimination"

STAGE_ROUND_ROBIN = "Round robin"


@dataclass
class MatchEntry:
    id: str
    type: str
    category: str
    category_id: str
    match_number: str
    seed1: str
    seed2: str
    players_vs: str
    stage: str
    display_number: str = ""
    bracket: str = ""
    match_key: str = ""

    @property
    def seed_vs(self) -> str:
        if self.seed1 and self.seed2:
            return f"{self.seed1} vs {self.seed2}"
        return ""

    @property
    def label(self) -> str:
        return self.players_vs

    @property
    def sides(self) -> List[str]:
        return [s.strip() for s in self.players_vs.split(" vs ")]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "categoryId": self.category_id,
            "matchNumber": self.match_number,
            "seed1": self.seed1,
            "seed2": self.seed2,
            "seedVs": self.seed_vs,
            "playersVs": self.players_vs,
            "stage": self.stage,
            "label": self.label,
        }
        if self.type == TYPE_GROUP:
            data.update(displayNumber=self.display_number, bracket=self.bracket, matchKey=self.match_key)
        return data
