from tourney.models.category import Category
from tourney.models.registration import Registration
from tourney.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Category",
    "Registration",
]
