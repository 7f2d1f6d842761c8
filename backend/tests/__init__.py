# Register table models at collection time, before any test engine creates tables
from tourney.database import register_models

register_models()
