import logging
import os
from pathlib import Path
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/tourney.db")

_is_sqlite = DATABASE_URL.startswith("sqlite")
# SQLite connections are shared across the request threadpool
_connect_args = {"check_same_thread": False} if _is_sqlite else {}
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

if _is_sqlite and ":memory:" not in DATABASE_URL:
    Path(DATABASE_URL.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Request-scoped session; routes commit explicitly."""
    with Session(engine) as session:
        yield session


def register_models() -> None:
    """Import every table model so it is present in SQLModel metadata."""
    from tourney.models.category import Category  # noqa: F401
    from tourney.models.registration import Registration  # noqa: F401
    from tourney.models.tournament import Tournament  # noqa: F401


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the tournament, category and registration tables if missing."""
    register_models()
    target = bind or engine
    SQLModel.metadata.create_all(target)
    logger.info("Database ready (%s)", target.url.render_as_string(hide_password=True))
