# anchor_incidents/database.py
"""
Database configuration.
"""

from typing import Any, Dict, Generator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session

from anchor_incidents.config.app_config import get_app_config
from anchor_incidents.utils.logging import get_logger

logger = get_logger(__name__)

_config = get_app_config()
DATABASE_URL = _config["database_url"]


def engine_options(database_url: str, echo: bool = False) -> Dict[str, Any]:
    """Engine keyword arguments for the given backend."""
    if database_url.startswith("sqlite"):
        return {"echo": echo, "connect_args": {"check_same_thread": False}}
    return {
        "echo": echo,
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
    }


# Create engine
engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL, _config["sql_echo"]))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Yields:
        SQLAlchemy Session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db(db: Session) -> bool:
    """Return True when the database answers a trivial query."""
    db.execute(text("SELECT 1"))
    return True


def init_db():
    """Initialize database tables."""
    from anchor_incidents.models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("database_tables_initialized", tables=sorted(inspect(engine).get_table_names()))
