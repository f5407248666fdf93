from typing import Tuple

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

LIKE_ESCAPE = "\\"


def create_session_factory(database_url: str) -> Tuple[Engine, sessionmaker]:
    """Build the engine and session factory for a database URL."""
    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, connect_args={"check_same_thread": False, "timeout": 30})
    else:
        engine = create_engine(database_url, pool_pre_ping=True)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return engine, SessionLocal


def like_pattern(term: str) -> str:
    """Substring pattern for ``ilike(..., escape=LIKE_ESCAPE)``; wildcards in ``term`` match literally."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def get_db(request: Request):
    """Database dependency for FastAPI"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
