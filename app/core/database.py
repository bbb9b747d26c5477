"""
Database configuration and session management.
"""
import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import settings


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite gets ``check_same_thread=False`` (the API serves requests from a
    thread pool); server databases get a pre-pinged connection pool.
    """
    echo = os.getenv("SQL_ECHO", "false").lower() == "true"

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo
        )

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo
    )


DATABASE_URL = settings.DATABASE_URL

engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
    ```python
    @router.get("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        ...
    ```
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create the games and game_events tables if they do not exist."""
    from app.models import Base
    Base.metadata.create_all(bind=bind or engine, checkfirst=True)
