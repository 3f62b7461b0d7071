"""
db.py

Engine, session factory and declarative base for the alert store.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is not set")


def normalize_database_url(url: str) -> str:
    # Dokku/Heroku style services hand out 'postgres://'.
    # SQLAlchemy 2 only loads the dialect from 'postgresql+psycopg2://'.
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


def build_engine(url: str):
    url = normalize_database_url(url)
    connect_args = {}
    if url.startswith("sqlite"):
        # Store calls run in worker threads (asyncio.to_thread)
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, future=True, connect_args=connect_args)


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def session_scope(session_factory=SessionLocal) -> Iterator[Session]:
    """Commit on success, roll back on error, always close."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
