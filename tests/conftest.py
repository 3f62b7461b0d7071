import os

# db.py refuses to import without a database URL
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OPENAI_API_KEY", "")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Base
import models  # noqa: F401
from services.alert_store import AlertStore

from factories import FakeStore, RecordingTransport


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return AlertStore(session_factory)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def transport():
    return RecordingTransport()
