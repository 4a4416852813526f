"""Shared fixtures: SQLite stores with the full schema."""

import pytest
from sqlalchemy.orm import Session, sessionmaker

from db.db_utils import build_engine
from db.models import Base


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed database that several threads can open connections to."""
    engine = build_engine(f"sqlite:///{tmp_path / 'hcm_test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()
