import os

# Settings are read at import time by app.core.db; point them at throwaway
# backends before any app module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.db import Base
from app.models.project import Project
import app.models.discovery_job  # noqa: F401
import app.models.discovery_log  # noqa: F401
import app.models.ivr_node  # noqa: F401
import app.models.test_case  # noqa: F401


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    """Settings isolated from the developer's .env and environment."""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        REDIS_URL="redis://localhost:6379/0",
        TELEPHONY_BACKEND_URL=None,
        FRONTEND_ORIGIN=None,
        DISCOVERY_MAX_DEPTH=5,
        SIMULATOR_PROCEDURAL_FLOWS=False,
    )


@pytest.fixture
def project(db):
    p = Project(name="Acme Wireless IVR", description="Customer care line")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p
