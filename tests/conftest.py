"""Shared fixtures: in-memory database, settings and stores."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from leadscout.db.models import Base
from leadscout.db.session import create_session_factory
from leadscout.db.stores import EntityStore, JobStore
from leadscout.settings import Settings


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        sync_page_size=2,
        sync_workers=1,
        registry_retry_base_delay=0,
        ai_summary_enabled=False,
        logo_lookup_enabled=False,
    )


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
    return create_session_factory(engine)


@pytest.fixture
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def entity_store(session_factory):
    return EntityStore(session_factory)
