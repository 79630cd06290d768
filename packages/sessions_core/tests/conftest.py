"""
Pytest fixtures for commit pipeline tests.

Uses an in-memory SQLite database shared by every session of a test, and a
mocked Redis client.
"""

from unittest.mock import MagicMock
from uuid import UUID

import pytest
import redis
from sqlalchemy import event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from flowbase.db import create_db_engine
from sessions_core.contracts.assets import OrgAssets
from sessions_core.handlers import build_registry
from sessions_core.persistence.models import Contact, RuntimeBase


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with the runtime tables."""
    engine = create_db_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    RuntimeBase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    """Session for arranging and asserting, separate from the batch transaction."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    """Mocked Redis client, pipelines record their commands."""
    return MagicMock(spec=redis.Redis)


@pytest.fixture
def queued_pipe(redis_client):
    """The pipeline object hooks write to inside ``redis_connection``."""
    return redis_client.pipeline.return_value.__enter__.return_value


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def org():
    return OrgAssets(org_id=1)


@pytest.fixture
def contacts(db):
    """Three contacts in org 1."""
    rows = [
        Contact(uuid=UUID("a1b2c3d4-0000-0000-0000-000000000001"), org_id=1, name="Ann"),
        Contact(uuid=UUID("a1b2c3d4-0000-0000-0000-000000000002"), org_id=1, name="Ben"),
        Contact(uuid=UUID("a1b2c3d4-0000-0000-0000-000000000003"), org_id=1, name="Cat"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def statements(db_engine):
    """SQL sent to the database, recorded as (statement, executemany) pairs."""
    recorded = []

    def record(conn, cursor, statement, parameters, context, executemany):
        recorded.append((statement.strip(), executemany))

    event.listen(db_engine, "before_cursor_execute", record)
    yield recorded
    event.remove(db_engine, "before_cursor_execute", record)


@pytest.fixture
def query_count(db):
    """Returns a function asserting a COUNT(*) query returns the expected count."""

    def assert_query_count(sql, params, count, msg=None):
        db.rollback()
        actual = db.execute(text(sql), params).scalar()
        assert actual == count, msg or f"expected {count} rows, got {actual}"

    return assert_query_count
