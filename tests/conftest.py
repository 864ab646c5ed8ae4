"""Common test fixtures for the andtask record store."""

import tempfile
from pathlib import Path

import pytest

from andtask.config import config
from andtask.models import db_models
from andtask.models.db_models import init_db
from andtask.observability import metrics
from andtask.services.record_store import RecordStore


@pytest.fixture
def temp_db_dir():
    """Create a temporary directory for the database file."""
    with tempfile.TemporaryDirectory() as db_dir:
        yield Path(db_dir)


@pytest.fixture
def test_config(temp_db_dir, monkeypatch):
    """Point config at a temp database (auto-restored even on crash)."""
    monkeypatch.setattr(config, "database_path", temp_db_dir / "test_andtask.db")
    monkeypatch.setattr(db_models, "_engine", None)
    yield config


@pytest.fixture
def engine(test_config):
    """Engine over a fresh database with the full schema."""
    engine = init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def record_store(engine):
    """Record store with an injected engine."""
    metrics.reset()
    yield RecordStore(engine=engine)
