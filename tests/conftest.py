"""Pytest configuration and shared fixtures.

This module provides fixtures for testing lendingdesk, including temporary
data directories, a controllable clock, and engines with sample holders and
books.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest

from lendingdesk.catalog import ItemCreate
from lendingdesk.config import reset_config
from lendingdesk.directory import HolderCreate, Role
from lendingdesk.lending import LendingEngine
from lendingdesk.storage import FlatFileStore


START = datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path) -> Generator[None, None, None]:
    """Point the global config at a temporary data directory."""
    reset_config()
    previous = os.environ.get("LENDINGDESK_DATA_DIR")
    os.environ["LENDINGDESK_DATA_DIR"] = str(tmp_path / "env-data")

    yield

    reset_config()
    if previous is None:
        os.environ.pop("LENDINGDESK_DATA_DIR", None)
    else:
        os.environ["LENDINGDESK_DATA_DIR"] = previous


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Create an empty data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(data_dir: Path) -> FlatFileStore:
    return FlatFileStore(data_dir)


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def engine(clock: FakeClock) -> LendingEngine:
    """In-memory engine with no store."""
    return LendingEngine(clock=clock)


@pytest.fixture
def stored_engine(store: FlatFileStore, clock: FakeClock) -> LendingEngine:
    """Engine that writes through to a temporary data directory."""
    return LendingEngine(store=store, clock=clock)


def populate(engine: LendingEngine) -> LendingEngine:
    """Add the sample holders and books to an engine."""
    holders = [
        HolderCreate(id=111, name="Asha Rao", credential="s3cret", role=Role.STUDENT, department="CSE"),
        HolderCreate(id=112, name="Ben Ortiz", credential="pw112", role=Role.STUDENT, department="EE"),
        HolderCreate(id=113, name="Chen Wei", credential="pw113", role=Role.STUDENT, department="ME"),
        HolderCreate(id=201, name="Dr. Mensah", credential="prof", role=Role.FACULTY, department="CSE"),
        HolderCreate(id=1, name="Lee Admin", credential="admin", role=Role.LIBRARIAN, department="Library"),
    ]
    for data in holders:
        assert engine.add_holder(data).success

    items = [
        ItemCreate(id=7, title="Dune", author="Frank Herbert", publisher="Ace", year=1965, isbn="9780441172719"),
        ItemCreate(id=50, title="Clean Code", author="Robert C. Martin", publisher="Prentice Hall", year=2008, isbn="9780132350884"),
        ItemCreate(id=51, title="The Pragmatic Programmer", author="Hunt, Thomas", year=1999),
        ItemCreate(id=52, title="Code Complete", author="Steve McConnell", year=2004),
        ItemCreate(id=53, title="Refactoring", author="Martin Fowler", year=1999),
        ItemCreate(id=54, title="Design Patterns", author="Gamma et al.", year=1994),
    ]
    for data in items:
        assert engine.add_item(data).success
    return engine


@pytest.fixture
def library(engine: LendingEngine) -> LendingEngine:
    """In-memory engine with sample holders and books."""
    return populate(engine)


@pytest.fixture
def stored_library(stored_engine: LendingEngine) -> LendingEngine:
    """Write-through engine with sample holders and books."""
    return populate(stored_engine)
