from __future__ import annotations

import os
import tempfile

# Keep the module-level app in energy_engine.main off the working directory
os.environ["DB_URL"] = "sqlite:///" + os.path.join(tempfile.mkdtemp(prefix="energy-engine-"), "energy.db")

from datetime import datetime, timezone

import pytest

from energy_engine.db import make_engine, make_session_factory
from energy_engine.ingest import IngestionCoordinator
from energy_engine.mapping import MappingRegistry
from energy_engine.models import Base

NOW = datetime(2026, 2, 11, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'energy.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def coordinator(session_factory):
    return IngestionCoordinator(session_factory)


@pytest.fixture
def registry(session_factory):
    return MappingRegistry(session_factory)
