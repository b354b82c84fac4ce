import os
import sys
import tempfile
from pathlib import Path

_DB_DIR = tempfile.mkdtemp(prefix="branchstack-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["BRANCHSTACK_PLUGINS"] = "branchstack.strategies.postgres,branchstack.tests.plugins"
os.environ["BRANCHSTACK_DRY_RUN"] = "1"

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[2]))

from branchstack import models
from branchstack.database import Base, SessionLocal, engine
from branchstack.main import app
from branchstack.services.lifecycle import LifecycleController
from branchstack.strategies import StrategyRegistry
from branchstack.tasks import TaskOrchestrator
from branchstack.tests import plugins

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    plugins.reset()
    with SessionLocal() as session:
        session.query(models.Event).delete()
        session.query(models.Branch).delete()
        session.commit()
    yield
    plugins.reset()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def orchestrator():
    orchestrator = TaskOrchestrator(max_workers=4)
    yield orchestrator
    orchestrator.shutdown()


@pytest.fixture
def registry():
    return StrategyRegistry.from_modules(["branchstack.tests.plugins"])


@pytest.fixture
def controller(registry, orchestrator):
    return LifecycleController(
        registry=registry,
        orchestrator=orchestrator,
        session_factory=SessionLocal,
    )


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def drain(client):
    """Wait for the app's provisioning tasks so their events are visible."""

    assert client.app.state.controller.orchestrator.drain(timeout=10)


def statuses(events):
    return [event["status"] if isinstance(event, dict) else event.status for event in events]
