"""
Root conftest.py for pytest configuration.

Puts the api and worker services on sys.path and points both at an
in-memory SQLite database before the app modules are imported.
"""

import os
import sys
from pathlib import Path

import pytest

root_dir = Path(__file__).parent.parent
for service in ("services/api", "services/worker"):
    p = str(root_dir / service)
    if p not in sys.path:
        sys.path.insert(0, p)

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["COPIER_AGENT_KEY"] = "test-agent-key"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from fastapi.testclient import TestClient  # noqa: E402

from app.db import Base, engine, SessionLocal  # noqa: E402
from app.main import app  # noqa: E402

AGENT = {"X-Agent-Key": "test-agent-key"}
ADMIN = {"X-Auth-Request-Preferred-Username": "ops", "X-Auth-Request-Groups": "admin"}
VIEWER = {"X-Auth-Request-Preferred-Username": "auditor", "X-Auth-Request-Groups": "viewer"}


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def agent_headers():
    return dict(AGENT)


@pytest.fixture
def admin_headers():
    return dict(ADMIN)


@pytest.fixture
def viewer_headers():
    return dict(VIEWER)
