"""
Test configuration and fixtures.

Provides:
- In-memory document store, installed as the process store for each test
- Seeded roles, users, resources and a project
- Identities for each actor and JWT headers for API tests
- FastAPI TestClient bound to the seeded store
"""
import os
from datetime import date

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret")

from billhub.auth.security import create_access_token
from billhub.constants import PROJECTS, ROLES, SUBCONTRACTORS, USERS
from billhub.main import create_app
from billhub.services.access import Identity, load_identity
from billhub.store.memory_provider import MemoryDocumentStore
from billhub.store.registry import get_store, set_store


# =============================================================================
# Store Fixtures
# =============================================================================

ROLE_DOCS = [
    {"id": "admin", "name": "Administrator", "allowed_paths": ["*"]},
    {"id": "director", "name": "Director", "allowed_paths": ["/", "/projects", "/financials", "/reports", "/resources", "/timesheets"]},
    {"id": "project_manager", "name": "Project Manager", "allowed_paths": ["/", "/projects", "/timesheets", "/resources", "/reports", "/financials"]},
    {"id": "subcontractor", "name": "Subcontractor", "allowed_paths": ["/timesheets"]},
]

USER_DOCS = [
    {"uid": "u-admin", "email": "admin@example.com", "display_name": "Admin", "role_id": "admin"},
    {"uid": "u-director", "email": "director@example.com", "display_name": "Dana Director", "role_id": "director"},
    {"uid": "u-pm", "email": "pm@example.com", "display_name": "Pat Manager", "role_id": "project_manager"},
    {"uid": "u-sub", "email": "sub@example.com", "display_name": "Sam Sub", "role_id": "subcontractor", "subcontractor_id": "S1"},
]

SUBCONTRACTOR_DOCS = [
    {"id": "S1", "name": "DevCorps", "role": "Backend", "hourly_rate": 50, "currency": "EUR", "manager_email": "pm@example.com"},
    {"id": "S2", "name": "Securitas", "role": "DevSecOps", "hourly_rate": 80, "currency": "EUR"},
]

PROJECT_DOCS = [
    {
        "id": "P1", "name": "Cloud Migration", "client": "Northwind", "budget": 10000, "currency": "EUR",
        "manager_id": "u-pm",
        "assignments": [{"subcontractor_id": "S1", "hours_cap": 160, "period": "monthly"}],
    },
]

TODAY = date(2024, 10, 15)


@pytest.fixture
def store():
    """Empty in-memory store installed as the process-wide store."""
    s = MemoryDocumentStore()
    set_store(s)
    yield s
    set_store(None)


@pytest.fixture
def seeded_store(store):
    for doc in ROLE_DOCS:
        store.upsert(ROLES, doc["id"], doc)
    for doc in USER_DOCS:
        store.upsert(USERS, doc["uid"], doc)
    for doc in SUBCONTRACTOR_DOCS:
        store.upsert(SUBCONTRACTORS, doc["id"], doc)
    for doc in PROJECT_DOCS:
        store.upsert(PROJECTS, doc["id"], doc)
    return store


# =============================================================================
# Identity Fixtures
# =============================================================================

@pytest.fixture
def pm(seeded_store) -> Identity:
    return load_identity(seeded_store, "u-pm")


@pytest.fixture
def director(seeded_store) -> Identity:
    return load_identity(seeded_store, "u-director")


@pytest.fixture
def subcontractor(seeded_store) -> Identity:
    return load_identity(seeded_store, "u-sub")


@pytest.fixture
def admin(seeded_store) -> Identity:
    return load_identity(seeded_store, "u-admin")


# =============================================================================
# API Fixtures
# =============================================================================

def auth_headers(uid: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(uid)}"}


@pytest.fixture
def client(seeded_store):
    app = create_app()
    app.dependency_overrides[get_store] = lambda: seeded_store
    with TestClient(app) as c:
        yield c


@pytest.fixture
def pm_headers():
    return auth_headers("u-pm")


@pytest.fixture
def director_headers():
    return auth_headers("u-director")


@pytest.fixture
def sub_headers():
    return auth_headers("u-sub")


@pytest.fixture
def admin_headers():
    return auth_headers("u-admin")
