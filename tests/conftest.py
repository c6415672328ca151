import os

# Settings are read at import time
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from daycare_portal.config import settings
from daycare_portal.core.dependencies import get_auth_service
from daycare_portal.database.supabase_client import get_service_supabase, get_supabase
from daycare_portal.main import app
from tests.fakes import FakeSupabase, FakeTokenVerifier

ADMIN = {"uid": "U1", "email": "ada.admin@example.com"}
PARENT = {"uid": "U2", "email": "pat.parent@example.com"}
IT = {"uid": "U3", "email": "ivan_it@example.com"}
EDUCATOR = {"uid": "U4", "email": "erin-educator@example.com"}
NEWCOMER = {"uid": "U9", "email": "john.doe@x.com"}

TOKENS = {
    "admin-token": ADMIN,
    "parent-token": PARENT,
    "it-token": IT,
    "educator-token": EDUCATOR,
    "new-token": NEWCOMER,
}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def seed_user(db: FakeSupabase, identity: dict, role: str, display_name: str = "", phone: str = "") -> dict:
    row = {
        "uid": identity["uid"],
        "email": identity["email"],
        "display_name": display_name or identity["email"].split("@")[0],
        "phone": phone,
        "role": role,
        "updated_at": "2024-01-01T00:00:00+00:00",
    }
    db.tables.setdefault(settings.users_table, []).append(row)
    return row


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    fake = FakeSupabase()
    seed_user(fake, ADMIN, "Admin", "Ada Admin")
    seed_user(fake, PARENT, "Parent", "Pat Parent", "555-0100")
    seed_user(fake, IT, "IT", "Ivan It")
    seed_user(fake, EDUCATOR, "Educator", "Erin Educator")
    return fake


@pytest.fixture
def overrides(db):
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_service_supabase] = lambda: db
    app.dependency_overrides[get_auth_service] = lambda: FakeTokenVerifier(TOKENS)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(overrides):
    with TestClient(overrides) as test_client:
        yield test_client
