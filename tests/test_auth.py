"""
Token verification and the public pre-signup email lookup.
"""
from types import SimpleNamespace

import pytest

from daycare_portal.core.exceptions import AuthenticationFailure
from daycare_portal.modules.auth.service import AuthService, clear_auth_cache
from tests.fakes import FakeSupabase, auth_user


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


def test_get_current_user_maps_identity_and_caches():
    supabase = FakeSupabase()
    supabase.auth.tokens["good"] = SimpleNamespace(id="U7", email="kim@example.com", app_metadata={})
    service = AuthService(supabase)

    assert service.get_current_user("good") == {"uid": "U7", "email": "kim@example.com", "app_metadata": {}}
    service.get_current_user("good")
    assert supabase.auth.get_user_calls == 1


def test_get_current_user_rejects_bad_token():
    service = AuthService(FakeSupabase())
    with pytest.raises(AuthenticationFailure) as exc:
        service.get_current_user("forged")
    assert exc.value.status_code == 401


def test_check_email_unknown(client):
    r = client.get("/api/check-email", params={"email": "ghost@example.com"})
    assert r.status_code == 200
    assert r.json() == {"exists": False, "authProvider": None, "hasPassword": False, "hasGoogle": False}


def test_check_email_password_account(client, db):
    db.auth.admin.users.append(auth_user("U2", "Pat.Parent@example.com"))
    r = client.get("/api/check-email", params={"email": "pat.parent@example.com"})
    assert r.json() == {"exists": True, "authProvider": "password", "hasPassword": True, "hasGoogle": False}


def test_check_email_google_account(client, db):
    db.auth.admin.users.append(auth_user("U5", "gina@example.com", providers=("google",)))
    r = client.get("/api/check-email", params={"email": "gina@example.com"})
    assert r.json() == {"exists": True, "authProvider": "google", "hasPassword": False, "hasGoogle": True}


def test_check_email_both_providers(client, db):
    db.auth.admin.users.append(auth_user("U6", "both@example.com", providers=("email", "google")))
    body = client.get("/api/check-email", params={"email": "both@example.com"}).json()
    assert body["hasPassword"] is True
    assert body["hasGoogle"] is True


def test_check_email_requires_email(client):
    r = client.get("/api/check-email")
    assert r.status_code == 400
