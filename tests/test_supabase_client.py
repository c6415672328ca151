import pytest

from daycare_portal.config import settings
from daycare_portal.database import supabase_client
from daycare_portal.database.supabase_client import SupabaseClient, get_service_supabase, get_supabase


@pytest.fixture
def created(monkeypatch):
    calls = []

    def fake_create_client(url, key):
        calls.append(key)
        return object()

    monkeypatch.setattr(supabase_client, "create_client", fake_create_client)
    monkeypatch.setattr(settings, "supabase_url", "https://project.supabase.co")
    monkeypatch.setattr(settings, "supabase_key", "anon-key")
    SupabaseClient.reset_client()
    yield calls
    SupabaseClient.reset_client()


def test_client_is_created_once_until_reset(created):
    first = get_supabase()
    assert get_supabase() is first
    assert created == ["anon-key"]

    SupabaseClient.reset_client()
    assert get_supabase() is not first
    assert created == ["anon-key", "anon-key"]


def test_service_client_falls_back_to_anon_without_service_key(created, monkeypatch):
    monkeypatch.setattr(settings, "supabase_service_role_key", None)
    assert get_service_supabase() is get_supabase()


def test_service_client_uses_service_key(created, monkeypatch):
    monkeypatch.setattr(settings, "supabase_service_role_key", "service-key")
    service = get_service_supabase()
    assert service is not get_supabase()
    assert created == ["service-key", "anon-key"]
