"""
PortalAPI against the real app over an in-process transport.
"""
import httpx
import pytest

from daycare_portal.client.api import APIError, PortalAPI
from daycare_portal.config import settings

pytestmark = pytest.mark.anyio


def _api(app, token="parent-token"):
    return PortalAPI(lambda: token, base_url="http://portal.test", transport=httpx.ASGITransport(app=app))


async def test_bootstrap_reports_creation(overrides):
    async with _api(overrides, "new-token") as api:
        profile, created = await api.bootstrap_user()
        assert created is True
        assert profile.display_name == "John Doe"

        again, created = await api.bootstrap_user()
        assert created is False
        assert again.uid == profile.uid


async def test_update_profile_round_trip(overrides, db):
    async with _api(overrides) as api:
        profile = await api.update_profile(phone="555-0199")
        assert profile.phone == "555-0199"
        assert profile.display_name == "Pat Parent"
        assert (await api.get_profile()).phone == "555-0199"


async def test_async_token_provider(overrides):
    async def token():
        return "it-token"

    api = PortalAPI(token, base_url="http://portal.test", transport=httpx.ASGITransport(app=overrides))
    async with api:
        assert (await api.get_profile()).role == "IT"


async def test_error_response_becomes_api_error(overrides):
    async with _api(overrides) as api:
        with pytest.raises(APIError) as exc:
            await api.search_users("pat")
    assert exc.value.status == 403
    assert exc.value.category == "AuthorizationFailure"
    assert exc.value.message


async def test_missing_token_is_unauthenticated(overrides):
    async with _api(overrides, None) as api:
        with pytest.raises(APIError) as exc:
            await api.get_profile()
    assert exc.value.status == 401
    assert exc.value.category == "AuthenticationFailure"


async def test_admin_flow(overrides, db):
    async with _api(overrides, "admin-token") as api:
        users = await api.search_users("educator")
        assert [u.uid for u in users] == ["U4"]
        updated = await api.update_user_as_admin("U4", role="IT")
        assert updated.role == "IT"


async def test_issue_flow(overrides, db):
    async with _api(overrides) as parent:
        reported = await parent.report_issue("Door sensor", "Beeps all night")
    async with _api(overrides, "it-token") as it:
        issues = await it.get_issues()
        assert [i.id for i in issues] == [reported.id]
        resolved = await it.resolve_issue(reported.id)
        assert resolved.resolved is True
        assert await it.get_issues() == []
        assert len(await it.get_issues(include_resolved=True)) == 1
    assert db.rows(settings.issues_table)[0]["resolved"] is True


async def test_check_email(overrides):
    async with _api(overrides, None) as api:
        result = await api.check_email("nobody@example.com")
    assert result.exists is False
    assert result.auth_provider is None


async def test_no_response_is_network_failure():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with PortalAPI(lambda: "t", base_url="http://portal.test", transport=httpx.MockTransport(refuse)) as api:
        with pytest.raises(APIError) as exc:
            await api.get_profile()
    assert exc.value.status is None
    assert exc.value.category == "NetworkFailure"
    assert exc.value.message.startswith("No response from server")


async def test_non_json_error_body():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad Gateway"))
    async with PortalAPI(lambda: "t", base_url="http://portal.test", transport=transport) as api:
        with pytest.raises(APIError) as exc:
            await api.get_issues()
    assert exc.value.status == 502
    assert exc.value.category == "UpstreamFailure"
    assert exc.value.message == "An error occurred"


async def test_token_attached_as_bearer():
    seen = []

    def record(request):
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200, json={"user": {"uid": "U1", "email": "a@b.c", "role": "Parent"}})

    async with PortalAPI(lambda: "abc", base_url="http://portal.test", transport=httpx.MockTransport(record)) as api:
        await api.get_profile()
    assert seen == ["Bearer abc"]
