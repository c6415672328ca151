"""Async HTTP client for the portal API."""
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import httpx

from daycare_portal.config import settings
from daycare_portal.modules.auth.schemas import EmailCheckResponse
from daycare_portal.modules.issues.schemas import IssueResponse
from daycare_portal.modules.users.schemas import UserProfile

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class APIError(Exception):
    """An API call failed. ``status`` is None when no response was received."""

    def __init__(self, message: str, status: Optional[int] = None,
                 category: str = "NetworkFailure", details: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.category = category
        self.details = details

    def __repr__(self):
        return f"APIError(status={self.status!r}, category={self.category!r}, message={self.message!r})"


class PortalAPI:
    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json"},
            event_hooks={"request": [self._attach_token]},
        )

    async def __aenter__(self) -> "PortalAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _attach_token(self, request: httpx.Request) -> None:
        token = self._token_provider()
        if inspect.isawaitable(token):
            token = await token
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise APIError(
                "No response from server. Please check if the server is running.",
                details=str(e),
            ) from e
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            logger.debug(f"{method} {url} failed with {response.status_code}: {body.get('error')}")
            raise APIError(
                body.get("message") or "An error occurred",
                status=response.status_code,
                category=body.get("error") or "UpstreamFailure",
                details=body.get("details"),
            )
        return response

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        response = await self._send(method, url, **kwargs)
        return response.json()

    # Profile

    async def bootstrap_user(self) -> Tuple[UserProfile, bool]:
        """Fetch-or-create the caller's profile. Returns (profile, created)."""
        response = await self._send("POST", "/api/bootstrap")
        return UserProfile.model_validate(response.json()["user"]), response.status_code == 201

    async def get_profile(self) -> UserProfile:
        data = await self._request("GET", "/api/profile")
        return UserProfile.model_validate(data["user"])

    async def update_profile(self, display_name: Optional[str] = None,
                             phone: Optional[str] = None) -> UserProfile:
        payload = {}
        if display_name is not None:
            payload["displayName"] = display_name
        if phone is not None:
            payload["phone"] = phone
        data = await self._request("PUT", "/api/profile", json=payload)
        return UserProfile.model_validate(data["user"])

    async def check_email(self, email: str) -> EmailCheckResponse:
        data = await self._request("GET", "/api/check-email", params={"email": email})
        return EmailCheckResponse.model_validate(data)

    # Admin

    async def search_users(self, query: str) -> List[UserProfile]:
        data = await self._request("GET", "/api/admin/users/search", params={"q": query})
        return [UserProfile.model_validate(u) for u in data.get("users", [])]

    async def update_user_as_admin(self, uid: str, display_name: Optional[str] = None,
                                   phone: Optional[str] = None, role: Optional[str] = None) -> UserProfile:
        payload = {}
        if display_name is not None:
            payload["displayName"] = display_name
        if phone is not None:
            payload["phone"] = phone
        if role is not None:
            payload["role"] = getattr(role, "value", role)
        data = await self._request("PUT", f"/api/admin/users/{uid}", json=payload)
        return UserProfile.model_validate(data["user"])

    # Issues

    async def report_issue(self, issue: str, description: str) -> IssueResponse:
        data = await self._request("POST", "/api/issues", json={"issue": issue, "description": description})
        return IssueResponse.model_validate(data["issue"])

    async def get_issues(self, include_resolved: bool = False) -> List[IssueResponse]:
        data = await self._request(
            "GET", "/api/issues",
            params={"includeResolved": "true" if include_resolved else "false"},
        )
        return [IssueResponse.model_validate(i) for i in data.get("issues", [])]

    async def resolve_issue(self, issue_id: str) -> IssueResponse:
        data = await self._request("PUT", f"/api/issues/{issue_id}/resolve")
        return IssueResponse.model_validate(data["issue"])
