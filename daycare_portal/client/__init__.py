"""Async client side of the portal: API client, session controller and pollers."""
from daycare_portal.client.api import APIError, PortalAPI
from daycare_portal.client.dashboards import Dashboard, dashboard_for
from daycare_portal.client.identity import Identity, SupabaseIdentity
from daycare_portal.client.issues import IssueFeed, IssueListState
from daycare_portal.client.session import SessionController, SessionState
from daycare_portal.client.storage import JsonFileStorage, MemoryStorage, open_storage

__all__ = [
    "APIError", "PortalAPI",
    "Dashboard", "dashboard_for",
    "Identity", "SupabaseIdentity",
    "IssueFeed", "IssueListState",
    "SessionController", "SessionState",
    "JsonFileStorage", "MemoryStorage", "open_storage",
]
