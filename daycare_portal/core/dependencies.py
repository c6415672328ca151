"""
Core dependencies for route protection and role checking
"""

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from daycare_portal.config.permissions_config import (
    ADMIN_ROLES, ISSUE_MANAGER_ROLES, Role, parse_role,
)
from daycare_portal.core.exceptions import AuthenticationFailure, AuthorizationFailure
from daycare_portal.database.supabase_client import get_supabase, get_service_supabase
from daycare_portal.modules.auth.service import AuthService
from daycare_portal.modules.users.service import UserService
from supabase import Client
from typing import Any, Dict, Iterable, Optional
import logging

logger = logging.getLogger(__name__)

# auto_error is off so a missing header is reported as 401 in our own error format
security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_admin_auth_service(supabase: Client = Depends(get_service_supabase)) -> AuthService:
    return AuthService(supabase)


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Extract current user identity ({uid, email}) from the bearer token"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailure("No valid authorization token provided")
    return auth_service.get_current_user(credentials.credentials)


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache so the caller's profile is read once per request."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_caller_role(
    user_data: Dict[str, Any],
    service: UserService,
    cache: Optional[Dict[str, Any]] = None,
) -> Optional[Role]:
    """Stored role of the caller, or None when the caller has no profile or an unknown role."""
    if cache is not None and "role" in cache:
        return cache["role"]
    profile = service.find_by_uid(user_data["uid"])
    role = None
    if profile is not None:
        try:
            role = parse_role(profile.role)
        except ValueError:
            logger.warning("User %s has unknown stored role %r", user_data["uid"], profile.role)
    if cache is not None:
        cache["role"] = role
    return role


def require_role(allowed_roles: Iterable[Role]):
    """Factory function to create a role check dependency"""
    allowed = frozenset(allowed_roles)
    allowed_names = ", ".join(sorted(r.value for r in allowed))

    def check_role(
        request: Request,
        user_data: Dict[str, Any] = Depends(get_current_user),
        service: UserService = Depends(get_user_service)
    ) -> Dict[str, Any]:
        """Dependency to check that the caller's stored role is one of the allowed roles"""
        role = get_caller_role(user_data, service, _get_request_cache(request))
        if role is None or role not in allowed:
            logger.info("Role check failed for %s (role=%s, required one of %s)",
                        user_data["uid"], role.value if role else None, allowed_names)
            raise AuthorizationFailure(f"Insufficient permissions. Required role: {allowed_names}")
        return {**user_data, "role": role}
    return check_role


require_admin = require_role(ADMIN_ROLES)
require_issue_manager = require_role(ISSUE_MANAGER_ROLES)
