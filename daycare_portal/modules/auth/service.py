import hashlib
import logging
import time
from supabase import Client
from daycare_portal.config.settings import settings
from daycare_portal.core.exceptions import AuthenticationFailure, UpstreamFailure
from daycare_portal.modules.auth.schemas import EmailCheckResponse
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. dashboards polling with the same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_MAX_SIZE = 500

_LIST_USERS_PAGE_SIZE = 1000
_LIST_USERS_MAX_PAGES = 50


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Verify a bearer token with Supabase Auth and return the caller's identity. Uses short TTL cache."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _AUTH_USER_CACHE:
            user_data, expiry = _AUTH_USER_CACHE[cache_key]
            if now < expiry:
                return user_data
            del _AUTH_USER_CACHE[cache_key]
        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.warning("Token verification failed: %s", e)
            raise AuthenticationFailure("Invalid or expired token")
        if not user_response or not user_response.user:
            raise AuthenticationFailure("Invalid or expired token")
        user = user_response.user
        if not user.email:
            raise AuthenticationFailure("Token carries no email address")
        user_data = {
            "uid": user.id,
            "email": user.email,
            "app_metadata": user.app_metadata or {},
        }
        if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
            _AUTH_USER_CACHE[cache_key] = (user_data, now + settings.auth_cache_ttl_seconds)
        return user_data

    def find_auth_user_by_email(self, email: str) -> Optional[Any]:
        """Look up an auth account by email via the admin API (requires service role key)"""
        wanted = email.strip().lower()
        try:
            for page in range(1, _LIST_USERS_MAX_PAGES + 1):
                users = self.supabase.auth.admin.list_users(page=page, per_page=_LIST_USERS_PAGE_SIZE)
                for user in users:
                    if (user.email or "").lower() == wanted:
                        return user
                if len(users) < _LIST_USERS_PAGE_SIZE:
                    break
        except Exception as e:
            raise UpstreamFailure("Failed to look up account", details=str(e))
        return None

    def check_email(self, email: str) -> EmailCheckResponse:
        """Report whether an account exists for the email and how it signs in"""
        user = self.find_auth_user_by_email(email)
        if user is None:
            return EmailCheckResponse(exists=False)
        providers = _providers_of(user)
        has_password = "email" in providers
        has_google = "google" in providers
        primary = (user.app_metadata or {}).get("provider") or (providers[0] if providers else None)
        return EmailCheckResponse(
            exists=True,
            auth_provider="password" if primary == "email" else primary,
            has_password=has_password,
            has_google=has_google,
        )


def _providers_of(user: Any) -> List[str]:
    app_metadata = user.app_metadata or {}
    providers = list(app_metadata.get("providers") or [])
    if not providers and app_metadata.get("provider"):
        providers.append(app_metadata["provider"])
    for identity in getattr(user, "identities", None) or []:
        if identity.provider not in providers:
            providers.append(identity.provider)
    return providers
