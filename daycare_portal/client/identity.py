"""Client-side identity provider: Supabase Auth sessions for the signed-in user."""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from supabase import Client, create_client

from daycare_portal.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str


IdentityListener = Callable[[Optional[Identity]], None]


def identity_from_session(session: Any) -> Optional[Identity]:
    user = getattr(session, "user", None) if session is not None else None
    if user is None:
        return None
    return Identity(uid=user.id, email=user.email or "")


class SupabaseIdentity:
    """
    Thin wrapper over the Supabase Auth client.

    Listeners receive the restored identity (or None) immediately on
    subscribe, then again on every sign-in, token refresh or sign-out. They
    may be called from whichever thread performed the auth call.
    """

    def __init__(self, supabase: Optional[Client] = None):
        self.supabase = supabase or create_client(settings.supabase_url, settings.supabase_key)

    def current_identity(self) -> Optional[Identity]:
        try:
            session = self.supabase.auth.get_session()
        except Exception as e:
            logger.warning(f"Could not restore auth session: {e}")
            return None
        return identity_from_session(session)

    def get_token(self) -> Optional[str]:
        """Access token of the current session; the client refreshes it when close to expiry"""
        session = self.supabase.auth.get_session()
        return session.access_token if session else None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        def on_change(event, session):
            logger.debug(f"Auth state change: {event}")
            listener(identity_from_session(session))

        subscription = self.supabase.auth.on_auth_state_change(on_change)
        listener(self.current_identity())
        return subscription.unsubscribe

    def sign_up(self, email: str, password: str) -> Optional[Identity]:
        """None while the account waits for email confirmation (no session yet)"""
        response = self.supabase.auth.sign_up({"email": email, "password": password})
        return identity_from_session(response) if response.session else None

    def sign_in(self, email: str, password: str) -> Optional[Identity]:
        response = self.supabase.auth.sign_in_with_password({"email": email, "password": password})
        return identity_from_session(response)

    def sign_in_with_google(self, id_token: str) -> Optional[Identity]:
        """Federated sign-in with a Google ID token obtained by the caller"""
        response = self.supabase.auth.sign_in_with_id_token({"provider": "google", "token": id_token})
        return identity_from_session(response)

    def sign_out(self) -> None:
        self.supabase.auth.sign_out()
