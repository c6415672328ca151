"""
Session/profile synchronization for a signed-in portal user.

``SessionController`` owns one ``SessionState`` snapshot. Callers read it with
``snapshot()``, observe it with ``subscribe()`` and change it only through the
command coroutines (``login``, ``signup``, ``logout``, ``refresh_profile``...).

Identity changes from the provider are applied one at a time in arrival
order. A sign-out event is treated as transient while the persisted
last-activity timestamp is within the session timeout: the profile is kept
in memory so a provider blip does not log the user out of the UI.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Set

from daycare_portal.client.api import APIError, PortalAPI
from daycare_portal.client.identity import Identity, SupabaseIdentity
from daycare_portal.client.polling import PeriodicTask
from daycare_portal.client.storage import (
    LAST_ACTIVITY_KEY, PENDING_DISPLAY_NAME_KEY, PENDING_PHONE_KEY, SESSION_KEYS,
    MemoryStorage, open_storage,
)
from daycare_portal.config import settings
from daycare_portal.config.permissions_config import Role, parse_role
from daycare_portal.modules.users.schemas import UserProfile

logger = logging.getLogger(__name__)

ACTIVITY_EVENTS = frozenset({"pointerdown", "keydown", "scroll", "touchstart"})


@dataclass(frozen=True)
class SessionState:
    identity: Optional[Identity] = None
    profile: Optional[UserProfile] = None
    loading: bool = True
    syncing: bool = False
    error: Optional[str] = None
    consecutive_failures: int = 0

    @property
    def role(self) -> Optional[Role]:
        if self.profile is None:
            return None
        try:
            return parse_role(self.profile.role)
        except ValueError:
            return None


SessionListener = Callable[[SessionState], None]


class SessionController:
    def __init__(
        self,
        api: PortalAPI,
        identity: SupabaseIdentity,
        storage: Optional[MemoryStorage] = None,
        *,
        refresh_interval: Optional[float] = None,
        session_timeout: Optional[float] = None,
        activity_throttle: Optional[float] = None,
        failure_threshold: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._api = api
        self._identity = identity
        self._storage = storage if storage is not None else MemoryStorage()
        self.session_timeout = session_timeout if session_timeout is not None else settings.session_timeout_seconds
        self.activity_throttle = (
            activity_throttle if activity_throttle is not None else settings.activity_throttle_seconds
        )
        self.failure_threshold = failure_threshold or settings.silent_failure_threshold
        self._clock = clock

        self._state = SessionState()
        self._listeners: List[SessionListener] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe_identity: Optional[Callable[[], None]] = None
        self._identity_lock = asyncio.Lock()
        self._reconcile_lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._pending: Set[asyncio.Task] = set()
        self._alive = True
        self._poller = PeriodicTask(
            self._silent_refresh,
            refresh_interval if refresh_interval is not None else settings.profile_sync_interval_seconds,
            name="profile-sync",
        )

    # Read side

    def snapshot(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Session listener failed")

    # Lifecycle

    async def start(self) -> None:
        """Subscribe to the identity provider; the restored session is applied right away."""
        self._loop = asyncio.get_running_loop()
        self._unsubscribe_identity = self._identity.subscribe(self._on_identity_event)

    async def wait_until_ready(self) -> SessionState:
        await self._ready.wait()
        return self._state

    async def close(self) -> None:
        self._alive = False
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        await self._poller.stop()
        pending = [task for task in self._pending if task is not asyncio.current_task()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._listeners.clear()

    @property
    def polling(self) -> bool:
        return self._poller.running

    # Identity changes

    def _on_identity_event(self, identity: Optional[Identity]) -> None:
        # Called by the provider, possibly from a worker thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_identity_change, identity)

    def _schedule_identity_change(self, identity: Optional[Identity]) -> None:
        if not self._alive:
            return
        task = self._loop.create_task(self._apply_identity_event(identity))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _apply_identity_event(self, identity: Optional[Identity]) -> None:
        try:
            await self.handle_identity_change(identity)
        except APIError:
            # Already recorded in state.error; nobody awaits provider events
            pass

    async def handle_identity_change(self, identity: Optional[Identity]) -> Optional[UserProfile]:
        """Apply a sign-in/sign-out. Raises APIError when bootstrapping the profile fails."""
        async with self._identity_lock:
            if not self._alive:
                return None
            if identity is None:
                await self._poller.stop()
                if self._state.profile is not None and self.session_is_fresh():
                    logger.info("Signed-out event inside the session window; keeping profile")
                    self._update(identity=None, loading=False)
                else:
                    self._update(identity=None, profile=None, loading=False, syncing=False)
                self._ready.set()
                return None

            current = self._state
            if (current.identity == identity and current.profile is not None
                    and current.profile.uid == identity.uid):
                self._poller.start()
                return current.profile

            kept = current.profile if current.profile is not None and current.profile.uid == identity.uid else None
            self._update(identity=identity, profile=kept, error=None)
            self.touch_session()
            try:
                profile = await self.refresh_profile()
            except APIError:
                # Rejoining after a transient sign-out: keep refreshing in the background
                if kept is not None and self._alive:
                    self._poller.start()
                raise
            finally:
                if self._alive:
                    self._update(loading=False)
                    self._ready.set()
            if self._alive and self._state.identity is not None:
                self._poller.start()
            return profile

    # Profile

    async def refresh_profile(self, silent: bool = False) -> Optional[UserProfile]:
        """Fetch-or-create the profile and apply pending signup details.

        Non-silent refreshes toggle ``syncing`` and raise on failure. Silent
        refreshes only log failures and never touch the current profile.
        """
        if not silent:
            self._update(syncing=True)
        try:
            profile, created = await self._api.bootstrap_user()
            if created:
                logger.info(f"Created profile for {profile.email}")
            profile = await self._apply_pending_fields(profile)
        except APIError as e:
            if not self._alive:
                return None
            if silent:
                self._record_silent_failure(e)
                return None
            logger.error(f"Error fetching user profile: {e.message}")
            self._update(error=e.message)
            raise
        finally:
            if not silent and self._alive:
                self._update(syncing=False)

        if not self._alive:
            return None
        identity = self._state.identity
        if identity is not None and identity.uid != profile.uid:
            logger.debug("Discarding profile fetched for a previous identity")
            return None
        self._update(profile=profile, error=None, consecutive_failures=0)
        return profile

    async def _silent_refresh(self) -> None:
        if self._state.identity is None or self._state.loading:
            return
        await self.refresh_profile(silent=True)

    def _record_silent_failure(self, error: APIError) -> None:
        failures = self._state.consecutive_failures + 1
        if failures == self.failure_threshold:
            logger.error(f"Background profile sync failed {failures} times in a row: {error.message}")
        else:
            logger.warning(f"Background profile sync failed: {error.message}")
        self._update(consecutive_failures=failures)

    async def _apply_pending_fields(self, profile: UserProfile) -> UserProfile:
        """Push display name/phone captured at signup, once."""
        async with self._reconcile_lock:
            # Claimed from storage before the update so another session sharing it cannot apply them too
            pending = self._storage.take(PENDING_DISPLAY_NAME_KEY, PENDING_PHONE_KEY)
            display_name = pending.get(PENDING_DISPLAY_NAME_KEY)
            phone = pending.get(PENDING_PHONE_KEY)
            if not display_name and not phone:
                return profile
            try:
                updated = await self._api.update_profile(
                    display_name=display_name or None,
                    phone=phone or None,
                )
            except BaseException:
                self._storage.restore(pending)
                raise
            logger.info(f"Applied pending signup details to profile {updated.uid}")
            return updated

    # Session window

    def touch_session(self) -> None:
        self._storage.set(LAST_ACTIVITY_KEY, self._clock())

    def session_is_fresh(self) -> bool:
        last = self._storage.get(LAST_ACTIVITY_KEY)
        if last is None:
            return False
        return self._clock() - float(last) < self.session_timeout

    def record_activity(self, event_type: str) -> bool:
        """Extend the session on user interaction. Returns True when the timestamp was written."""
        if event_type not in ACTIVITY_EVENTS or self._state.identity is None:
            return False
        now = self._clock()
        last = self._storage.get(LAST_ACTIVITY_KEY)
        if last is not None and now - float(last) < self.activity_throttle:
            return False
        self._storage.set(LAST_ACTIVITY_KEY, now)
        return True

    # Commands

    async def signup(self, email: str, password: str, display_name: Optional[str] = None,
                     phone: Optional[str] = None) -> Optional[UserProfile]:
        """Create an account. Name and phone are stored until the profile exists."""
        if display_name and display_name.strip():
            self._storage.set(PENDING_DISPLAY_NAME_KEY, display_name.strip())
        if phone and phone.strip():
            self._storage.set(PENDING_PHONE_KEY, phone.strip())
        self._update(error=None)
        try:
            identity = await asyncio.to_thread(self._identity.sign_up, email, password)
        except Exception as e:
            self._storage.remove(PENDING_DISPLAY_NAME_KEY, PENDING_PHONE_KEY)
            self._update(error=str(e))
            raise
        if identity is None:
            # Email confirmation pending; details are applied on first sign-in
            return None
        return await self.handle_identity_change(identity)

    async def login(self, email: str, password: str) -> Optional[UserProfile]:
        self._update(error=None)
        try:
            identity = await asyncio.to_thread(self._identity.sign_in, email, password)
        except Exception as e:
            self._update(error=str(e))
            raise
        return await self.handle_identity_change(identity)

    async def sign_in_with_google(self, id_token: str) -> Optional[UserProfile]:
        self._update(error=None)
        try:
            identity = await asyncio.to_thread(self._identity.sign_in_with_google, id_token)
        except Exception as e:
            self._update(error=str(e))
            raise
        return await self.handle_identity_change(identity)

    async def logout(self) -> None:
        """Revoke the provider session and forget everything about it locally."""
        self._update(error=None)
        try:
            await asyncio.to_thread(self._identity.sign_out)
        except Exception as e:
            self._update(error=str(e))
            raise
        async with self._identity_lock:
            self._storage.remove(*SESSION_KEYS)
            self._update(identity=None, profile=None, syncing=False, consecutive_failures=0)
            await self._poller.stop()


def create_session(storage_path: Optional[str] = None,
                   identity: Optional[SupabaseIdentity] = None) -> SessionController:
    """Wire a controller against the configured Supabase project and API"""
    identity = identity or SupabaseIdentity()
    # get_session() may refresh the token over the network
    api = PortalAPI(lambda: asyncio.to_thread(identity.get_token))
    return SessionController(api, identity, open_storage(storage_path or settings.session_storage_path))
