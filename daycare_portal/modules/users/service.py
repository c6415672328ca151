import logging
import re
from datetime import datetime, timezone
from supabase import Client
from daycare_portal.config.settings import settings
from daycare_portal.config.permissions_config import DEFAULT_ROLE
from daycare_portal.core.exceptions import (
    NotFound, PortalError, SelfEditForbidden, UpstreamFailure, ValidationFailure,
)
from daycare_portal.modules.users.schemas import AdminUserUpdate, ProfileUpdate, UserProfile
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

_NAME_SEPARATORS = re.compile(r"[._+\-]+")
# Characters that carry meaning inside a PostgREST or_() filter string
_FILTER_UNSAFE = re.compile(r"[,()*\\\"]")


def default_display_name(email: str) -> str:
    """Display name derived from the email local part: john.doe@x.com -> John Doe"""
    local_part = email.split("@", 1)[0]
    words = [w for w in _NAME_SEPARATORS.split(local_part) if w]
    if not words:
        return local_part
    return " ".join(w[:1].upper() + w[1:] for w in words)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.table = settings.users_table

    def _execute(self, query, failure_message: str):
        try:
            return query.execute()
        except PortalError:
            raise
        except Exception as e:
            logger.error(f"{failure_message}: {e}")
            raise UpstreamFailure(failure_message, details=str(e))

    def find_by_uid(self, uid: str) -> Optional[UserProfile]:
        """Get user profile by identity-provider uid, or None"""
        result = self._execute(
            self.supabase.table(self.table)
                .select("*")
                .eq("uid", uid)
                .limit(1),
            "Failed to retrieve user profile",
        )
        if not result.data:
            return None
        return UserProfile(**result.data[0])

    def get_profile(self, uid: str) -> UserProfile:
        profile = self.find_by_uid(uid)
        if profile is None:
            raise NotFound("User profile not found")
        return profile

    def bootstrap(self, uid: str, email: str) -> Tuple[UserProfile, bool]:
        """Return (profile, created). Creates the profile with defaults on first login."""
        existing = self.find_by_uid(uid)
        if existing is not None:
            return existing, False

        result = self._execute(
            self.supabase.table(self.table).insert({
                "uid": uid,
                "email": email,
                "display_name": default_display_name(email),
                "phone": "",
                "role": DEFAULT_ROLE.value,
                "updated_at": _now(),
            }),
            "Failed to create user record",
        )
        if not result.data:
            raise UpstreamFailure("Failed to create user record")
        logger.info(f"New user created: {email} ({uid})")
        return UserProfile(**result.data[0]), True

    def update_own_profile(self, uid: str, data: ProfileUpdate) -> UserProfile:
        """Self-service update: display name and phone only"""
        if data.model_extra and "role" in data.model_extra:
            logger.warning(f"Ignoring role in self-service profile update from {uid}")

        profile = self.get_profile(uid)
        update_data = {}
        if data.display_name is not None:
            update_data["display_name"] = data.display_name
        if data.phone is not None:
            update_data["phone"] = data.phone
        if not update_data:
            return profile
        return self._apply_update(profile, update_data, changed_by=uid)

    def admin_update_user(self, caller_uid: str, target_uid: str, data: AdminUserUpdate) -> UserProfile:
        """Admin update of another user's profile, including role"""
        if caller_uid == target_uid:
            raise SelfEditForbidden(
                "You cannot edit your own profile from the admin panel. Use the My Profile page."
            )

        update_data = {}
        if data.display_name is not None:
            update_data["display_name"] = data.display_name
        if data.phone is not None:
            update_data["phone"] = data.phone
        if data.role is not None:
            update_data["role"] = data.role.value
        if not update_data:
            raise ValidationFailure("No fields to update")

        profile = self.get_profile(target_uid)
        updated = self._apply_update(profile, update_data, changed_by=caller_uid)
        logger.info(f"Admin {caller_uid} updated user {target_uid}: {sorted(update_data)}")
        return updated

    def search_users(self, query: str, limit: Optional[int] = None) -> List[UserProfile]:
        """Case-insensitive substring match on email or display name, one entry per uid"""
        term = _FILTER_UNSAFE.sub(" ", query).strip()
        if not term:
            raise ValidationFailure("Search query must not be empty")

        result = self._execute(
            self.supabase.table(self.table)
                .select("*")
                .or_(f"email.ilike.*{term}*,display_name.ilike.*{term}*")
                .order("display_name")
                .limit(limit or settings.admin_search_limit),
            "Failed to search users",
        )
        users: List[UserProfile] = []
        seen = set()
        for row in result.data or []:
            if row.get("uid") in seen:
                continue
            seen.add(row.get("uid"))
            users.append(UserProfile(**row))
        return users

    def _apply_update(self, profile: UserProfile, update_data: Dict[str, Any], changed_by: str) -> UserProfile:
        update_data = {**update_data, "updated_at": _now()}
        result = self._execute(
            self.supabase.table(self.table)
                .update(update_data)
                .eq("uid", profile.uid),
            "Failed to update user profile",
        )
        if not result.data:
            raise NotFound("User profile not found")
        updated = UserProfile(**result.data[0])
        self._record_change(updated, changed_by)
        return updated

    def _record_change(self, profile: UserProfile, changed_by: str) -> None:
        """Append a snapshot to the change log. Best-effort: never fails the update."""
        try:
            self.supabase.table(settings.change_log_table).insert({
                "uid": profile.uid,
                "email": profile.email,
                "display_name": profile.display_name,
                "phone": profile.phone,
                "role": profile.role,
                "changed_by": changed_by,
                "changed_at": _now(),
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to write change log for {profile.uid}: {e}")
