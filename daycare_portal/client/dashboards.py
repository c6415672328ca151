"""Which dashboard each role lands on, and what it shows."""
from dataclasses import dataclass
from typing import Dict, Optional

from daycare_portal.config.permissions_config import ROLE_CAPABILITIES, Role


@dataclass(frozen=True)
class Dashboard:
    name: str
    title: str
    can_submit_tickets: bool
    can_manage_issues: bool
    can_manage_users: bool


def _dashboard(role: Role, name: str, title: str) -> Dashboard:
    caps = ROLE_CAPABILITIES[role]
    return Dashboard(
        name=name,
        title=title,
        can_submit_tickets="issues:report" in caps,
        can_manage_issues="issues:manage" in caps,
        can_manage_users="users:admin" in caps,
    )


DASHBOARDS: Dict[Role, Dashboard] = {
    Role.PARENT: _dashboard(Role.PARENT, "parent", "Parent Portal"),
    Role.EDUCATOR: _dashboard(Role.EDUCATOR, "educator", "Educator Portal"),
    Role.ADMIN: _dashboard(Role.ADMIN, "admin", "Admin Portal"),
    Role.IT: _dashboard(Role.IT, "it", "IT Portal"),
}

if set(DASHBOARDS) != set(Role):
    raise RuntimeError("DASHBOARDS must cover every Role")


def dashboard_for(role: Optional[Role]) -> Optional[Dashboard]:
    """None while no profile (or an unknown role) is loaded"""
    if role is None:
        return None
    return DASHBOARDS[role]
