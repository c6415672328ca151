"""
Roles and Capabilities Configuration
This config defines the closed set of portal roles and what each of them may do.
Used by the route guards on the server and by the dashboard dispatch on the client.
"""
from enum import Enum
from typing import Dict, FrozenSet, List


class Role(str, Enum):
    PARENT = "Parent"
    EDUCATOR = "Educator"
    ADMIN = "Admin"
    IT = "IT"


# Lowest-privilege role, assigned on bootstrap
DEFAULT_ROLE = Role.PARENT

# Capabilities and what they unlock
CAPABILITIES = {
    "profile:self": "Read and edit own display name and phone",
    "issues:report": "Submit IT tickets",
    "issues:manage": "List and resolve IT tickets",
    "users:admin": "Search users and edit any other user's profile and role",
}

ROLE_CAPABILITIES: Dict[Role, FrozenSet[str]] = {
    Role.PARENT: frozenset({"profile:self", "issues:report"}),
    Role.EDUCATOR: frozenset({"profile:self", "issues:report"}),
    Role.IT: frozenset({"profile:self", "issues:report", "issues:manage"}),
    Role.ADMIN: frozenset({"profile:self", "issues:report", "issues:manage", "users:admin"}),
}

if set(ROLE_CAPABILITIES) != set(Role):
    raise RuntimeError("ROLE_CAPABILITIES must cover every Role")


def roles_with(capability: str) -> FrozenSet[Role]:
    """Roles granted the given capability"""
    if capability not in CAPABILITIES:
        raise KeyError(f"Unknown capability: {capability}")
    return frozenset(role for role, caps in ROLE_CAPABILITIES.items() if capability in caps)


ADMIN_ROLES = roles_with("users:admin")
ISSUE_MANAGER_ROLES = roles_with("issues:manage")


def parse_role(value: str) -> Role:
    """Parse a stored role string. Raises ValueError for anything outside the enum."""
    return Role(value)


def get_permission_matrix() -> Dict[str, List[dict]]:
    """
    Returns a dictionary with all capabilities and the roles holding them
    Format: {
        "capabilities": [{"name": "issues:manage", "description": "..."}, ...],
        "roles": [{"name": "IT", "capabilities": ["issues:manage", ...]}, ...]
    }
    """
    return {
        "capabilities": [
            {"name": name, "description": description}
            for name, description in CAPABILITIES.items()
        ],
        "roles": [
            {"name": role.value, "capabilities": sorted(caps)}
            for role, caps in ROLE_CAPABILITIES.items()
        ],
    }
