from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime

from daycare_portal.config.permissions_config import Role

# JSON bodies use camelCase (displayName, updatedAt); python code uses snake_case
_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserProfile(BaseModel):
    model_config = _camel

    uid: str
    email: str
    display_name: str = ""
    phone: str = ""
    role: str = ""
    updated_at: Optional[datetime] = None

    @field_validator("display_name", "phone", "role", mode="before")
    @classmethod
    def _blank_for_missing(cls, value):
        return "" if value is None else value


class ProfileUpdate(BaseModel):
    """Self-service update. Unknown keys (e.g. role) are kept aside so they can be reported, never written."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class AdminUserUpdate(BaseModel):
    model_config = _camel

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    role: Optional[Role] = None


class UserEnvelope(BaseModel):
    message: Optional[str] = None
    user: UserProfile


class UserSearchResponse(BaseModel):
    users: List[UserProfile]
    count: int
