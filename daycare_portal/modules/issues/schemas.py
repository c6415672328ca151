from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime


class IssueCreate(BaseModel):
    issue: str = Field(..., max_length=200)
    description: str = Field(..., max_length=5000)

    @field_validator("issue", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class IssueResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    issue: str
    description: str = ""
    resolved: bool = False
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value) -> str:
        return str(value)

    @field_validator("description", mode="before")
    @classmethod
    def _blank_for_missing(cls, value):
        return "" if value is None else value


class IssueEnvelope(BaseModel):
    message: Optional[str] = None
    issue: IssueResponse


class IssueListResponse(BaseModel):
    issues: List[IssueResponse]
    count: int
