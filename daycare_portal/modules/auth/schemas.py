from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class EmailCheckResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    exists: bool
    auth_provider: Optional[str] = None  # password | google | other provider name
    has_password: bool = False
    has_google: bool = False
