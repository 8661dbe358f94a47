from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

from app.schemas.profile import CamelModel


class MentorRequestCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mentor_id: int
    message: str | None = Field(None, max_length=2000)


class MentorRequestResponse(CamelModel):
    id: int
    user_id: int
    mentor_profile_id: int
    message: str | None = None
    status: str
    responded_at: datetime | None = None
    created_at: datetime
