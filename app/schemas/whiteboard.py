from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.schemas.profile import CamelModel, ImageMetadata


class WhiteboardCategory(str, Enum):
    startup_news = "startup_news"
    services_wanted = "services_wanted"
    services_offering = "services_offering"


class WhiteboardStatus(str, Enum):
    pending = "pending"
    active = "active"
    rejected = "rejected"
    archived = "archived"


class WhiteboardPostResponse(CamelModel):
    id: int
    category: WhiteboardCategory
    title: str
    description: str
    website_url: str | None = None
    created_by: int
    image_url: str | None = None
    image_metadata: ImageMetadata | None = None
    status: WhiteboardStatus
    is_featured: bool
    views: int
    created_at: datetime
    updated_at: datetime


class WhiteboardStatusUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: WhiteboardStatus
    admin_notes: str | None = None
