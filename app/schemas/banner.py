from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.profile import CamelModel, ImageMetadata


class BannerResponse(CamelModel):
    id: int
    title: str
    description: str
    image_url: str
    image_metadata: ImageMetadata
    links: list[str] = []
    email: str | None = None
    phone_number: str | None = None
    tags: list[str] = []
    priority: int
    is_active: bool
    views: int
    clicks: int
    created_at: datetime
    updated_at: datetime


class UploadInitRequest(BaseModel):
    file_name: str = Field(..., alias="fileName", min_length=1)
    file_size: int = Field(..., alias="fileSize", gt=0)
    total_chunks: int = Field(1, alias="totalChunks", ge=1)
