from datetime import date, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class ImageMetadata(CamelModel):
    format: str | None = None
    width: int | None = None
    height: int | None = None
    size: int | None = None
    uploaded_at: str | None = None


class ProfileResponse(CamelModel):
    id: int
    user_id: int
    name: str
    image: str | None = None
    image_metadata: ImageMetadata | None = None
    dob: date | None = None
    native_address: str | None = None
    current_address: str | None = None
    phone_country_code: str
    phone_number: str | None = None
    whatsapp_number: str | None = None
    email: str | None = None
    pan: str | None = None
    linkedin_url: str | None = None
    website_url: str | None = None
    occupation: str
    occupation_description: str | None = None
    support_stage_message: str | None = None
    membership_type: str
    mentorship_fields: list[str] = []
    previous_experience: str | None = None
    area_of_expertise: str | None = None
    available_for_mentorship: bool
    profile_verified: bool
    show_in_mentor_section: bool
    is_active: bool
    created_at: datetime
    last_updated: datetime


class AdminProfileResponse(ProfileResponse):
    image_public_id: str | None = None


class MentorCard(CamelModel):
    id: int
    name: str
    image: str | None = None
    occupation: str
    occupation_description: str | None = None
    area_of_expertise: str | None = None
    mentorship_fields: list[str] = []
    previous_experience: str | None = None
    linkedin_url: str | None = None
    website_url: str | None = None
    available_for_mentorship: bool
    profile_verified: bool


class MentorDetail(MentorCard):
    email: str | None = None
    phone_country_code: str | None = None
    phone_number: str | None = None


class MentorVisibilityUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    show_in_mentor_section: bool


class ProfileVerificationUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    profile_verified: bool
