import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.profile import MentorshipKeyword, Profile
from app.services.errors import NotFound, PersistenceFailed, StorageConflict, ValidationFailed
from app.services.profile_validator import normalize_keywords, validate

logger = logging.getLogger(__name__)

# wire name -> column
FIELD_COLUMNS = {
    "name": "name",
    "dob": "dob",
    "nativeAddress": "native_address",
    "currentAddress": "current_address",
    "phoneNumber": "phone_number",
    "whatsappNumber": "whatsapp_number",
    "email": "email",
    "pan": "pan",
    "linkedinUrl": "linkedin_url",
    "websiteUrl": "website_url",
    "occupation": "occupation",
    "occupationDescription": "occupation_description",
    "supportStageMessage": "support_stage_message",
    "membershipType": "membership_type",
    "previousExperience": "previous_experience",
    "areaOfExpertise": "area_of_expertise",
}
UNIQUE_COLUMNS = ("user_id", "pan")
DEFAULT_COUNTRY_CODE = "+91"


class ImageAction(str, Enum):
    keep = "keep"
    set = "set"
    clear = "clear"


@dataclass(frozen=True)
class ImageChange:
    action: ImageAction
    url: str | None = None
    external_id: str | None = None
    metadata: dict | None = None

    @classmethod
    def keep(cls) -> "ImageChange":
        return cls(ImageAction.keep)

    @classmethod
    def clear(cls) -> "ImageChange":
        return cls(ImageAction.clear)

    @classmethod
    def set(cls, url: str, external_id: str, metadata: dict) -> "ImageChange":
        if not (url and external_id and metadata):
            raise ValueError("A new image needs url, external id and metadata together")
        return cls(ImageAction.set, url, external_id, metadata)


@dataclass
class ProfileRecord:
    """Full replacement of the member-owned fields of a profile.

    Every field the member controls is rewritten; a missing optional field
    is stored as empty. Admin-owned flags (verification, mentor visibility,
    active) are never part of the record.
    """

    fields: dict
    image: ImageChange = field(default_factory=ImageChange.keep)


def _conflicting_columns(error: IntegrityError) -> list[str]:
    text = str(error.orig).lower()
    return [column for column in UNIQUE_COLUMNS if re.search(rf"(?<![a-z]){column}(?![a-z])", text)]


class ProfileRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: int) -> Profile | None:
        return self.db.query(Profile).filter(Profile.user_id == user_id).first()

    def get_by_id(self, profile_id: int, active_only: bool = True) -> Profile | None:
        query = self.db.query(Profile).filter(Profile.id == profile_id)
        if active_only:
            query = query.filter(Profile.is_active == True)
        return query.first()

    def save(self, user_id: int, record: ProfileRecord, existing: Profile | None) -> tuple[Profile, bool]:
        """Insert or replace; returns the stored profile and whether it was created."""
        if existing is None:
            return self.insert(user_id, record)
        return self.replace(user_id, record), False

    def insert(self, user_id: int, record: ProfileRecord) -> tuple[Profile, bool]:
        self._check(record)
        profile = Profile(user_id=user_id)
        self._apply(profile, record)
        self.db.add(profile)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if "user_id" in _conflicting_columns(exc):
                # Another request created the row first; last writer wins.
                logger.info("Profile for user %s was created concurrently; replacing it", user_id)
                return self.replace(user_id, record), False
            raise self._integrity_failure(exc) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to create profile for user %s", user_id)
            raise PersistenceFailed("Failed to create profile") from exc
        self.db.refresh(profile)
        return profile, True

    def replace(self, user_id: int, record: ProfileRecord) -> Profile:
        self._check(record)
        profile = self.get_by_user(user_id)
        if not profile:
            raise NotFound("Profile not found")
        self._apply(profile, record)
        return self._commit(profile, "update profile")

    def set_image(self, user_id: int, change: ImageChange) -> Profile:
        profile = self.get_by_user(user_id)
        if not profile:
            raise NotFound("Profile not found")
        self._apply_image(profile, change)
        return self._commit(profile, "update profile image")

    def clear_image(self, user_id: int) -> Profile:
        return self.set_image(user_id, ImageChange.clear())

    def delete(self, user_id: int) -> str | None:
        """Hard delete; returns the external id of the image that was attached."""
        profile = self.get_by_user(user_id)
        if not profile:
            raise NotFound("Profile not found")
        image_public_id = profile.image_public_id
        self.db.delete(profile)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to delete profile for user %s", user_id)
            raise PersistenceFailed("Failed to delete profile") from exc
        return image_public_id

    def set_active(self, profile_id: int, active: bool) -> Profile:
        profile = self.get_by_id(profile_id, active_only=False)
        if not profile:
            raise NotFound("Profile not found")
        profile.is_active = active
        return self._commit(profile, "update profile status")

    def set_verified(self, profile_id: int, verified: bool) -> Profile:
        profile = self.get_by_id(profile_id)
        if not profile:
            raise NotFound("Profile not found or has been deleted")
        profile.profile_verified = verified
        return self._commit(profile, "update profile verification")

    def set_mentor_visibility(self, profile: Profile, show: bool) -> Profile:
        profile.show_in_mentor_section = show
        return self._commit(profile, "update mentor visibility")

    @staticmethod
    def _check(record: ProfileRecord) -> None:
        errors = validate(record.fields)
        if errors:
            raise ValidationFailed(errors)

    def _apply(self, profile: Profile, record: ProfileRecord) -> None:
        fields = record.fields
        for key, column in FIELD_COLUMNS.items():
            setattr(profile, column, fields.get(key))
        profile.phone_country_code = fields.get("phoneCountryCode") or DEFAULT_COUNTRY_CODE
        profile.available_for_mentorship = fields.get("availableForMentorship") is True
        self._apply_keywords(profile, normalize_keywords(fields.get("mentorshipFields")) or [])

        if profile.membership_type != "Mentor":
            profile.show_in_mentor_section = False

        self._apply_image(profile, record.image)
        profile.last_updated = datetime.utcnow()

    @staticmethod
    def _apply_keywords(profile: Profile, keywords: list[str]) -> None:
        # Reuse rows for keywords that survive so the (profile, keyword)
        # unique constraint never sees an insert before the matching delete.
        current = {row.keyword: row for row in profile.keywords}
        rows = []
        for position, keyword in enumerate(keywords):
            row = current.get(keyword) or MentorshipKeyword(keyword=keyword)
            row.position = position
            rows.append(row)
        profile.keywords = rows

    @staticmethod
    def _apply_image(profile: Profile, change: ImageChange) -> None:
        if change.action == ImageAction.keep:
            return
        if change.action == ImageAction.clear:
            profile.image = None
            profile.image_public_id = None
            profile.image_metadata = None
            return
        profile.image = change.url
        profile.image_public_id = change.external_id
        profile.image_metadata = dict(change.metadata)

    def _commit(self, profile: Profile, action: str) -> Profile:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._integrity_failure(exc) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to %s", action)
            raise PersistenceFailed(f"Failed to {action}") from exc
        self.db.refresh(profile)
        return profile

    @staticmethod
    def _integrity_failure(error: IntegrityError) -> Exception:
        columns = [column for column in _conflicting_columns(error) if column != "user_id"]
        if columns:
            return StorageConflict(fields=columns)
        logger.error("Profile integrity error: %s", error.orig)
        return PersistenceFailed("Failed to save profile")
