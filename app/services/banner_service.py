import logging
from urllib.parse import urlparse

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.banner import Banner
from app.services.errors import (
    FieldError,
    ImageRejected,
    NotFound,
    PersistenceFailed,
    StorageConflict,
    ValidationFailed,
)
from app.services.image_store import BANNER_IMAGE, ImageStore, UploadResult
from app.services.image_uploads import ImageUpload, discard_image, upload_image
from app.services.mentor_directory import like_pattern
from app.services.profile_validator import EMAIL_PATTERN, PHONE_PATTERN
from app.services.upload_progress import UploadProgressCache

logger = logging.getLogger(__name__)

BANNER_FOLDER = "banners"
EDITABLE_FIELDS = ("title", "description", "links", "email", "phone_number", "tags", "priority", "is_active")


def is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_banner(fields: dict, partial: bool = False) -> list[FieldError]:
    errors = []
    title = fields.get("title")
    if title is None:
        if not partial:
            errors.append(FieldError("title", "Title is required"))
    elif not 3 <= len(title) <= 100:
        errors.append(FieldError("title", "Title must be between 3 and 100 characters"))

    if len(fields.get("description") or "") > 500:
        errors.append(FieldError("description", "Description cannot exceed 500 characters"))

    for link in fields.get("links") or []:
        if not is_absolute_url(link):
            errors.append(FieldError("links", f"Invalid URL: {link}"))

    email = fields.get("email")
    if email and not EMAIL_PATTERN.match(email):
        errors.append(FieldError("email", "Invalid email format"))

    phone = fields.get("phone_number")
    if phone and not PHONE_PATTERN.match(phone):
        errors.append(FieldError("phoneNumber", "Invalid phone number"))

    priority = fields.get("priority")
    if priority is not None and not 0 <= priority <= 100:
        errors.append(FieldError("priority", "Priority must be between 0 and 100"))
    return errors


def clean_banner_fields(fields: dict) -> dict:
    cleaned = {}
    for name in EDITABLE_FIELDS:
        if name not in fields or fields[name] is None:
            continue
        value = fields[name]
        if isinstance(value, str):
            value = value.strip()
            if name == "email":
                value = value.lower()
        if name == "links":
            value = [link.strip() for link in value if link and link.strip()]
        if name == "tags":
            value = sorted({tag.strip().lower() for tag in value if tag and tag.strip()})
        cleaned[name] = value
    return cleaned


class BannerService:
    """Banner writes. Images follow the same upload -> commit -> cleanup order as profiles."""

    def __init__(self, db: Session, store: ImageStore, progress: UploadProgressCache | None = None):
        self.db = db
        self.store = store
        self.progress = progress

    def list(self, active_only: bool = True, search: str | None = None):
        query = self.db.query(Banner)
        if active_only:
            query = query.filter(Banner.is_active == True)
        if search:
            pattern = like_pattern(search.strip())
            query = query.filter(
                Banner.title.ilike(pattern, escape="\\") | Banner.description.ilike(pattern, escape="\\")
            )
        return query.order_by(Banner.priority.desc(), Banner.created_at.desc(), Banner.id.desc())

    def get(self, banner_id: int) -> Banner:
        banner = self.db.query(Banner).filter(Banner.id == banner_id).first()
        if not banner:
            raise NotFound("Banner not found")
        return banner

    async def create(self, fields: dict, image: ImageUpload | None, upload_id: str | None = None) -> Banner:
        fields = clean_banner_fields(fields)
        errors = validate_banner(fields)
        if errors:
            raise ValidationFailed(errors)
        if image is None or not image.data:
            raise ImageRejected("Banner image is required")

        pending = await self._upload(image, upload_id)
        banner = Banner(
            **fields,
            image_url=pending.url,
            image_public_id=pending.external_id,
            image_metadata=pending.metadata(),
        )
        self.db.add(banner)
        await self._commit(pending, upload_id)
        self.db.refresh(banner)
        logger.info("Banner %s created", banner.id)
        return banner

    async def update(
        self,
        banner_id: int,
        fields: dict,
        image: ImageUpload | None = None,
        upload_id: str | None = None,
    ) -> Banner:
        banner = self.get(banner_id)
        fields = clean_banner_fields(fields)
        errors = validate_banner(fields, partial=True)
        if errors:
            raise ValidationFailed(errors)

        previous_image_id = None
        pending = None
        if image is not None and image.data:
            pending = await self._upload(image, upload_id)
            previous_image_id = banner.image_public_id

        for name, value in fields.items():
            setattr(banner, name, value)
        if pending is not None:
            banner.image_url = pending.url
            banner.image_public_id = pending.external_id
            banner.image_metadata = pending.metadata()

        await self._commit(pending, upload_id)
        self.db.refresh(banner)
        if previous_image_id and previous_image_id != banner.image_public_id:
            await discard_image(self.store, previous_image_id, reason=f"replaced on banner {banner.id}")
        return banner

    def set_active(self, banner_id: int, is_active: bool | None = None) -> Banner:
        banner = self.get(banner_id)
        banner.is_active = (not banner.is_active) if is_active is None else is_active
        self.db.commit()
        self.db.refresh(banner)
        return banner

    async def delete(self, banner_id: int) -> bool:
        banner = self.get(banner_id)
        image_public_id = banner.image_public_id
        self.db.delete(banner)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceFailed("Failed to delete banner") from exc
        return await discard_image(self.store, image_public_id, reason=f"banner {banner_id} deleted")

    async def _upload(self, image: ImageUpload, upload_id: str | None) -> UploadResult:
        if self.progress and upload_id:
            await self.progress.set_status(upload_id, "processing")
        try:
            return await upload_image(self.store, image, BANNER_IMAGE, BANNER_FOLDER)
        except Exception as exc:
            if self.progress and upload_id:
                await self.progress.set_status(upload_id, "failed", error=str(exc))
            raise

    async def _commit(self, pending: UploadResult | None, upload_id: str | None) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            side_effects = "none"
            if pending is not None:
                logger.warning("Banner commit failed after uploading %s; removing it", pending.external_id)
                removed = await discard_image(self.store, pending.external_id, reason="commit failed")
                side_effects = "none" if removed else "partial"
            if self.progress and upload_id:
                await self.progress.set_status(upload_id, "failed", error="commit failed")
            if isinstance(exc, IntegrityError):
                raise StorageConflict(
                    "A banner with this title already exists",
                    fields=["title"],
                    side_effects=side_effects,
                ) from exc
            raise PersistenceFailed("Failed to save banner", side_effects=side_effects) from exc

        if self.progress and upload_id and pending is not None:
            await self.progress.set_status(upload_id, "completed", url=pending.url)
