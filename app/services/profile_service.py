"""Profile create/update with externally hosted images.

The image store and the database do not share a transaction, so writes
follow upload -> commit -> cleanup:

* a new image is uploaded before the record is written and is only held
  as pending until the commit succeeds;
* if the commit fails, the pending upload is deleted before the error
  is returned;
* the previous image is deleted only after the record points at the new
  image (or at no image). That delete is best effort.

A committed profile therefore never references an asset that does not
exist. The price is that a failed cleanup can leave an unreferenced asset in
the bucket.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.models.profile import Profile
from app.services.errors import ImageRejected, InvalidOperation, NotFound, ServiceError, ValidationFailed
from app.services.image_store import PROFILE_IMAGE, PROFILE_TRANSFORMATION, ImageStore, UploadResult
from app.services.image_uploads import ImageUpload, discard_image, upload_image
from app.services.profile_repository import ImageAction, ImageChange, ProfileRecord, ProfileRepository
from app.services.profile_validator import normalize, validate

logger = logging.getLogger(__name__)

PROFILE_FOLDER = "profiles"


@dataclass
class ProfileOutcome:
    profile: Profile
    created: bool = False
    # None when no previous image had to be removed.
    cleanup_ok: bool | None = None


class ProfileService:
    def __init__(self, db: Session, store: ImageStore, repository: ProfileRepository | None = None):
        self.store = store
        self.repository = repository or ProfileRepository(db)

    def get(self, user_id: int) -> Profile:
        profile = self.repository.get_by_user(user_id)
        if not profile:
            raise NotFound("Profile not found")
        return profile

    async def upsert(
        self,
        user_id: int,
        fields: dict,
        image: ImageUpload | None = None,
        remove_image: bool = False,
    ) -> ProfileOutcome:
        if image is not None and remove_image:
            raise InvalidOperation("Send either a new image or removeImage, not both")

        record_fields = normalize(fields)
        errors = validate(record_fields)
        if errors:
            raise ValidationFailed(errors)

        existing = self.repository.get_by_user(user_id)
        previous_image_id = existing.image_public_id if existing else None

        pending: UploadResult | None = None
        if image is not None:
            pending = await self._upload(image)
            change = ImageChange.set(pending.url, pending.external_id, pending.metadata())
        elif remove_image:
            change = ImageChange.clear()
        else:
            change = ImageChange.keep()

        record = ProfileRecord(fields=record_fields, image=change)
        profile, created = await self._commit(
            lambda: self.repository.save(user_id, record, existing),
            pending,
        )

        cleanup_ok = None
        if change.action != ImageAction.keep and previous_image_id and previous_image_id != profile.image_public_id:
            cleanup_ok = await discard_image(self.store, previous_image_id, reason=f"replaced on profile {profile.id}")

        logger.info(
            "Profile %s for user %s (image=%s)",
            "created" if created else "updated",
            user_id,
            change.action.value,
        )
        return ProfileOutcome(profile=profile, created=created, cleanup_ok=cleanup_ok)

    async def replace_image(self, user_id: int, image: ImageUpload) -> ProfileOutcome:
        existing = self.repository.get_by_user(user_id)
        if not existing:
            raise NotFound("Profile not found. Create your profile before uploading an image.")
        previous_image_id = existing.image_public_id

        pending = await self._upload(image)
        change = ImageChange.set(pending.url, pending.external_id, pending.metadata())
        profile = await self._commit(lambda: self.repository.set_image(user_id, change), pending)

        cleanup_ok = None
        if previous_image_id and previous_image_id != profile.image_public_id:
            cleanup_ok = await discard_image(self.store, previous_image_id, reason=f"replaced on profile {profile.id}")
        return ProfileOutcome(profile=profile, cleanup_ok=cleanup_ok)

    async def remove_image(self, user_id: int) -> ProfileOutcome:
        existing = self.get(user_id)
        previous_image_id = existing.image_public_id
        if not previous_image_id:
            raise InvalidOperation("No profile image to delete")

        profile = self.repository.clear_image(user_id)
        cleanup_ok = await discard_image(self.store, previous_image_id, reason=f"removed from profile {profile.id}")
        return ProfileOutcome(profile=profile, cleanup_ok=cleanup_ok)

    async def delete(self, user_id: int) -> bool | None:
        image_public_id = self.repository.delete(user_id)
        if not image_public_id:
            return None
        return await discard_image(self.store, image_public_id, reason=f"profile of user {user_id} deleted")

    def deactivate(self, profile_id: int) -> Profile:
        profile = self.repository.get_by_id(profile_id)
        if not profile:
            raise NotFound("Profile not found or already deleted")
        return self.repository.set_active(profile_id, False)

    async def _upload(self, image: ImageUpload) -> UploadResult:
        if not image.data:
            raise ImageRejected("Please upload an image")
        return await upload_image(
            self.store,
            image,
            PROFILE_IMAGE,
            PROFILE_FOLDER,
            transformation=PROFILE_TRANSFORMATION,
        )

    async def _commit(self, write, pending: UploadResult | None):
        try:
            return write()
        except Exception as exc:
            if pending is None:
                raise
            logger.warning("Commit failed after uploading %s; removing it", pending.external_id)
            removed = await discard_image(self.store, pending.external_id, reason="commit failed")
            if isinstance(exc, ServiceError):
                exc.side_effects = "none" if removed else "partial"
            raise
