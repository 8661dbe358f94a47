import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.whiteboard import WHITEBOARD_CATEGORIES, WhiteboardPost
from app.services.banner_service import is_absolute_url
from app.services.errors import FieldError, Forbidden, NotFound, PersistenceFailed, ValidationFailed
from app.services.image_store import WHITEBOARD_IMAGE, ImageStore, UploadResult
from app.services.image_uploads import ImageUpload, discard_image, upload_image
from app.services.mentor_directory import pagination_meta

logger = logging.getLogger(__name__)

WHITEBOARD_FOLDER = "whiteboard"
LISTED_STATUSES = ("pending", "active")


def validate_post(fields: dict, partial: bool = False) -> list[FieldError]:
    errors = []
    for name, minimum, maximum in (("title", 3, 150), ("description", 10, 5000)):
        value = fields.get(name)
        if value is None:
            if not partial:
                errors.append(FieldError(name, f"{name} is required"))
        elif not minimum <= len(value) <= maximum:
            errors.append(FieldError(name, f"{name} must be between {minimum} and {maximum} characters"))

    category = fields.get("category")
    if category is None:
        if not partial:
            errors.append(FieldError("category", "category is required"))
    elif category not in WHITEBOARD_CATEGORIES:
        errors.append(FieldError("category", f"category must be one of: {', '.join(WHITEBOARD_CATEGORIES)}"))

    website_url = fields.get("website_url")
    if website_url and not is_absolute_url(website_url):
        errors.append(FieldError("websiteUrl", "websiteUrl must be a valid URL"))
    return errors


class WhiteboardService:
    def __init__(self, db: Session, store: ImageStore):
        self.db = db
        self.store = store

    def get(self, post_id: int) -> WhiteboardPost:
        post = self.db.query(WhiteboardPost).filter(WhiteboardPost.id == post_id).first()
        if not post:
            raise NotFound("Post not found")
        return post

    def list_by_category(self, page: int, limit: int, categories=WHITEBOARD_CATEGORIES) -> dict:
        sections = {}
        for category in categories:
            query = self.db.query(WhiteboardPost).filter(
                WhiteboardPost.category == category,
                WhiteboardPost.status.in_(LISTED_STATUSES),
            )
            total = query.count()
            posts = (
                query.order_by(
                    WhiteboardPost.is_featured.desc(),
                    WhiteboardPost.created_at.desc(),
                    WhiteboardPost.id.desc(),
                )
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            sections[category] = {"posts": posts, "pagination": pagination_meta(page, limit, total)}
        return sections

    def stats(self) -> dict:
        status_counts = dict(
            self.db.query(WhiteboardPost.status, func.count(WhiteboardPost.id)).group_by(WhiteboardPost.status).all()
        )
        category_counts = dict(
            self.db.query(WhiteboardPost.category, func.count(WhiteboardPost.id)).group_by(WhiteboardPost.category).all()
        )
        total_views = self.db.query(func.coalesce(func.sum(WhiteboardPost.views), 0)).scalar()
        featured = self.db.query(WhiteboardPost).filter(WhiteboardPost.is_featured == True).count()
        return {
            "statusCounts": status_counts,
            "categoryCounts": category_counts,
            "featuredCount": featured,
            "totalViews": int(total_views or 0),
        }

    def record_view(self, post: WhiteboardPost) -> WhiteboardPost:
        post.views = (post.views or 0) + 1
        self.db.commit()
        self.db.refresh(post)
        return post

    async def create(self, user_id: int, fields: dict, image: ImageUpload | None = None) -> WhiteboardPost:
        errors = validate_post(fields)
        if errors:
            raise ValidationFailed(errors)

        pending = await self._upload(image)
        post = WhiteboardPost(**fields, created_by=user_id, status="pending")
        if pending is not None:
            self._set_image(post, pending)
        self.db.add(post)
        await self._commit(pending)
        self.db.refresh(post)
        logger.info("Whiteboard post %s created by user %s", post.id, user_id)
        return post

    async def update(
        self,
        post_id: int,
        user_id: int,
        fields: dict,
        image: ImageUpload | None = None,
    ) -> WhiteboardPost:
        post = self._owned(post_id, user_id, "Unauthorized to update this post")
        errors = validate_post(fields, partial=True)
        if errors:
            raise ValidationFailed(errors)

        pending = await self._upload(image)
        previous_image_id = post.image_public_id if pending is not None else None
        for name, value in fields.items():
            setattr(post, name, value)
        if pending is not None:
            self._set_image(post, pending)
        post.last_modified_by = user_id

        await self._commit(pending)
        self.db.refresh(post)
        if previous_image_id:
            await discard_image(self.store, previous_image_id, reason=f"replaced on whiteboard post {post.id}")
        return post

    async def delete(self, post_id: int, user_id: int) -> bool | None:
        post = self._owned(post_id, user_id, "Unauthorized")
        image_public_id = post.image_public_id
        self.db.delete(post)
        await self._commit(None)
        if not image_public_id:
            return None
        return await discard_image(self.store, image_public_id, reason=f"whiteboard post {post_id} deleted")

    def set_status(self, post_id: int, admin_id: int, new_status: str, admin_notes: str | None = None) -> WhiteboardPost:
        post = self.get(post_id)
        post.status = new_status
        if admin_notes is not None:
            post.admin_notes = admin_notes
        post.last_modified_by = admin_id
        self.db.commit()
        self.db.refresh(post)
        return post

    def _owned(self, post_id: int, user_id: int, message: str) -> WhiteboardPost:
        post = self.get(post_id)
        if post.created_by != user_id:
            raise Forbidden(message)
        return post

    @staticmethod
    def _set_image(post: WhiteboardPost, result: UploadResult) -> None:
        post.image_url = result.url
        post.image_public_id = result.external_id
        post.image_metadata = result.metadata()

    async def _upload(self, image: ImageUpload | None) -> UploadResult | None:
        if image is None or not image.data:
            return None
        return await upload_image(self.store, image, WHITEBOARD_IMAGE, WHITEBOARD_FOLDER)

    async def _commit(self, pending: UploadResult | None) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            side_effects = "none"
            if pending is not None:
                removed = await discard_image(self.store, pending.external_id, reason="commit failed")
                side_effects = "none" if removed else "partial"
            raise PersistenceFailed("Failed to save post", side_effects=side_effects) from exc
