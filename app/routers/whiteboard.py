from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.models.whiteboard import WHITEBOARD_CATEGORIES
from app.schemas.whiteboard import WhiteboardCategory, WhiteboardPostResponse, WhiteboardStatusUpdate
from app.services.auth_middleware import get_current_admin, get_current_user
from app.services.image_store import ImageStore, get_image_store
from app.services.whiteboard_service import WhiteboardService
from app.utils.forms import read_upload
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/whiteboard", tags=["Whiteboard"])


def get_whiteboard_service(
    db: Session = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
) -> WhiteboardService:
    return WhiteboardService(db, store)


def _post_payload(post) -> dict:
    return WhiteboardPostResponse.model_validate(post).to_payload()


def _post_fields(**values) -> dict:
    fields = {}
    for name, value in values.items():
        if value is None:
            continue
        fields[name] = (value.strip() or None) if isinstance(value, str) else value
    return fields


@router.post("")
async def create_post(
    category: str = Form(...),
    title: str = Form(...),
    description: str = Form(...),
    website_url: str | None = Form(None, alias="websiteUrl"),
    image: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    service: WhiteboardService = Depends(get_whiteboard_service),
):
    try:
        fields = _post_fields(category=category, title=title, description=description, website_url=website_url)
        post = await service.create(current_user.id, fields, await read_upload(image))
        return create_response(
            message="Whiteboard post created successfully",
            data=_post_payload(post),
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("")
def list_posts(
    category: WhiteboardCategory | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: WhiteboardService = Depends(get_whiteboard_service),
):
    try:
        categories = (category.value,) if category else WHITEBOARD_CATEGORIES
        sections = service.list_by_category(page, limit, categories)
        data = {
            name: {
                "posts": [_post_payload(post) for post in section["posts"]],
                "pagination": section["pagination"],
            }
            for name, section in sections.items()
        }
        return create_response(
            message="Whiteboard posts fetched successfully",
            data=data,
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/stats")
def whiteboard_stats(
    current_admin: User = Depends(get_current_admin),
    service: WhiteboardService = Depends(get_whiteboard_service),
):
    try:
        return create_response(
            message="Whiteboard statistics fetched successfully",
            data=service.stats(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/{post_id}")
def get_post(post_id: int, service: WhiteboardService = Depends(get_whiteboard_service)):
    try:
        post = service.record_view(service.get(post_id))
        return create_response(
            message="Whiteboard post fetched successfully",
            data=_post_payload(post),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/{post_id}")
async def update_post(
    post_id: int,
    category: str | None = Form(None),
    title: str | None = Form(None),
    description: str | None = Form(None),
    website_url: str | None = Form(None, alias="websiteUrl"),
    image: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    service: WhiteboardService = Depends(get_whiteboard_service),
):
    try:
        fields = _post_fields(category=category, title=title, description=description, website_url=website_url)
        post = await service.update(post_id, current_user.id, fields, await read_upload(image))
        return create_response(
            message="Post updated successfully",
            data=_post_payload(post),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    service: WhiteboardService = Depends(get_whiteboard_service),
):
    try:
        await service.delete(post_id, current_user.id)
        return create_response(
            message="Post deleted successfully",
            data={"id": post_id},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.patch("/{post_id}/status")
def update_post_status(
    post_id: int,
    body: WhiteboardStatusUpdate,
    current_admin: User = Depends(get_current_admin),
    service: WhiteboardService = Depends(get_whiteboard_service),
):
    try:
        post = service.set_status(post_id, current_admin.id, body.status.value, body.admin_notes)
        return create_response(
            message=f"Whiteboard post {body.status.value} successfully",
            data=_post_payload(post),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
