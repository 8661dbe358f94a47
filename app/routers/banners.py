from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.banner import BannerResponse, UploadInitRequest
from app.services.auth_middleware import get_current_admin
from app.services.banner_service import BannerService
from app.services.image_store import ImageStore, get_image_store
from app.services.mentor_directory import pagination_meta
from app.services.upload_progress import UploadProgressCache, get_upload_progress
from app.utils.forms import parse_bool, read_upload, split_list
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/banners", tags=["Banners"])

ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")


def get_banner_service(
    db: Session = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
    progress: UploadProgressCache = Depends(get_upload_progress),
) -> BannerService:
    return BannerService(db, store, progress)


def _banner_payload(banner) -> dict:
    return BannerResponse.model_validate(banner).to_payload()


def _form_fields(
    title: str | None,
    description: str | None,
    links: str | None,
    email: str | None,
    phone_number: str | None,
    tags: str | None,
    priority: int | None,
    is_active: str | None,
) -> dict:
    return {
        "title": title,
        "description": description,
        "links": split_list(links) if links is not None else None,
        "email": email or None,
        "phone_number": phone_number or None,
        "tags": split_list(tags) if tags is not None else None,
        "priority": priority,
        "is_active": parse_bool(is_active),
    }


@router.post("/uploads")
async def initiate_upload(
    body: UploadInitRequest,
    progress: UploadProgressCache = Depends(get_upload_progress),
    current_admin: User = Depends(get_current_admin),
):
    try:
        if body.file_size > settings.BANNER_IMAGE_MAX_BYTES:
            limit_mb = settings.BANNER_IMAGE_MAX_BYTES // (1024 * 1024)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File size exceeds {limit_mb}MB limit")
        if not body.file_name.lower().endswith(ALLOWED_EXTENSIONS):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file type")

        upload_id = progress.new_upload_id()
        data = await progress.start(upload_id, total_chunks=body.total_chunks, file_name=body.file_name)
        return create_response(
            message="Upload initiated",
            data=data,
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/uploads/{upload_id}")
async def get_upload_progress_status(
    upload_id: str,
    progress: UploadProgressCache = Depends(get_upload_progress),
):
    try:
        data = await progress.get(upload_id)
        if data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload session not found")
        return create_response(
            message="Upload progress fetched",
            data=data,
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("")
async def create_banner(
    title: str = Form(...),
    description: str = Form(""),
    links: str | None = Form(None),
    email: str | None = Form(None),
    phone_number: str | None = Form(None, alias="phoneNumber"),
    tags: str | None = Form(None),
    priority: int = Form(0),
    is_active: str | None = Form(None, alias="isActive"),
    upload_id: str | None = Form(None, alias="uploadId"),
    image: UploadFile | None = File(None),
    service: BannerService = Depends(get_banner_service),
    current_admin: User = Depends(get_current_admin),
):
    try:
        fields = _form_fields(title, description, links, email, phone_number, tags, priority, is_active)
        banner = await service.create(fields, await read_upload(image), upload_id=upload_id)
        return create_response(
            message="Banner created successfully",
            data=_banner_payload(banner),
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("")
def list_banners(
    active_only: bool = Query(True, alias="activeOnly"),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
):
    try:
        query = BannerService(db, store).list(active_only=active_only, search=search)
        total = query.count()
        banners = query.offset((page - 1) * limit).limit(limit).all()
        return create_response(
            message="Banners fetched successfully",
            data={
                "banners": [_banner_payload(banner) for banner in banners],
                "pagination": pagination_meta(page, limit, total),
            },
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/{banner_id}")
def get_banner(
    banner_id: int,
    db: Session = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
):
    try:
        banner = BannerService(db, store).get(banner_id)
        return create_response(
            message="Banner fetched successfully",
            data=_banner_payload(banner),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/{banner_id}")
async def update_banner(
    banner_id: int,
    title: str | None = Form(None),
    description: str | None = Form(None),
    links: str | None = Form(None),
    email: str | None = Form(None),
    phone_number: str | None = Form(None, alias="phoneNumber"),
    tags: str | None = Form(None),
    priority: int | None = Form(None),
    is_active: str | None = Form(None, alias="isActive"),
    upload_id: str | None = Form(None, alias="uploadId"),
    image: UploadFile | None = File(None),
    service: BannerService = Depends(get_banner_service),
    current_admin: User = Depends(get_current_admin),
):
    try:
        fields = _form_fields(title, description, links, email, phone_number, tags, priority, is_active)
        banner = await service.update(banner_id, fields, await read_upload(image), upload_id=upload_id)
        return create_response(
            message="Banner updated successfully",
            data=_banner_payload(banner),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.patch("/{banner_id}/toggle")
def toggle_banner(
    banner_id: int,
    service: BannerService = Depends(get_banner_service),
    current_admin: User = Depends(get_current_admin),
):
    try:
        banner = service.set_active(banner_id)
        return create_response(
            message=f"Banner {'activated' if banner.is_active else 'deactivated'} successfully",
            data=_banner_payload(banner),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/{banner_id}")
async def delete_banner(
    banner_id: int,
    service: BannerService = Depends(get_banner_service),
    current_admin: User = Depends(get_current_admin),
):
    try:
        await service.delete(banner_id)
        return create_response(
            message="Banner deleted successfully",
            data={"id": banner_id},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
