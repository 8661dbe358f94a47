from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.profile import ProfileResponse
from app.services.auth_middleware import get_current_user
from app.services.image_store import ImageStore, get_image_store
from app.services.image_uploads import ImageUpload
from app.services.profile_repository import FIELD_COLUMNS
from app.services.profile_service import ProfileService
from app.utils.forms import parse_bool, parse_list_field, read_upload
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/profile", tags=["Profile"])

SCALAR_FIELDS = tuple(FIELD_COLUMNS) + ("phoneCountryCode", "availableForMentorship")


def get_profile_service(
    db: Session = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
) -> ProfileService:
    return ProfileService(db, store)


async def _parse_profile_form(request: Request) -> tuple[dict, ImageUpload | None, bool]:
    form = await request.form()
    fields = {name: form.get(name) for name in SCALAR_FIELDS if name in form}
    if "mentorshipFields" in form:
        fields["mentorshipFields"] = parse_list_field(form.getlist("mentorshipFields"))
    image = await read_upload(form.get("image"))
    remove_image = parse_bool(form.get("removeImage"), default=False)
    return fields, image, remove_image


def _profile_payload(profile) -> dict:
    return ProfileResponse.model_validate(profile).to_payload()


@router.get("")
def get_profile(
    current_user: User = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    try:
        profile = service.get(current_user.id)
        return create_response(
            message="Profile fetched successfully",
            data=_profile_payload(profile),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("")
async def create_or_update_profile(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    try:
        fields, image, remove_image = await _parse_profile_form(request)
        outcome = await service.upsert(current_user.id, fields, image=image, remove_image=remove_image)
        return create_response(
            message="Profile created successfully" if outcome.created else "Profile updated successfully",
            data=_profile_payload(outcome.profile),
            status_code=status.HTTP_201_CREATED if outcome.created else status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.patch("/image")
async def update_profile_image(
    image: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    try:
        upload = await read_upload(image)
        if upload is None or not upload.data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please upload an image")

        outcome = await service.replace_image(current_user.id, upload)
        return create_response(
            message="Profile image updated successfully",
            data=_profile_payload(outcome.profile),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/image")
async def delete_profile_image(
    current_user: User = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    try:
        outcome = await service.remove_image(current_user.id)
        return create_response(
            message="Profile image deleted successfully",
            data=_profile_payload(outcome.profile),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.delete("")
async def delete_profile(
    current_user: User = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    try:
        await service.delete(current_user.id)
        return create_response(
            message="Profile deleted successfully",
            data={"deleted": True},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
