from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.profile import MEMBERSHIP_TYPES, OCCUPATIONS, Profile
from app.models.user import User
from app.schemas.profile import AdminProfileResponse, MentorVisibilityUpdate, ProfileVerificationUpdate
from app.services.auth_middleware import get_current_admin
from app.services.image_store import ImageStore, get_image_store
from app.services.mentor_directory import MentorDirectory, like_pattern, pagination_meta
from app.services.profile_repository import ProfileRepository
from app.services.profile_service import ProfileService
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/admin/profiles", tags=["Admin Profiles"])
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
STATUS_FILTERS = {"active": True, "inactive": False, "all": None}


def _admin_payload(profile: Profile) -> dict:
    return AdminProfileResponse.model_validate(profile).to_payload()


@router.get("")
def list_profiles(
    search: str | None = Query(None, max_length=100),
    occupation: str | None = Query(None),
    membership_type: str | None = Query(None, alias="membershipType"),
    profile_verified: bool | None = Query(None, alias="profileVerified"),
    show_in_mentor_section: bool | None = Query(None, alias="showInMentorSection"),
    profile_status: str = Query("active", alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        if profile_status not in STATUS_FILTERS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="status must be active, inactive or all")
        if occupation and occupation not in OCCUPATIONS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid occupation")
        if membership_type and membership_type not in MEMBERSHIP_TYPES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid membershipType")

        query = db.query(Profile)
        active = STATUS_FILTERS[profile_status]
        if active is not None:
            query = query.filter(Profile.is_active == active)
        if search:
            pattern = like_pattern(search.strip())
            query = query.filter(
                or_(
                    Profile.name.ilike(pattern, escape="\\"),
                    Profile.email.ilike(pattern, escape="\\"),
                    Profile.phone_number.ilike(pattern, escape="\\"),
                    Profile.pan.ilike(pattern, escape="\\"),
                    Profile.occupation_description.ilike(pattern, escape="\\"),
                )
            )
        if occupation:
            query = query.filter(Profile.occupation == occupation)
        if membership_type:
            query = query.filter(Profile.membership_type == membership_type)
        if profile_verified is not None:
            query = query.filter(Profile.profile_verified == profile_verified)
        if show_in_mentor_section is not None:
            query = query.filter(Profile.show_in_mentor_section == show_in_mentor_section)

        total = query.count()
        profiles = (
            query.order_by(Profile.created_at.desc(), Profile.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return create_response(
            message="Profiles fetched successfully",
            data={
                "profiles": [_admin_payload(profile) for profile in profiles],
                "pagination": pagination_meta(page, limit, total),
            },
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.patch("/{profile_id}/toggle-mentor")
def toggle_mentor_section(
    profile_id: int,
    body: MentorVisibilityUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        show = body.show_in_mentor_section
        profile = MentorDirectory(db).toggle_visibility(profile_id, show)
        return create_response(
            message=f"Profile {'added to' if show else 'removed from'} mentor section successfully",
            data=_admin_payload(profile),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.patch("/{profile_id}/verify")
def set_profile_verification(
    profile_id: int,
    body: ProfileVerificationUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        profile = ProfileRepository(db).set_verified(profile_id, body.profile_verified)
        return create_response(
            message="Profile verification updated successfully",
            data=_admin_payload(profile),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/{profile_id}")
def deactivate_profile(
    profile_id: int,
    db: Session = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
    current_admin: User = Depends(get_current_admin),
):
    try:
        profile = ProfileService(db, store).deactivate(profile_id)
        return create_response(
            message="Profile deleted successfully",
            data=_admin_payload(profile),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
