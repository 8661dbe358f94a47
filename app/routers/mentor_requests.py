import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.mentor_request import MentorRequest
from app.models.user import User
from app.schemas.mentor_request import MentorRequestCreate, MentorRequestResponse
from app.services.auth_middleware import get_current_user
from app.services.email_services import notify_mentor_request
from app.services.mentor_directory import MentorDirectory
from app.utils.response import create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mentor-requests", tags=["Mentor Requests"])


def _request_payload(mentor_request: MentorRequest) -> dict:
    return MentorRequestResponse.model_validate(mentor_request).to_payload()


@router.post("")
def create_mentor_request(
    body: MentorRequestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        mentor = MentorDirectory(db).get(body.mentor_id)
        if mentor.user_id == current_user.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot request yourself as a mentor")

        existing = (
            db.query(MentorRequest)
            .filter(
                MentorRequest.user_id == current_user.id,
                MentorRequest.mentor_profile_id == mentor.id,
                MentorRequest.status == "pending",
            )
            .first()
        )
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="You already have a pending request to this mentor.",
            )

        message = body.message.strip() if body.message else None
        mentor_request = MentorRequest(
            user_id=current_user.id,
            mentor_profile_id=mentor.id,
            message=message or None,
        )
        db.add(mentor_request)
        db.commit()
        db.refresh(mentor_request)
        logger.info("Mentor request %s created for mentor profile %s", mentor_request.id, mentor.id)

        background_tasks.add_task(
            notify_mentor_request,
            mentor.email,
            mentor.name,
            current_user.full_name or "A club member",
            mentor_request.message,
        )
        return create_response(
            message="Mentor request created successfully.",
            data=_request_payload(mentor_request),
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("")
def list_my_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        requests = (
            db.query(MentorRequest)
            .filter(MentorRequest.user_id == current_user.id)
            .order_by(MentorRequest.created_at.desc(), MentorRequest.id.desc())
            .all()
        )
        return create_response(
            message="Mentor requests fetched successfully",
            data=[_request_payload(item) for item in requests],
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
