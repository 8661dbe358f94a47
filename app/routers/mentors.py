from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.profile import MentorCard, MentorDetail
from app.services.mentor_directory import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MentorDirectory, MentorFilter
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/mentors", tags=["Mentors"])


@router.get("")
def list_mentors(
    search: str | None = Query(None, max_length=100),
    expertise: str | None = Query(None, description="Single keyword or comma-separated keywords"),
    available_only: bool = Query(False, alias="availableOnly"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    try:
        filters = MentorFilter(
            search=search,
            expertise=[item for item in (expertise or "").split(",") if item.strip()],
            available_only=available_only,
        )
        result = MentorDirectory(db).list(filters, page=page, limit=limit)
        mentors = [MentorCard.model_validate(mentor).to_payload() for mentor in result["mentors"]]
        return create_response(
            message="Mentors fetched successfully" if mentors else "No mentors found matching your criteria",
            data={**result, "mentors": mentors},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/expertise")
def list_expertise(db: Session = Depends(get_db)):
    try:
        return create_response(
            message="Expertise list fetched successfully",
            data=MentorDirectory(db).expertise_counts(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/stats")
def mentor_stats(db: Session = Depends(get_db)):
    try:
        return create_response(
            message="Mentor statistics fetched successfully",
            data=MentorDirectory(db).stats(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/{mentor_id}")
def get_mentor(mentor_id: int, db: Session = Depends(get_db)):
    try:
        mentor = MentorDirectory(db).get(mentor_id)
        return create_response(
            message="Mentor details fetched successfully",
            data=MentorDetail.model_validate(mentor).to_payload(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
