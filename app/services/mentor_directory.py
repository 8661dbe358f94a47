from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Query, Session

from app.models.profile import MentorshipKeyword, Profile
from app.services.errors import InvalidOperation, NotFound
from app.services.profile_repository import ProfileRepository
from app.services.profile_validator import normalize_keywords

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass
class MentorFilter:
    search: str | None = None
    expertise: list[str] = field(default_factory=list)
    available_only: bool = False


def eligibility_clauses() -> tuple:
    return (
        Profile.membership_type == "Mentor",
        Profile.show_in_mentor_section == True,
        Profile.profile_verified == True,
        Profile.is_active == True,
    )


def like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
        "nextPage": page + 1 if page < total_pages else None,
        "prevPage": page - 1 if page > 1 else None,
    }


class MentorDirectory:
    """Read side of the mentor listing, computed from profile flags on every query."""

    def __init__(self, db: Session):
        self.db = db
        self.repository = ProfileRepository(db)

    def _eligible(self) -> Query:
        return self.db.query(Profile).filter(*eligibility_clauses())

    def _filtered(self, filters: MentorFilter) -> Query:
        query = self._eligible()
        if filters.search:
            pattern = like_pattern(filters.search.strip())
            query = query.filter(
                or_(
                    Profile.name.ilike(pattern, escape="\\"),
                    Profile.area_of_expertise.ilike(pattern, escape="\\"),
                    Profile.occupation_description.ilike(pattern, escape="\\"),
                    Profile.previous_experience.ilike(pattern, escape="\\"),
                )
            )
        keywords = normalize_keywords(filters.expertise) or []
        if keywords:
            query = query.filter(Profile.keywords.any(MentorshipKeyword.keyword.in_(keywords)))
        if filters.available_only:
            query = query.filter(Profile.available_for_mentorship == True)
        return query

    def list(self, filters: MentorFilter, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
        query = self._filtered(filters)
        total = query.count()
        mentors = (
            query.order_by(Profile.created_at.desc(), Profile.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        total_available = query.filter(Profile.available_for_mentorship == True).count()
        return {
            "mentors": mentors,
            "pagination": pagination_meta(page, limit, total),
            "filters": {
                "totalAvailable": total_available,
                "appliedFilters": {
                    "search": filters.search or "",
                    "expertise": filters.expertise,
                    "availableOnly": filters.available_only,
                },
            },
        }

    def get(self, profile_id: int) -> Profile:
        mentor = self._eligible().filter(Profile.id == profile_id).first()
        if not mentor:
            raise NotFound("Mentor not found or not visible")
        return mentor

    def expertise_counts(self) -> list[dict]:
        count = func.count(MentorshipKeyword.id)
        rows = (
            self.db.query(MentorshipKeyword.keyword, count)
            .join(Profile, Profile.id == MentorshipKeyword.profile_id)
            .filter(*eligibility_clauses())
            .group_by(MentorshipKeyword.keyword)
            .order_by(count.desc(), MentorshipKeyword.keyword.asc())
            .all()
        )
        return [{"expertise": keyword, "count": total} for keyword, total in rows]

    def stats(self) -> dict:
        def flag_sum(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        base = self.db.query(Profile).filter(Profile.membership_type == "Mentor", Profile.is_active == True)
        totals = base.with_entities(
            func.count(Profile.id),
            flag_sum(Profile.show_in_mentor_section == True),
            flag_sum(Profile.available_for_mentorship == True),
            flag_sum(Profile.profile_verified == True),
        ).one()
        by_occupation = (
            base.with_entities(Profile.occupation, flag_sum(Profile.show_in_mentor_section == True))
            .group_by(Profile.occupation)
            .order_by(Profile.occupation.asc())
            .all()
        )
        return {
            "totalMentors": totals[0] or 0,
            "visibleMentors": int(totals[1]),
            "availableMentors": int(totals[2]),
            "verifiedMentors": int(totals[3]),
            "listedMentors": self._eligible().count(),
            "occupationStats": [
                {"occupation": occupation, "count": int(visible)} for occupation, visible in by_occupation
            ],
        }

    def toggle_visibility(self, profile_id: int, show: bool) -> Profile:
        profile = self.repository.get_by_id(profile_id)
        if not profile:
            raise NotFound("Profile not found or has been deleted")

        if show:
            if profile.membership_type != "Mentor":
                raise InvalidOperation("Only mentors can be shown in mentor section")
            if not profile.keywords:
                raise InvalidOperation("Please add mentorship fields before showing in mentor section")

        profile = self.repository.set_mentor_visibility(profile, show)
        logger.info("Profile %s %s mentor section", profile_id, "added to" if show else "removed from")
        return profile
