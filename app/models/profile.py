from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.database import Base

OCCUPATIONS = ("services", "startup_promoter", "business", "other")
MEMBERSHIP_TYPES = ("Individual", "Corporate", "Mentor", "Consultant")


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        # image, image_public_id and image_metadata are written as one unit
        CheckConstraint(
            "((image IS NULL) = (image_public_id IS NULL)) "
            "AND ((image IS NULL) = (image_metadata IS NULL))",
            name="ck_profile_image_triple",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    # Basic details
    name = Column(String(100), nullable=False)
    dob = Column(Date, nullable=True)

    # Address
    native_address = Column(String, nullable=True)
    current_address = Column(String, nullable=True)

    # Contact details
    phone_country_code = Column(String(8), nullable=False, default="+91")
    phone_number = Column(String(17), nullable=True)
    whatsapp_number = Column(String(17), nullable=True)
    email = Column(String, nullable=True)

    # Govt ID
    pan = Column(String(10), unique=True, nullable=True)

    # Social links
    linkedin_url = Column(String, nullable=True)
    website_url = Column(String, nullable=True)

    occupation = Column(String(32), nullable=False, index=True)
    occupation_description = Column(String(300), nullable=True)
    support_stage_message = Column(Text, nullable=True)

    membership_type = Column(String(32), nullable=False, index=True)
    previous_experience = Column(String(100), nullable=True)
    area_of_expertise = Column(String(100), nullable=True)
    available_for_mentorship = Column(Boolean, nullable=False, default=False)

    image = Column(String, nullable=True)
    image_public_id = Column(String, nullable=True)
    image_metadata = Column(JSON(none_as_null=True), nullable=True)

    profile_verified = Column(Boolean, nullable=False, default=False, index=True)
    show_in_mentor_section = Column(Boolean, nullable=False, default=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    keywords = relationship(
        "MentorshipKeyword",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="MentorshipKeyword.position",
        lazy="selectin",
    )
    user = relationship("User")

    @property
    def mentorship_fields(self) -> list[str]:
        return [keyword.keyword for keyword in self.keywords]


class MentorshipKeyword(Base):
    __tablename__ = "profile_mentorship_keywords"
    __table_args__ = (
        UniqueConstraint("profile_id", "keyword", name="uq_profile_keyword"),
    )

    id = Column(Integer, primary_key=True, index=True)
    profile_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    keyword = Column(String(60), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    profile = relationship("Profile", back_populates="keywords")
