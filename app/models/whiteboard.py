from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.database import Base

WHITEBOARD_CATEGORIES = ("startup_news", "services_wanted", "services_offering")
WHITEBOARD_STATUSES = ("pending", "active", "rejected", "archived")


class WhiteboardPost(Base):
    __tablename__ = "whiteboard_posts"
    __table_args__ = (
        Index("ix_whiteboard_status_category", "status", "category"),
    )

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(32), nullable=False, index=True)
    title = Column(String(150), nullable=False)
    description = Column(Text, nullable=False)
    website_url = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    image_url = Column(String, nullable=True)
    image_public_id = Column(String, nullable=True)
    image_metadata = Column(JSON(none_as_null=True), nullable=True)

    status = Column(String(16), nullable=False, default="pending", index=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    admin_notes = Column(String(1000), nullable=True)
    views = Column(Integer, nullable=False, default=0)
    last_modified_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    author = relationship("User", foreign_keys=[created_by])
