from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from app.database import Base


class Banner(Base):
    __tablename__ = "banners"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    image_url = Column(String, nullable=False)
    image_public_id = Column(String, nullable=False)
    image_metadata = Column(JSON, nullable=False)
    links = Column(JSON, nullable=False, default=list)
    email = Column(String, nullable=True)
    phone_number = Column(String(17), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=False, default=0, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    views = Column(Integer, nullable=False, default=0)
    clicks = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
