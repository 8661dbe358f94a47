from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from app.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Registration fields
    full_name = Column(String(80), nullable=False)
    whatsapp_number = Column(String, unique=True, index=True, nullable=False)
    pan = Column(String(10), unique=True, nullable=False)
    email = Column(String, nullable=True)

    # Set once the WhatsApp OTP has been confirmed
    is_verified = Column(Boolean, default=False, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
