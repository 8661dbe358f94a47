import os
from pathlib import Path
from dotenv import load_dotenv
from fastapi.security import HTTPBearer

BASE_DIR = Path(__file__).resolve().parent.parent  # -> project root

# Load .env explicitly from project root
load_dotenv(BASE_DIR / ".env")


class Settings:
    PROJECT_NAME = "Founders Club Backend"

    APP_ENV = os.getenv("APP_ENV", "development").lower()
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'club.db'}")

    JWT_SECRET = os.getenv("JWT_SECRET")
    ALGORITHM = os.getenv("ALGORITHM", "HS256")

    SPACES_REGION = os.getenv("SPACES_REGION")
    SPACES_ENDPOINT = os.getenv("SPACES_ENDPOINT")
    SPACES_KEY = os.getenv("SPACES_KEY")
    SPACES_SECRET = os.getenv("SPACES_SECRET")
    SPACES_NAME = os.getenv("SPACES_NAME")
    SPACES_CDN_URL = (os.getenv("SPACES_CDN_URL") or "").rstrip("/")
    SPACES_BASE_PATH = (os.getenv("DO_SPACES_BASE_PATH") or "club").strip("/")

    IMAGE_UPLOAD_TIMEOUT_SECONDS = int(os.getenv("IMAGE_UPLOAD_TIMEOUT_SECONDS", 120))
    PROFILE_IMAGE_MAX_BYTES = int(os.getenv("PROFILE_IMAGE_MAX_BYTES", 10 * 1024 * 1024))
    BANNER_IMAGE_MAX_BYTES = int(os.getenv("BANNER_IMAGE_MAX_BYTES", 50 * 1024 * 1024))
    WHITEBOARD_IMAGE_MAX_BYTES = int(os.getenv("WHITEBOARD_IMAGE_MAX_BYTES", 10 * 1024 * 1024))

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    UPLOAD_PROGRESS_TTL_SECONDS = int(os.getenv("UPLOAD_PROGRESS_TTL_SECONDS", 60 * 60))

    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASS = os.getenv("SMTP_PASS")
    FROM_EMAIL = os.getenv("FROM_EMAIL")
    MENTOR_REQUEST_NOTIFICATIONS_ENABLED = (
        os.getenv("MENTOR_REQUEST_NOTIFICATIONS_ENABLED", "true").lower() == "true"
    )

    bearer_scheme = HTTPBearer()
    cors_origins = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


settings = Settings()
