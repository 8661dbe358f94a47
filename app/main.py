import logging

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import Base, engine
from app.routers import (
    admin_profiles,
    banners,
    mentor_requests,
    mentors,
    profile,
    whiteboard,
)
from app.services.upload_progress import close_redis
from app.utils.response import create_response, handle_exception
from seed import run_seed

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title=settings.PROJECT_NAME)

# Auto create tables
Base.metadata.create_all(bind=engine)

# CORS for SPA / API access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Seed default admin on startup
@app.on_event("startup")
async def startup_event():
    run_seed()


@app.on_event("shutdown")
async def shutdown_event():
    await close_redis()


# Add routes
app.include_router(profile.router)
app.include_router(mentors.router)
app.include_router(admin_profiles.router)
app.include_router(banners.router)
app.include_router(whiteboard.router)
app.include_router(mentor_requests.router)


@app.get("/")
def home():
    try:
        return create_response(
            message="Founders Club API running",
            data={"service": "club-backend"},
            status_code=status.HTTP_200_OK
        )
    except Exception as exc:
        return handle_exception(exc)
