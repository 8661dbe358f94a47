import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Columns added after the first profiles release. Older databases get them
# with defaults that match the ORM model.
PROFILE_COLUMN_BACKFILLS = {
    "image_public_id": "VARCHAR",
    "image_metadata": "JSON",
    "profile_verified": "BOOLEAN NOT NULL DEFAULT FALSE",
    "show_in_mentor_section": "BOOLEAN NOT NULL DEFAULT FALSE",
    "is_active": "BOOLEAN NOT NULL DEFAULT TRUE",
}


def ensure_profile_columns(engine: Engine) -> list[str]:
    inspector = inspect(engine)
    if "profiles" not in inspector.get_table_names():
        return []
    columns = {column["name"] for column in inspector.get_columns("profiles")}
    missing = [name for name in PROFILE_COLUMN_BACKFILLS if name not in columns]
    if not missing:
        return []

    with engine.begin() as connection:
        for name in missing:
            statement = f"ALTER TABLE profiles ADD COLUMN {name} {PROFILE_COLUMN_BACKFILLS[name]}"
            connection.execute(text(statement))
            logger.info("Applied migration: %s", statement)
    return missing


def ensure_banner_counters(engine: Engine) -> list[str]:
    inspector = inspect(engine)
    if "banners" not in inspector.get_table_names():
        return []
    columns = {column["name"] for column in inspector.get_columns("banners")}
    missing = [name for name in ("views", "clicks") if name not in columns]
    with engine.begin() as connection:
        for name in missing:
            connection.execute(text(f"ALTER TABLE banners ADD COLUMN {name} INTEGER NOT NULL DEFAULT 0"))
            logger.info("Added banners.%s", name)
    return missing
