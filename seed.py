import logging
import os

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from app.database import Base, SessionLocal, engine
from app.models.user import User
from app.utils.db_migrations import ensure_banner_counters, ensure_profile_columns

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


def seed_admin(db) -> User | None:
    """Create the default admin when the users table is empty."""
    if db.query(User).count():
        logger.info("Users already present, skipping seeding.")
        return None

    admin_user = User(
        full_name=os.getenv("SEED_FULL_NAME", "Club Admin"),
        email=os.getenv("SEED_EMAIL", "admin@example.com"),
        whatsapp_number=os.getenv("SEED_WHATSAPP_NUMBER", "+910000000000"),
        pan=os.getenv("SEED_PAN", "ADMIN0000A"),
        is_verified=True,
        is_active=True,
        is_admin=True,
    )
    db.add(admin_user)
    db.commit()
    logger.info("Default admin user seeded")
    return admin_user


def run_seed():
    # Ensure all tables exist
    Base.metadata.create_all(bind=engine)
    ensure_profile_columns(engine)
    ensure_banner_counters(engine)

    db = SessionLocal()
    try:
        seed_admin(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Seeding failed")
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed()
