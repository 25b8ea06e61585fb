import logging
import uuid

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.db.session import SessionLocal
from app.core.config import settings
from app.core.security import hash_password
from app.models.user import User

logger = logging.getLogger(__name__)


def ensure_user(db: Session, email: str, password: str, role: str, name: str) -> bool:
    email = email.strip().lower()
    u = db.query(User).filter(User.email == email).first()
    if u:
        return False
    db.add(
        User(
            id=str(uuid.uuid4()),
            email=email,
            full_name=name,
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
    )
    db.commit()
    return True


def run(db=None):
    own_session = db is None
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("[seed] users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
            if ensure_user(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, "admin", "Admin"):
                logger.info("[seed] created admin user %s", settings.ADMIN_EMAIL)
        else:
            logger.info("[seed] ADMIN_EMAIL/ADMIN_PASSWORD not set; no staff account created")
    finally:
        if own_session:
            db.close()
