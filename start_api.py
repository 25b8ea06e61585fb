#!/usr/bin/env python3
"""Container entrypoint: wait for the database, migrate, seed the back-office admin, then exec uvicorn."""
import logging
import os
import sys

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import wait_for_db
from app.core.config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [start_api] %(message)s")
logger = logging.getLogger("start_api")

ROOT = os.path.dirname(os.path.abspath(__file__))


def migrate() -> None:
    cfg = Config(os.path.join(ROOT, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(ROOT, "alembic"))
    cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    logger.info("Running migrations")
    command.upgrade(cfg, "head")


def seed() -> None:
    # Own engine: the app engine may have been opened while Alembic loaded env.py
    from app.seed import run

    engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        run(db)
    finally:
        db.close()
        engine.dispose()


def main() -> None:
    wait_for_db.wait()
    migrate()
    seed()
    port = os.getenv("PORT", "8000")
    logger.info("Starting uvicorn on port %s", port)
    os.execv(sys.executable, [sys.executable, "-m", "uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", port])


if __name__ == "__main__":
    main()
