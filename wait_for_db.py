"""Block until Postgres accepts connections (docker-compose starts the API and the database together)."""
import logging
import os
import time
from urllib.parse import urlparse

import psycopg2

from app.core.config import settings

logger = logging.getLogger("wait_for_db")


def wait(database_url: str | None = None, timeout_s: int | None = None) -> None:
    database_url = database_url or settings.DATABASE_URL
    if database_url.startswith("sqlite"):
        logger.info("SQLite database, nothing to wait for")
        return
    if timeout_s is None:
        timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))

    # psycopg2 wants a plain libpq URL, not the SQLAlchemy dialect form
    p = urlparse(database_url.replace("postgresql+psycopg2://", "postgresql://"))
    params = {
        "host": p.hostname or "db",
        "port": p.port or 5432,
        "user": p.username or "bookings",
        "password": p.password or "bookings",
        "dbname": (p.path or "/bookings").lstrip("/") or "bookings",
    }

    logger.info("Waiting for Postgres at %s:%s db=%s (timeout=%ss)", params["host"], params["port"], params["dbname"], timeout_s)
    deadline = time.monotonic() + timeout_s
    while True:
        try:
            psycopg2.connect(**params).close()
        except psycopg2.OperationalError as e:
            if time.monotonic() > deadline:
                logger.error("Timed out waiting for Postgres: %s", e)
                raise
            time.sleep(1)
        else:
            logger.info("Postgres is ready")
            return


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    wait()
