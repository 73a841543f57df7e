"""Create the configured Postgres database if it does not exist yet.

SQLite URLs need no provisioning and are skipped.
"""
from __future__ import annotations

import argparse
import logging
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql

from tallyrank.core.settings import settings

logger = logging.getLogger(__name__)

_MAINTENANCE_DB = "postgres"


def to_libpq_url(url: str) -> str:
    """Strip a SQLAlchemy driver suffix (``postgresql+psycopg``) for psycopg."""
    url = url.strip().strip("'\"")
    if not url:
        raise ValueError("DATABASE_URL is empty")
    parts = urlsplit(url)
    scheme = parts.scheme.split("+", 1)[0]
    if scheme == "postgres":
        scheme = "postgresql"
    return urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))


def split_target(url: str) -> tuple[str, str]:
    """Return ``(maintenance_url, database_name)`` for a Postgres URL."""
    parts = urlsplit(to_libpq_url(url))
    if parts.scheme != "postgresql":
        raise ValueError(f"Not a Postgres URL: {url!r}")
    target = parts.path.lstrip("/") or _MAINTENANCE_DB
    admin = urlunsplit(("postgresql", parts.netloc, f"/{_MAINTENANCE_DB}", parts.query, ""))
    return admin, target


def ensure_database(url: str) -> bool:
    """Create the database named by ``url``; returns True if it was created."""
    admin_url, target = split_target(url)
    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target,))
        if cur.fetchone() is not None:
            logger.info("Database %s already exists", target)
            return False
        cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target)))
    logger.info("Created database %s", target)
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ensure the configured database exists")
    parser.add_argument(
        "--url",
        default=None,
        help="Database URL (defaults to the effective settings URL)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    url = args.url or settings.effective_database_url
    if url.startswith("sqlite"):
        logger.info("SQLite database needs no provisioning")
        return 0
    try:
        ensure_database(url)
    except (ValueError, psycopg.Error) as exc:
        logger.error("Could not ensure database: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
