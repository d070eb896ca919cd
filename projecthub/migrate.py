# projecthub/migrate.py
# Database migrations for PostgreSQL and SQLite
# Run: python -m projecthub.migrate

import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection

from projecthub import config
from projecthub.db import get_db_connection, is_postgres

logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """
    Run all database migrations (idempotent).
    Creates tables and indexes if missing. Safe to run multiple times.
    """
    logger.info("Starting database migrations")

    with get_db_connection() as conn:
        if is_postgres():
            _run_postgres_migrations(conn)
        else:
            _run_sqlite_migrations(conn)
        _create_indexes(conn)

    logger.info("All migrations complete")


def _run_postgres_migrations(conn: Connection) -> None:
    logger.info("Running PostgreSQL migrations")

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS projects (
            id SERIAL PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            thumbnail TEXT,
            author_id INTEGER NOT NULL REFERENCES users(id),
            category TEXT NOT NULL,
            academic_year TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'approved', 'rejected')),
            files TEXT,
            tags TEXT NOT NULL DEFAULT '[]',
            video_url TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS comments (
            id SERIAL PRIMARY KEY,
            project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id),
            content TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """))


def _run_sqlite_migrations(conn: Connection) -> None:
    logger.info("Running SQLite migrations")

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            thumbnail TEXT,
            author_id INTEGER NOT NULL REFERENCES users(id),
            category TEXT NOT NULL,
            academic_year TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'approved', 'rejected')),
            files TEXT,
            tags TEXT NOT NULL DEFAULT '[]',
            video_url TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS comments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id),
            content TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """))


def _create_indexes(conn: Connection) -> None:
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_projects_status_created ON projects(status, created_at)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_projects_author ON projects(author_id)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_comments_project ON comments(project_id)"))


def seed_admin() -> bool:
    """
    Create the configured administrator (ADMIN_EMAIL / ADMIN_PASSWORD) if absent.
    Returns True when a new admin row was inserted.
    """
    if not config.ADMIN_EMAIL or not config.ADMIN_PASSWORD:
        logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin seed")
        return False

    from projecthub import credentials
    from projecthub.models import Role

    if credentials.find_by_email(config.ADMIN_EMAIL) is not None:
        logger.info("Admin %s already exists", config.ADMIN_EMAIL)
        return False

    credentials.create(config.ADMIN_NAME, config.ADMIN_EMAIL, config.ADMIN_PASSWORD, role=Role.admin)
    logger.info("Seeded admin %s", config.ADMIN_EMAIL)
    return True


if __name__ == "__main__":
    from projecthub.logging_config import setup_logging

    setup_logging()
    run_migrations()
    seed_admin()
