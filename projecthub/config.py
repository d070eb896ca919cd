# projecthub/config.py
# Environment-aware configuration for the projecthub backend

import os
from typing import Dict, List, Literal


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev").strip().lower()  # type: ignore
if ENV not in ("dev", "staging", "prod"):
    raise ValueError(f"ENV must be one of dev/staging/prod, got {ENV!r}")
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT configuration
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = "HS256"
TOKEN_EXPIRE_HOURS = _env_int("TOKEN_EXPIRE_HOURS", 24)

# Password hashing cost
BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

# Database configuration
# DATABASE_URL may point at managed Postgres; falls back to a local SQLite file
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip() or "sqlite:///projecthub.db"
DB_TIMEOUT_SECONDS = _env_int("DB_TIMEOUT_SECONDS", 10)
DB_POOL_SIZE = _env_int("DB_POOL_SIZE", 5)
DB_MAX_OVERFLOW = _env_int("DB_MAX_OVERFLOW", 10)

# CORS origins (expand for staging/prod)
CORS_ORIGINS: List[str] = [
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(o.strip() for o in extra_origins.split(",") if o.strip())

# File uploads
# disk: files written under UPLOAD_DIR and served at /uploads
# inline: base64 content stored with the project (no durable disk)
UPLOAD_STORAGE = os.environ.get("UPLOAD_STORAGE", "disk" if IS_DEV else "inline").strip().lower()
if UPLOAD_STORAGE not in ("disk", "inline"):
    raise ValueError(f"UPLOAD_STORAGE must be 'disk' or 'inline', got {UPLOAD_STORAGE!r}")
UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
MAX_UPLOAD_BYTES = _env_int("MAX_UPLOAD_BYTES", 50 * 1024 * 1024)
MAX_UPLOAD_FILES = _env_int("MAX_UPLOAD_FILES", 5)

# Seed administrator (created by `python -m projecthub.migrate` when both are set)
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "").strip().lower()
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")
ADMIN_NAME = os.environ.get("ADMIN_NAME", "Administrator")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG" if IS_DEV else "INFO").upper()

# Database type detection
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://", "postgresql+"))


def describe() -> Dict[str, object]:
    """Non-secret configuration summary, logged once at startup."""
    return {
        "env": ENV,
        "database": "PostgreSQL" if IS_POSTGRES else "SQLite (local dev)",
        "db_timeout_seconds": DB_TIMEOUT_SECONDS,
        "token_expire_hours": TOKEN_EXPIRE_HOURS,
        "upload_storage": UPLOAD_STORAGE,
        "max_upload_bytes": MAX_UPLOAD_BYTES,
        "cors_origins": CORS_ORIGINS,
    }
