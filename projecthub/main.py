# ---------------------------------------------------------
# projecthub/main.py
# ProjectHub - project submission & moderation backend
#
# Run: uvicorn projecthub.main:app --reload (from repo root)
#
# - FastAPI + SQLite (dev) / PostgreSQL (prod)
# - /api/auth/*             : signup, login, current user
# - /api/users/profile      : view / edit own profile
# - /api/projects           : browse (anonymous: approved only), submit
# - /api/projects/{id}      : detail with comments, admin edit/delete
# - /api/projects/{id}/status   : admin moderation
# - /api/projects/{id}/comments : comment (authenticated)
# - /api/projects/stats     : admin dashboard numbers
# ---------------------------------------------------------

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path as FsPath

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from projecthub import config, db
from projecthub.errors import register_exception_handlers
from projecthub.logging_config import setup_logging
from projecthub.migrate import run_migrations, seed_admin
from projecthub.routes_auth import router as auth_router
from projecthub.routes_projects import router as projects_router
from projecthub.routes_users import router as users_router
from projecthub.schemas import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting with config: %s", config.describe())
    run_migrations()
    seed_admin()
    if config.UPLOAD_STORAGE == "disk":
        FsPath(config.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    yield
    db.get_engine().dispose()


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="ProjectHub Backend", version="0.1", lifespan=lifespan)

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS if not config.IS_DEV else ["*"],
    allow_credentials=not config.IS_DEV,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)

if config.UPLOAD_STORAGE == "disk":
    app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/api/health", response_model=HealthResponse)
def health() -> HealthResponse:
    db.ping()
    return HealthResponse(status="ok")
