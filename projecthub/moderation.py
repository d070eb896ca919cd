"""
projecthub/moderation.py

Visibility & moderation engine.

Single source of truth for:
- who can see a project (can_view)
- who can change a project's status, fields or existence (admins only)
- what a valid submission looks like (create_project validation)

Policy summary:
- Anonymous viewers see `approved` projects only. Any authenticated user sees
  every status. This is a product choice rather than a security boundary.
- Hidden and missing projects are indistinguishable to the caller (NotFound).
- `status` starts at `pending` and changes only through transition_status.
- Admin-only writes carry the role check inside the UPDATE/DELETE statement,
  so a role revoked between the token check and the write cannot slip through.

All validation happens before the first storage call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from sqlalchemy.engine import Connection

from projecthub import file_intake, repository
from projecthub.authz import require_admin, require_authenticated
from projecthub.db import get_db_connection, now_iso
from projecthub.errors import Forbidden, InvalidArgument, NotFound
from projecthub.file_intake import IncomingFile
from projecthub.models import (
    Comment,
    Identity,
    Project,
    ProjectDetail,
    ProjectStats,
    ProjectStatus,
    RecentProject,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
RECENT_PROJECTS = 5

REQUIRED_DRAFT_FIELDS = (
    ("title", "title"),
    ("description", "description"),
    ("category", "category"),
    ("academic_year", "academicYear"),
)


class Lookup(Enum):
    """Outcome of fetching a project on behalf of a viewer."""
    FOUND_VISIBLE = "found_visible"
    FOUND_HIDDEN = "found_hidden"
    NOT_FOUND = "not_found"


@dataclass
class ProjectFilters:
    status: Optional[str] = None
    category: Optional[str] = None
    academic_year: Optional[str] = None
    tags: Optional[Iterable[str]] = None
    search: Optional[str] = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT


@dataclass
class ProjectDraft:
    """Raw submission fields as received; validated by create_project."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    academic_year: Optional[str] = None
    tags: Any = None
    video_url: Optional[str] = None
    thumbnail: Optional[str] = None


@dataclass
class ProjectPatch:
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None


@dataclass
class _CleanDraft:
    title: str
    description: str
    category: str
    academic_year: str
    tags: Set[str] = field(default_factory=set)
    video_url: Optional[str] = None
    thumbnail: Optional[str] = None


# ---------------------------------------------------------
# Visibility
# ---------------------------------------------------------
def can_view(viewer: Optional[Identity], status: Any) -> bool:
    """Pure function of viewer + status. No side effects."""
    if viewer is None:
        return ProjectStatus(status) == ProjectStatus.approved
    return True


def lookup_project(
    conn: Connection,
    viewer: Optional[Identity],
    project_id: int,
) -> Tuple[Lookup, Optional[Mapping[str, Any]]]:
    """
    One fetch, tagged with the visibility verdict. The row is only handed
    back when the viewer may see it, so nothing downstream can assemble a
    response for a hidden project.
    """
    row = repository.fetch_project_row(conn, project_id)
    if row is None:
        return Lookup.NOT_FOUND, None
    if not can_view(viewer, row["status"]):
        return Lookup.FOUND_HIDDEN, None
    return Lookup.FOUND_VISIBLE, row


# ---------------------------------------------------------
# Input validation
# ---------------------------------------------------------
def coerce_status(value: Any) -> ProjectStatus:
    try:
        return ProjectStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in ProjectStatus)
        raise InvalidArgument(f"Invalid status {value!r}; expected one of: {allowed}", fields=["status"])


def parse_tags(raw: Any) -> Set[str]:
    """
    Accept a sequence of strings or a JSON-encoded array of strings.
    Whitespace is trimmed and blank entries dropped.
    """
    if raw is None:
        return set()
    if isinstance(raw, str):
        if not raw.strip():
            return set()
        try:
            raw = json.loads(raw)
        except ValueError:
            raise InvalidArgument("Invalid tags format: expected a JSON array of strings", fields=["tags"])
    if isinstance(raw, (str, bytes, Mapping)) or not isinstance(raw, (list, tuple, set, frozenset)):
        raise InvalidArgument("Invalid tags format: tags must be an array", fields=["tags"])
    if not all(isinstance(tag, str) for tag in raw):
        raise InvalidArgument("Invalid tags format: every tag must be a string", fields=["tags"])
    return {tag.strip() for tag in raw if tag.strip()}


def _clean_thumbnail(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise InvalidArgument("Please provide a valid image URL for the thumbnail.", fields=["thumbnail"])
    thumbnail = raw.strip()
    if not thumbnail:
        return None
    if not thumbnail.lower().startswith(("http://", "https://")):
        raise InvalidArgument("Please provide a valid image URL for the thumbnail.", fields=["thumbnail"])
    return thumbnail


def _clean_optional(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def validate_draft(draft: ProjectDraft) -> _CleanDraft:
    values = {}
    missing: List[str] = []
    for attr, wire_name in REQUIRED_DRAFT_FIELDS:
        raw = getattr(draft, attr)
        value = raw.strip() if isinstance(raw, str) else ""
        if not value:
            missing.append(wire_name)
        values[attr] = value
    if missing:
        raise InvalidArgument(
            "Title, description, category, and academic year are required.",
            fields=missing,
        )

    return _CleanDraft(
        tags=parse_tags(draft.tags),
        thumbnail=_clean_thumbnail(draft.thumbnail),
        video_url=_clean_optional(draft.video_url),
        **values,
    )


def _validate_pagination(filters: ProjectFilters) -> Tuple[int, int]:
    page, limit = filters.page, filters.limit
    if not isinstance(page, int) or page < 1:
        raise InvalidArgument("page must be a positive integer", fields=["page"])
    if not isinstance(limit, int) or limit < 1:
        raise InvalidArgument("limit must be a positive integer", fields=["limit"])
    if limit > MAX_LIMIT:
        raise InvalidArgument(f"limit must be at most {MAX_LIMIT}", fields=["limit"])
    return page, limit


# ---------------------------------------------------------
# Reads
# ---------------------------------------------------------
def list_projects(viewer: Optional[Identity], filters: Optional[ProjectFilters] = None) -> List[Project]:
    filters = filters or ProjectFilters()
    page, limit = _validate_pagination(filters)

    # Visibility gate first: anonymous callers only ever get approved projects
    if viewer is None:
        status: Optional[ProjectStatus] = ProjectStatus.approved
    elif filters.status:
        status = coerce_status(filters.status)
    else:
        status = None

    tags = parse_tags(list(filters.tags)) if filters.tags else set()

    with get_db_connection() as conn:
        projects = repository.list_projects(
            conn,
            status=status.value if status else None,
            category=_clean_optional(filters.category),
            academic_year=_clean_optional(filters.academic_year),
            tags=tags,
            search=_clean_optional(filters.search),
            limit=limit,
            offset=(page - 1) * limit,
        )

    logger.debug(
        "Listed %d projects (anonymous=%s, status=%s, page=%d, limit=%d)",
        len(projects), viewer is None, status.value if status else None, page, limit,
    )
    return projects


def get_project(viewer: Optional[Identity], project_id: int) -> ProjectDetail:
    with get_db_connection() as conn:
        outcome, row = lookup_project(conn, viewer, project_id)
        if outcome is not Lookup.FOUND_VISIBLE:
            if outcome is Lookup.FOUND_HIDDEN:
                logger.debug("Project id=%s hidden from anonymous viewer", project_id)
            raise NotFound("Project not found")
        comments = repository.list_comments(conn, project_id)

    project = repository.row_to_project(row)
    return ProjectDetail(**project.model_dump(), comments=comments)


# ---------------------------------------------------------
# Writes
# ---------------------------------------------------------
def create_project(
    author: Optional[Identity],
    draft: ProjectDraft,
    uploads: Sequence[IncomingFile] = (),
) -> Project:
    """
    Validate and persist a new submission in `pending` state.

    Raises:
        Unauthenticated: anonymous author
        InvalidArgument: missing fields, bad tags or thumbnail, too many files
        PayloadTooLarge: an upload above the size limit
    """
    author = require_authenticated(author)
    clean = validate_draft(draft)

    files = file_intake.store_files(uploads) if uploads else []
    try:
        with get_db_connection() as conn:
            project_id = repository.insert_project(conn, {
                "title": clean.title,
                "description": clean.description,
                "thumbnail": clean.thumbnail,
                "author_id": author.id,
                "category": clean.category,
                "academic_year": clean.academic_year,
                "files": files,
                "tags": clean.tags,
                "video_url": clean.video_url,
                "now": now_iso(),
            })
            row = repository.fetch_project_row(conn, project_id)
    except Exception:
        file_intake.discard_files(files)
        raise

    logger.info("Project created id=%s author_id=%s files=%d", project_id, author.id, len(files))
    return repository.row_to_project(row)


def _resolve_zero_rows(conn: Connection, actor: Identity, project_id: int, action: str) -> None:
    # The conditional write touched nothing: either the project is gone or the
    # actor lost the admin role after the token was checked.
    if repository.project_exists(conn, project_id):
        logger.warning("Admin predicate failed: action=%r user_id=%s project_id=%s", action, actor.id, project_id)
        raise Forbidden(f"Only admins can {action}")
    raise NotFound("Project not found")


def transition_status(actor: Optional[Identity], project_id: int, new_status: Any) -> Project:
    """
    Admin-only moderation transition. Any status may move to any other status.
    Idempotent: repeating a transition succeeds and refreshes `updated_at`.
    """
    actor = require_admin(actor, "change project status")
    status = coerce_status(new_status)

    with get_db_connection() as conn:
        changed = repository.set_status(conn, project_id, status.value, actor.id, now_iso())
        if not changed:
            _resolve_zero_rows(conn, actor, project_id, "change project status")
        row = repository.fetch_project_row(conn, project_id)

    logger.info("Project status changed id=%s status=%s by admin_id=%s", project_id, status.value, actor.id)
    return repository.row_to_project(row)


def update_project(actor: Optional[Identity], project_id: int, patch: ProjectPatch) -> Project:
    """
    Admin-only edit of title, description and category.
    Status, author and creation time are not reachable from here.
    """
    actor = require_admin(actor, "update projects")

    values = {}
    empty: List[str] = []
    for name in ("title", "description", "category"):
        raw = getattr(patch, name)
        if raw is None:
            continue
        value = raw.strip() if isinstance(raw, str) else ""
        if not value:
            empty.append(name)
        values[name] = value
    if empty:
        raise InvalidArgument("Updated fields must not be empty", fields=empty)
    if not values:
        raise InvalidArgument("Nothing to update", fields=["title", "description", "category"])

    with get_db_connection() as conn:
        changed = repository.update_fields(conn, project_id, actor.id, now_iso(), **values)
        if not changed:
            _resolve_zero_rows(conn, actor, project_id, "update projects")
        row = repository.fetch_project_row(conn, project_id)

    logger.info("Project updated id=%s fields=%s by admin_id=%s", project_id, sorted(values), actor.id)
    return repository.row_to_project(row)


def delete_project(actor: Optional[Identity], project_id: int) -> None:
    """Admin-only, irreversible. Removes the project and all of its comments."""
    actor = require_admin(actor, "delete projects")

    with get_db_connection() as conn:
        deleted = repository.delete_project(conn, project_id, actor.id)
        if not deleted:
            _resolve_zero_rows(conn, actor, project_id, "delete projects")

    logger.info("Project deleted id=%s by admin_id=%s", project_id, actor.id)


def add_comment(actor: Optional[Identity], project_id: int, content: Any) -> Comment:
    """
    Any authenticated user may comment. Commenting inherits the read gate:
    a project the actor cannot view is reported as NotFound.
    """
    actor = require_authenticated(actor)
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise InvalidArgument("Comment content is required", fields=["content"])

    with get_db_connection() as conn:
        outcome, _row = lookup_project(conn, actor, project_id)
        if outcome is not Lookup.FOUND_VISIBLE:
            raise NotFound("Project not found")
        comment = repository.insert_comment(conn, project_id, actor.id, text, now_iso())

    logger.info("Comment added id=%s project_id=%s user_id=%s", comment.id, project_id, actor.id)
    return comment


def project_stats(actor: Optional[Identity]) -> ProjectStats:
    """Admin dashboard numbers: totals per status plus the most recent submissions."""
    require_admin(actor, "view project statistics")

    with get_db_connection() as conn:
        counts = repository.status_counts(conn)
        recent = repository.recent_projects(conn, RECENT_PROJECTS)

    return ProjectStats(
        total=sum(counts.values()),
        pending=counts.get(ProjectStatus.pending.value, 0),
        approved=counts.get(ProjectStatus.approved.value, 0),
        rejected=counts.get(ProjectStatus.rejected.value, 0),
        recent=[
            RecentProject(
                id=row["id"],
                title=row["title"],
                author=row["author"],
                status=row["status"],
                created_at=row["created_at"],
            )
            for row in recent
        ],
    )
