"""
projecthub/repository.py

Project repository: every SQL statement touching `projects` and `comments`.

All functions take an open connection from `db.get_db_connection()` so the
caller decides the transaction boundary. Writes that require an admin encode
that requirement in the statement's WHERE clause (ADMIN_PREDICATE), so the
role check and the mutation happen in one atomic statement.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from sqlalchemy import text
from sqlalchemy.engine import Connection

from projecthub.models import AuthorSummary, Comment, CommentAuthor, FileDescriptor, Project, ProjectStatus
from projecthub.thumbnails import display_thumbnail

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = """
    p.id, p.title, p.description, p.thumbnail, p.author_id, p.category,
    p.academic_year, p.status, p.files, p.tags, p.video_url,
    p.created_at, p.updated_at,
    u.name AS author_name, u.email AS author_email
"""

COMMENT_COLUMNS = """
    c.id, c.project_id, c.user_id, c.content, c.created_at,
    u.name AS user_name
"""

# True only while the acting user still holds the admin role in the store
ADMIN_PREDICATE = "EXISTS (SELECT 1 FROM users a WHERE a.id = :actor_id AND a.role = 'admin')"

LIKE_ESCAPE = "\\"


# ---------------------------------------------------------
# Row conversion
# ---------------------------------------------------------
def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def encode_tags(tags: Iterable[str]) -> str:
    return json.dumps(sorted(set(tags)))


def decode_tags(raw: Any) -> Set[str]:
    if not raw:
        return set()
    if isinstance(raw, (list, tuple, set)):
        return {str(t) for t in raw}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unparseable tags column, treating as comma list: %r", raw)
        return {t.strip() for t in str(raw).split(",") if t.strip()}
    return {str(t) for t in parsed} if isinstance(parsed, list) else set()


def encode_files(files: Optional[List[FileDescriptor]]) -> Optional[str]:
    if not files:
        return None
    return json.dumps([f.model_dump(exclude_none=True) for f in files])


def decode_files(raw: Any) -> Optional[List[FileDescriptor]]:
    if not raw:
        return None
    try:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
        return [FileDescriptor.model_validate(item) for item in parsed]
    except (TypeError, ValueError) as e:
        logger.error("Unparseable files column, dropping: %s", e)
        return None


def row_to_project(row: Mapping[str, Any]) -> Project:
    return Project(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        thumbnail=row["thumbnail"],
        display_thumbnail=display_thumbnail(row["id"], row["thumbnail"]),
        author_id=row["author_id"],
        category=row["category"],
        academic_year=row["academic_year"],
        status=row["status"],
        files=decode_files(row["files"]),
        tags=decode_tags(row["tags"]),
        video_url=row["video_url"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        author=AuthorSummary(
            id=row["author_id"],
            name=row["author_name"],
            email=row["author_email"],
        ),
    )


def row_to_comment(row: Mapping[str, Any]) -> Comment:
    return Comment(
        id=row["id"],
        project_id=row["project_id"],
        content=row["content"],
        created_at=row["created_at"],
        user=CommentAuthor(id=row["user_id"], name=row["user_name"]),
    )


# ---------------------------------------------------------
# Projects
# ---------------------------------------------------------
def list_projects(
    conn: Connection,
    *,
    status: Optional[str] = None,
    category: Optional[str] = None,
    academic_year: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    search: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> List[Project]:
    """
    Filtered, paginated listing ordered newest first.
    Ties on created_at are broken by id so pages never overlap.
    """
    clauses: List[str] = []
    params: Dict[str, Any] = {"limit": limit, "offset": offset}

    if status:
        clauses.append("p.status = :status")
        params["status"] = status
    if category:
        clauses.append("p.category = :category")
        params["category"] = category
    if academic_year:
        clauses.append("p.academic_year = :academic_year")
        params["academic_year"] = academic_year
    for i, tag in enumerate(sorted(set(tags or ()))):
        # tags are stored as a JSON array; match the encoded element exactly
        clauses.append(f"p.tags LIKE :tag_{i} ESCAPE '{LIKE_ESCAPE}'")
        params[f"tag_{i}"] = "%" + escape_like(json.dumps(tag)) + "%"
    if search:
        clauses.append(
            f"(LOWER(p.title) LIKE :search ESCAPE '{LIKE_ESCAPE}'"
            f" OR LOWER(p.description) LIKE :search ESCAPE '{LIKE_ESCAPE}')"
        )
        params["search"] = "%" + escape_like(search.lower()) + "%"

    where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
    rows = conn.execute(
        text(
            f"SELECT {PROJECT_COLUMNS} FROM projects p"
            f" LEFT JOIN users u ON p.author_id = u.id"
            f"{where}"
            f" ORDER BY p.created_at DESC, p.id DESC"
            f" LIMIT :limit OFFSET :offset"
        ),
        params,
    ).mappings().all()
    return [row_to_project(row) for row in rows]


def fetch_project_row(conn: Connection, project_id: int) -> Optional[Mapping[str, Any]]:
    return conn.execute(
        text(
            f"SELECT {PROJECT_COLUMNS} FROM projects p"
            f" LEFT JOIN users u ON p.author_id = u.id"
            f" WHERE p.id = :id"
        ),
        {"id": project_id},
    ).mappings().first()


def project_exists(conn: Connection, project_id: int) -> bool:
    return conn.execute(
        text("SELECT 1 FROM projects WHERE id = :id"),
        {"id": project_id},
    ).first() is not None


def count_projects(conn: Connection) -> int:
    return conn.execute(text("SELECT COUNT(*) FROM projects")).scalar_one()


def insert_project(conn: Connection, values: Dict[str, Any]) -> int:
    """Insert a new project in `pending` state and return its id."""
    return conn.execute(
        text("""
            INSERT INTO projects (
                title, description, thumbnail, author_id, category, academic_year,
                status, files, tags, video_url, created_at, updated_at
            ) VALUES (
                :title, :description, :thumbnail, :author_id, :category, :academic_year,
                :status, :files, :tags, :video_url, :now, :now
            )
            RETURNING id
        """),
        {
            "title": values["title"],
            "description": values["description"],
            "thumbnail": values.get("thumbnail"),
            "author_id": values["author_id"],
            "category": values["category"],
            "academic_year": values["academic_year"],
            "status": ProjectStatus.pending.value,
            "files": encode_files(values.get("files")),
            "tags": encode_tags(values.get("tags") or ()),
            "video_url": values.get("video_url"),
            "now": values["now"],
        },
    ).scalar_one()


def set_status(conn: Connection, project_id: int, status: str, actor_id: int, now: str) -> int:
    """Admin-conditional status write. Returns the number of rows changed (0 or 1)."""
    result = conn.execute(
        text(f"""
            UPDATE projects
            SET status = :status, updated_at = :now
            WHERE id = :id AND {ADMIN_PREDICATE}
        """),
        {"status": status, "now": now, "id": project_id, "actor_id": actor_id},
    )
    return result.rowcount


def update_fields(
    conn: Connection,
    project_id: int,
    actor_id: int,
    now: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
) -> int:
    """Admin-conditional edit of title/description/category. None keeps the stored value."""
    result = conn.execute(
        text(f"""
            UPDATE projects
            SET title = COALESCE(:title, title),
                description = COALESCE(:description, description),
                category = COALESCE(:category, category),
                updated_at = :now
            WHERE id = :id AND {ADMIN_PREDICATE}
        """),
        {
            "title": title,
            "description": description,
            "category": category,
            "now": now,
            "id": project_id,
            "actor_id": actor_id,
        },
    )
    return result.rowcount


def delete_project(conn: Connection, project_id: int, actor_id: int) -> int:
    """
    Admin-conditional delete. Comments go with the project: by FK cascade
    where enabled, and explicitly here for stores without it.
    """
    result = conn.execute(
        text(f"DELETE FROM projects WHERE id = :id AND {ADMIN_PREDICATE}"),
        {"id": project_id, "actor_id": actor_id},
    )
    if result.rowcount:
        conn.execute(text("DELETE FROM comments WHERE project_id = :id"), {"id": project_id})
    return result.rowcount


def status_counts(conn: Connection) -> Dict[str, int]:
    rows = conn.execute(text("SELECT status, COUNT(*) AS n FROM projects GROUP BY status")).all()
    return {row[0]: row[1] for row in rows}


def recent_projects(conn: Connection, limit: int = 5) -> List[Mapping[str, Any]]:
    return conn.execute(
        text("""
            SELECT p.id, p.title, p.status, p.created_at, u.name AS author
            FROM projects p
            LEFT JOIN users u ON p.author_id = u.id
            ORDER BY p.created_at DESC, p.id DESC
            LIMIT :limit
        """),
        {"limit": limit},
    ).mappings().all()


# ---------------------------------------------------------
# Comments
# ---------------------------------------------------------
def list_comments(conn: Connection, project_id: int) -> List[Comment]:
    rows = conn.execute(
        text(
            f"SELECT {COMMENT_COLUMNS} FROM comments c"
            f" LEFT JOIN users u ON c.user_id = u.id"
            f" WHERE c.project_id = :project_id"
            f" ORDER BY c.created_at DESC, c.id DESC"
        ),
        {"project_id": project_id},
    ).mappings().all()
    return [row_to_comment(row) for row in rows]


def count_comments(conn: Connection, project_id: int) -> int:
    return conn.execute(
        text("SELECT COUNT(*) FROM comments WHERE project_id = :project_id"),
        {"project_id": project_id},
    ).scalar_one()


def insert_comment(conn: Connection, project_id: int, user_id: int, content: str, now: str) -> Comment:
    comment_id = conn.execute(
        text("""
            INSERT INTO comments (project_id, user_id, content, created_at)
            VALUES (:project_id, :user_id, :content, :now)
            RETURNING id
        """),
        {"project_id": project_id, "user_id": user_id, "content": content, "now": now},
    ).scalar_one()
    row = conn.execute(
        text(
            f"SELECT {COMMENT_COLUMNS} FROM comments c"
            f" LEFT JOIN users u ON c.user_id = u.id"
            f" WHERE c.id = :id"
        ),
        {"id": comment_id},
    ).mappings().one()
    return row_to_comment(row)
