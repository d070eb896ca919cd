"""
projecthub/routes_projects.py

Project endpoints: browse, submit, moderate, comment.

Routes stay thin: they translate HTTP input into engine calls and let
projecthub.moderation decide visibility and authorization. Errors raised by
the engine are rendered by the handlers in projecthub.errors.

Security guarantees:
- author_id always comes from the verified token, never from the request
- anonymous viewers only ever receive approved projects
- status changes, edits and deletes re-check the admin role inside the write
"""

from __future__ import annotations

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile

from projecthub import moderation
from projecthub.auth_context import get_viewer, require_auth_context
from projecthub.dependencies import require_admin
from projecthub.file_intake import IncomingFile
from projecthub.models import Comment, Identity, Project, ProjectDetail, ProjectStats
from projecthub.schemas import (
    CommentCreateRequest,
    MessageResponse,
    ProjectUpdateRequest,
    StatusUpdateRequest,
)

router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
)


@router.get("", response_model=List[Project])
def list_projects(
    status: Optional[str] = Query(None, description="Ignored for anonymous callers"),
    category: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    tags: Optional[List[str]] = Query(None, description="Repeatable; all must match"),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(moderation.DEFAULT_PAGE),
    limit: int = Query(moderation.DEFAULT_LIMIT),
    viewer: Optional[Identity] = Depends(get_viewer),
) -> List[Project]:
    filters = moderation.ProjectFilters(
        status=status,
        category=category,
        academic_year=academic_year,
        tags=tags,
        search=search,
        page=page,
        limit=limit,
    )
    return moderation.list_projects(viewer, filters)


@router.get("/stats", response_model=ProjectStats)
def project_stats(actor: Identity = Depends(require_admin)) -> ProjectStats:
    return moderation.project_stats(actor)


@router.get("/{project_id}", response_model=ProjectDetail)
def get_project(
    project_id: int = Path(..., ge=1),
    viewer: Optional[Identity] = Depends(get_viewer),
) -> ProjectDetail:
    return moderation.get_project(viewer, project_id)


@router.post("", response_model=Project, status_code=201)
def create_project(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    academic_year: Optional[str] = Form(None, alias="academicYear"),
    tags: Optional[str] = Form(None, description="JSON-encoded array of strings"),
    video_url: Optional[str] = Form(None, alias="videoUrl"),
    thumbnail: Optional[str] = Form(None, description="http(s) image URL"),
    # A blank file input arrives as an empty string part, not an UploadFile
    project_files: Optional[List[Union[UploadFile, str]]] = File(None, alias="projectFiles"),
    ctx: Identity = Depends(require_auth_context),
) -> Project:
    """
    Submit a project (multipart/form-data). It starts in `pending` state and
    is visible to anonymous visitors only once an admin approves it.
    """
    draft = moderation.ProjectDraft(
        title=title,
        description=description,
        category=category,
        academic_year=academic_year,
        tags=tags,
        video_url=video_url,
        thumbnail=thumbnail,
    )
    uploads = [
        IncomingFile(filename=f.filename or "", content_type=f.content_type, stream=f.file)
        for f in (project_files or [])
        if not isinstance(f, str) and f.filename
    ]
    return moderation.create_project(ctx, draft, uploads)


@router.patch("/{project_id}/status", response_model=Project)
def update_project_status(
    request: StatusUpdateRequest,
    project_id: int = Path(..., ge=1),
    ctx: Identity = Depends(require_auth_context),
) -> Project:
    return moderation.transition_status(ctx, project_id, request.status)


@router.put("/{project_id}", response_model=Project)
def update_project(
    request: ProjectUpdateRequest,
    project_id: int = Path(..., ge=1),
    ctx: Identity = Depends(require_auth_context),
) -> Project:
    patch = moderation.ProjectPatch(
        title=request.title,
        description=request.description,
        category=request.category,
    )
    return moderation.update_project(ctx, project_id, patch)


@router.delete("/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: int = Path(..., ge=1),
    ctx: Identity = Depends(require_auth_context),
) -> MessageResponse:
    moderation.delete_project(ctx, project_id)
    return MessageResponse(message="Project deleted successfully")


@router.post("/{project_id}/comments", response_model=Comment, status_code=201)
def add_comment(
    request: CommentCreateRequest,
    project_id: int = Path(..., ge=1),
    ctx: Identity = Depends(require_auth_context),
) -> Comment:
    return moderation.add_comment(ctx, project_id, request.content)
