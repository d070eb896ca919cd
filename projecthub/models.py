from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# Enums
class Role(str, Enum):
    user = "user"
    admin = "admin"


class ProjectStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class CamelModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Models
class Identity(CamelModel):
    """Authenticated viewer/actor. Anonymous viewers are represented by None."""
    id: int
    email: str
    role: Role = Role.user
    name: Optional[str] = None


class User(CamelModel):
    id: int
    name: str
    email: str
    role: Role = Role.user
    created_at: Optional[datetime] = None


class FileDescriptor(CamelModel):
    name: str
    type: str = "application/octet-stream"
    url: Optional[str] = None
    data: Optional[str] = None  # base64-encoded content

    @model_validator(mode="after")
    def _exactly_one_location(self):
        if (self.url is None) == (self.data is None):
            raise ValueError("file descriptor needs exactly one of url or data")
        return self


class AuthorSummary(CamelModel):
    id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None


class CommentAuthor(CamelModel):
    id: int
    name: Optional[str] = None


class Comment(CamelModel):
    id: int
    project_id: int
    content: str
    created_at: datetime
    user: CommentAuthor


class Project(CamelModel):
    id: int
    title: str
    description: str
    thumbnail: Optional[str] = None
    display_thumbnail: Optional[str] = None
    author_id: int
    category: str
    academic_year: str
    status: ProjectStatus = ProjectStatus.pending
    files: Optional[List[FileDescriptor]] = None
    tags: Set[str] = Field(default_factory=set)
    video_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    author: AuthorSummary = Field(default_factory=AuthorSummary)


class ProjectDetail(Project):
    comments: List[Comment] = Field(default_factory=list)


class RecentProject(CamelModel):
    id: int
    title: str
    author: Optional[str] = None
    status: ProjectStatus
    created_at: datetime


class ProjectStats(CamelModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    recent: List[RecentProject] = Field(default_factory=list)
