"""
projecthub/thumbnails.py

Fallback thumbnails for projects submitted without one.

Applied at read time only: the stored `thumbnail` stays null and responses
carry the fallback in `displayThumbnail`.
"""

import hashlib
from typing import Optional

DEFAULT_THUMBNAILS = (
    "https://th.bing.com/th/id/OIP.OACmP6GQapaMmDQxj9guvgHaHJ?rs=1&pid=ImgDetMain",
    "https://th.bing.com/th/id/OIP.7T8gJCW11R29gj3PRhfrhwAAAA?rs=1&pid=ImgDetMain",
    "https://th.bing.com/th/id/OIP.cRZKM0zd0u0eUtR8XiUZuwHaD3?w=325&h=180&c=7&r=0&o=5&dpr=1.1&pid=1.7",
)


def pick_default_thumbnail(project_id: int) -> str:
    """Deterministic per id, so repeated reads of a project agree."""
    digest = hashlib.sha256(str(project_id).encode()).digest()
    return DEFAULT_THUMBNAILS[int.from_bytes(digest[:8], "big") % len(DEFAULT_THUMBNAILS)]


def display_thumbnail(project_id: int, thumbnail: Optional[str]) -> str:
    return thumbnail or pick_default_thumbnail(project_id)
