"""
projecthub/file_intake.py

Normalizes uploaded project files into file descriptors.

Two storage modes (config.UPLOAD_STORAGE):
- disk:   content written under UPLOAD_DIR, descriptor carries a public `url`
- inline: no durable disk, descriptor carries base64 `data`

Limits are enforced while reading so an oversized upload is never fully
buffered.
"""

from __future__ import annotations

import base64
import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence

from projecthub import config
from projecthub.errors import InvalidArgument, PayloadTooLarge
from projecthub.models import FileDescriptor

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
FIELD_NAME = "projectFiles"


@dataclass
class IncomingFile:
    """One uploaded file part as handed over by the HTTP layer."""
    filename: str
    content_type: Optional[str]
    stream: BinaryIO


def public_url(file_path: Optional[str]) -> Optional[str]:
    """
    Turn a stored relative path into an absolute URL.
    Absolute http(s) URLs are returned unchanged.
    """
    if not file_path:
        return None
    if file_path.startswith(("http://", "https://")):
        return file_path
    clean = file_path.replace("\\", "/").lstrip("/")
    if clean.startswith("uploads/"):
        clean = clean[len("uploads/"):]
    return f"{config.PUBLIC_BASE_URL}/uploads/{clean}"


def _read_capped(upload: IncomingFile) -> bytes:
    limit = config.MAX_UPLOAD_BYTES
    chunks = []
    total = 0
    while True:
        chunk = upload.stream.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise PayloadTooLarge(
                f"File '{upload.filename}' exceeds the {limit} byte upload limit",
                fields=[FIELD_NAME],
            )
        chunks.append(chunk)
    return b"".join(chunks)


def _stored_name(original: str) -> str:
    ext = os.path.splitext(original)[1].lower()
    suffix = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
    return f"{FIELD_NAME}-{suffix}{ext}"


def store_files(uploads: Sequence[IncomingFile]) -> List[FileDescriptor]:
    """
    Read, size-check and store every upload.

    Raises:
        InvalidArgument: more than MAX_UPLOAD_FILES files
        PayloadTooLarge: a single file above MAX_UPLOAD_BYTES
    """
    if len(uploads) > config.MAX_UPLOAD_FILES:
        raise InvalidArgument(
            f"At most {config.MAX_UPLOAD_FILES} files may be uploaded",
            fields=[FIELD_NAME],
        )

    # Read everything first so a rejected file leaves nothing behind on disk
    payloads = []
    for upload in uploads:
        name = os.path.basename(upload.filename or "").strip() or "file"
        payloads.append((name, upload.content_type or "application/octet-stream", _read_capped(upload)))

    descriptors: List[FileDescriptor] = []
    if config.UPLOAD_STORAGE == "inline":
        for name, mime, content in payloads:
            descriptors.append(FileDescriptor(
                name=name,
                type=mime,
                data=base64.b64encode(content).decode("ascii"),
            ))
        return descriptors

    upload_dir = Path(config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    for name, mime, content in payloads:
        stored = _stored_name(name)
        (upload_dir / stored).write_bytes(content)
        logger.debug("Stored upload name=%s as=%s bytes=%d", name, stored, len(content))
        descriptors.append(FileDescriptor(name=name, type=mime, url=public_url(stored)))
    return descriptors


def discard_files(descriptors: Optional[Sequence[FileDescriptor]]) -> None:
    """Remove disk copies of descriptors whose project was never persisted."""
    prefix = f"{config.PUBLIC_BASE_URL}/uploads/"
    for descriptor in descriptors or ():
        if not descriptor.url or not descriptor.url.startswith(prefix):
            continue
        path = Path(config.UPLOAD_DIR) / descriptor.url[len(prefix):]
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove orphaned upload %s: %s", path, e)
