"""Storage key layout for project media.

Every object lives under ``uploads/{project_id}/`` so a project can be
purged by prefix. Thumbnails sit in a ``thumbs/`` sub-prefix.
"""

import os
import re
import uuid
from typing import Callable

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

TokenFactory = Callable[[], str]


def _short_token() -> str:
    return uuid.uuid4().hex[:8]


def sanitize_filename(filename: str | None) -> str:
    name = os.path.basename((filename or "").replace("\\", "/"))
    sanitized = _UNSAFE_CHARS.sub("_", name.replace("\0", ""))
    return sanitized or "file"


def project_prefix(project_id: str) -> str:
    return f"uploads/{sanitize_filename(project_id)}/"


def build_media_key(
    project_id: str,
    filename: str | None,
    extension: str | None = None,
    token_factory: TokenFactory = _short_token,
) -> str:
    key = f"{project_prefix(project_id)}{token_factory()}-{sanitize_filename(filename)}"
    if extension:
        key += extension if extension.startswith(".") else f".{extension}"
    return key


def build_thumbnail_key(project_id: str, token_factory: TokenFactory = _short_token) -> str:
    return f"{project_prefix(project_id)}thumbs/{token_factory()}-thumb.webp"
