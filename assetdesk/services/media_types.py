from enum import Enum


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    REJECTED = "rejected"


IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
VIDEO_MIME_TYPES = frozenset({"video/mp4"})
DOCUMENT_MIME_TYPES = frozenset({"application/pdf"})

ALLOWED_MIME_TYPES = IMAGE_MIME_TYPES | VIDEO_MIME_TYPES | DOCUMENT_MIME_TYPES


def normalize_mime_type(mime_type: str | None) -> str:
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def classify(mime_type: str | None) -> MediaKind:
    normalized = normalize_mime_type(mime_type)
    if normalized in IMAGE_MIME_TYPES:
        return MediaKind.IMAGE
    if normalized in VIDEO_MIME_TYPES:
        return MediaKind.VIDEO
    if normalized in DOCUMENT_MIME_TYPES:
        return MediaKind.DOCUMENT
    return MediaKind.REJECTED
