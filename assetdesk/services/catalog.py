import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from ..models.media_asset import MediaAsset
from .exceptions import MediaInUse, MediaNotFound
from .media_storage import ObjectStorage
from .usage import find_usage

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MediaPage:
    items: list[MediaAsset]
    total: int
    page: int
    limit: int

    @property
    def has_more(self) -> bool:
        return (self.page - 1) * self.limit + len(self.items) < self.total


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filtered_query(db: Session, project_id: str, media_type: str, search: str | None) -> Query:
    query = db.query(MediaAsset).filter(MediaAsset.project_id == project_id)
    if media_type == "image":
        query = query.filter(MediaAsset.mime_type.like("image/%"))
    elif media_type == "video":
        query = query.filter(MediaAsset.mime_type.like("video/%"))
    elif media_type == "pdf":
        query = query.filter(MediaAsset.mime_type == "application/pdf")
    elif media_type != "all":
        raise ValueError(f"Unknown media type filter: {media_type}")

    if search:
        pattern = f"%{_escape_like(search)}%"
        query = query.filter(
            or_(
                MediaAsset.filename.ilike(pattern, escape="\\"),
                MediaAsset.display_name.ilike(pattern, escape="\\"),
            )
        )
    return query


def list_media(
    db: Session,
    project_id: str,
    media_type: str = "all",
    search: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> MediaPage:
    query = _filtered_query(db, project_id, media_type, search)
    total = query.order_by(None).with_entities(func.count(MediaAsset.id)).scalar() or 0
    items = (
        query.order_by(MediaAsset.created_at.desc(), MediaAsset.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return MediaPage(items=items, total=int(total), page=page, limit=limit)


def get_media(db: Session, project_id: str, media_id: str) -> MediaAsset:
    media = (
        db.query(MediaAsset)
        .filter(MediaAsset.id == media_id, MediaAsset.project_id == project_id)
        .first()
    )
    if media is None:
        raise MediaNotFound(media_id)
    return media


def update_media(
    db: Session,
    project_id: str,
    media_id: str,
    changes: dict,
) -> MediaAsset:
    """Apply metadata edits. Only display name and alt text may change."""
    media = get_media(db, project_id, media_id)
    for key in ("display_name", "alt_text"):
        if key in changes:
            if key == "display_name" and changes[key] is None:
                continue
            setattr(media, key, changes[key])
    media.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(media)
    return media


def _delete_object(storage: ObjectStorage, key: str | None) -> None:
    if not key:
        return
    try:
        storage.delete(key)
    except Exception:
        logger.warning("Failed to delete storage object %s", key, exc_info=True)


def delete_media(
    db: Session,
    storage: ObjectStorage,
    project_id: str,
    media_id: str,
    force: bool = False,
) -> None:
    media = get_media(db, project_id, media_id)

    if not force:
        pages_using = find_usage(db, project_id, media.url)
        if pages_using:
            raise MediaInUse(pages_using)

    # Storage delete failures never block removal of the row.
    _delete_object(storage, media.storage_key)
    _delete_object(storage, media.thumbnail_key)

    filename = media.filename
    db.delete(media)
    db.commit()
    logger.info("Deleted media %s (%s) from project %s", media_id, filename, project_id)
