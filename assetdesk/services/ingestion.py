"""Bulk media ingestion.

A batch is admitted or rejected against the project quota as a unit, then
each file is classified, processed and uploaded concurrently. A failure in
one file is captured as a ``FileFailure`` value and never disturbs its
siblings. Catalog rows are only written for files whose bytes reached
storage.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..models.media_asset import MediaAsset
from ..models.project import Project
from .exceptions import (
    FileIngestionError,
    FileTooLarge,
    ImageProcessingError,
    ProjectNotFound,
    QuotaExceeded,
    StorageWriteError,
    UnsupportedMediaType,
)
from .image_processor import OUTPUT_EXTENSION, ImageProcessor, ProcessedImage
from .media_keys import build_media_key, build_thumbnail_key
from .media_storage import ObjectStorage
from .media_types import MediaKind, classify, normalize_mime_type
from .quota import QuotaCheck, check_quota

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IncomingFile:
    filename: str
    content_type: str
    data: bytes
    size: int = -1

    def __post_init__(self) -> None:
        if self.size < 0:
            self.size = len(self.data)


@dataclass(slots=True)
class FileFailure:
    filename: str
    message: str
    code: str = "UPLOAD_FAILED"

    def as_dict(self) -> dict:
        return {"filename": self.filename, "message": self.message, "code": self.code}


@dataclass(slots=True)
class StoredUpload:
    filename: str
    storage_key: str
    url: str
    file_size: int
    mime_type: str
    original_mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    thumbnail_key: str | None = None
    thumbnail_url: str | None = None
    compressed: bool = False

    @property
    def keys(self) -> list[str]:
        return [key for key in (self.storage_key, self.thumbnail_key) if key]


@dataclass(slots=True)
class IngestionResult:
    succeeded: list[MediaAsset] = field(default_factory=list)
    failed: list[FileFailure] = field(default_factory=list)
    quota: QuotaCheck | None = None


class MediaIngestionService:
    def __init__(
        self,
        db: Session,
        storage: ObjectStorage,
        processor: ImageProcessor | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.storage = storage
        self.settings = settings or get_settings()
        self.processor = processor or ImageProcessor(
            quality=self.settings.image_quality,
            thumbnail_width=self.settings.thumbnail_width,
            thumbnail_quality=self.settings.thumbnail_quality,
        )

    @property
    def limit(self) -> int:
        return self.settings.project_storage_limit

    def quota(self, project_id: str, additional_bytes: int = 0) -> QuotaCheck:
        return check_quota(self.db, project_id, additional_bytes, limit=self.limit)

    def _counts_toward_quota(self, upload: IncomingFile) -> bool:
        return upload.size <= self.settings.max_file_size

    async def ingest(self, project_id: str, files: list[IncomingFile]) -> IngestionResult:
        # Session calls run off the event loop, one at a time.
        project = await asyncio.to_thread(self.db.get, Project, project_id)
        if project is None:
            raise ProjectNotFound(project_id)

        # Oversized files fail on their own and never occupy quota.
        batch_size = sum(upload.size for upload in files if self._counts_toward_quota(upload))
        admission = await asyncio.to_thread(self.quota, project_id, batch_size)
        if not admission.allowed:
            logger.warning(
                "Rejected batch of %d files (%d bytes) for project %s: %d/%d bytes used",
                len(files),
                batch_size,
                project_id,
                admission.used,
                admission.limit,
            )
            raise QuotaExceeded(admission.used, admission.limit)

        logger.info("Uploading %d files (%d bytes) for project %s", len(files), batch_size, project_id)
        outcomes = await asyncio.gather(*(self._store_file(project_id, upload) for upload in files))

        result = IngestionResult()
        for outcome in outcomes:
            if isinstance(outcome, StoredUpload):
                outcome = await self._record(project_id, outcome)
            if isinstance(outcome, FileFailure):
                result.failed.append(outcome)
            else:
                result.succeeded.append(outcome)

        result.quota = await asyncio.to_thread(self.quota, project_id)
        return result

    async def _store_file(self, project_id: str, upload: IncomingFile) -> StoredUpload | FileFailure:
        try:
            stored = await self._process_and_upload(project_id, upload)
        except FileIngestionError as exc:
            logger.warning("Error processing file %s: %s", upload.filename, exc.message)
            return FileFailure(upload.filename, exc.message, exc.code)
        except Exception as exc:
            logger.exception("Unexpected error processing file %s", upload.filename)
            return FileFailure(upload.filename, str(exc) or "Upload failed")
        logger.info("Uploaded %s -> %s", upload.filename, stored.storage_key)
        return stored

    async def _process_and_upload(self, project_id: str, upload: IncomingFile) -> StoredUpload:
        mime_type = normalize_mime_type(upload.content_type)
        kind = classify(mime_type)
        if kind is MediaKind.REJECTED:
            raise UnsupportedMediaType(upload.content_type or "unknown")
        if upload.size > self.settings.max_file_size:
            raise FileTooLarge(upload.size, self.settings.max_file_size)

        if kind is MediaKind.IMAGE:
            return await self._upload_image(project_id, upload, mime_type)

        key = build_media_key(project_id, upload.filename)
        await self._put(key, upload.data, mime_type)
        return StoredUpload(
            filename=upload.filename,
            storage_key=key,
            url=self.storage.public_url(key),
            file_size=len(upload.data),
            mime_type=mime_type,
        )

    async def _upload_image(self, project_id: str, upload: IncomingFile, mime_type: str) -> StoredUpload:
        processed = await self._process_image(upload.data, mime_type)

        key = build_media_key(project_id, upload.filename, OUTPUT_EXTENSION)
        await self._put(key, processed.buffer, processed.mime_type)

        thumbnail_key = None
        if processed.thumbnail_buffer:
            thumbnail_key = build_thumbnail_key(project_id)
            try:
                await self._put(thumbnail_key, processed.thumbnail_buffer, processed.mime_type)
            except StorageWriteError:
                await self._discard([key])
                raise

        return StoredUpload(
            filename=upload.filename,
            storage_key=key,
            url=self.storage.public_url(key),
            file_size=len(processed.buffer),
            mime_type=processed.mime_type,
            original_mime_type=processed.original_mime_type,
            width=processed.width,
            height=processed.height,
            thumbnail_key=thumbnail_key,
            thumbnail_url=self.storage.public_url(thumbnail_key) if thumbnail_key else None,
            compressed=processed.compressed,
        )

    async def _process_image(self, data: bytes, mime_type: str) -> ProcessedImage:
        try:
            return await asyncio.to_thread(self.processor.process, data, mime_type)
        except ImageProcessingError:
            raise
        except Exception as exc:
            raise ImageProcessingError(f"Image processing failed: {exc}") from exc

    async def _put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(self.storage.put, key, data, content_type)
        except Exception as exc:
            raise StorageWriteError(f"Storage upload failed: {exc}") from exc

    async def _discard(self, keys: list[str]) -> None:
        for key in keys:
            try:
                await asyncio.to_thread(self.storage.delete, key)
            except Exception:
                logger.warning("Failed to clean up storage object %s", key, exc_info=True)

    async def _record(self, project_id: str, stored: StoredUpload) -> MediaAsset | FileFailure:
        media = MediaAsset(
            project_id=project_id,
            filename=stored.filename,
            display_name=stored.filename,
            storage_key=stored.storage_key,
            url=stored.url,
            file_size=stored.file_size,
            mime_type=stored.mime_type,
            original_mime_type=stored.original_mime_type,
            width=stored.width,
            height=stored.height,
            thumbnail_key=stored.thumbnail_key,
            thumbnail_url=stored.thumbnail_url,
            compressed=stored.compressed,
        )
        if not await asyncio.to_thread(self._save, media):
            logger.error("Failed to record media %s for project %s", stored.filename, project_id)
            await self._discard(stored.keys)
            return FileFailure(stored.filename, "Failed to save media record", "RECORD_FAILED")
        return media

    def _save(self, media: MediaAsset) -> bool:
        try:
            self.db.add(media)
            self.db.commit()
        except SQLAlchemyError:
            logger.debug("Rolling back insert of %s", media.storage_key, exc_info=True)
            self.db.rollback()
            return False
        self.db.refresh(media)
        return True
