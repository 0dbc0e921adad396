from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.database import get_db
from ..core.security import require_api_key
from ..schemas.media import (
    MediaAssetListItem,
    MediaAssetRead,
    MediaAssetUpdate,
    MediaDeleteResponse,
    MediaItemResponse,
    MediaListResponse,
    MediaTypeFilter,
    MediaUploadResponse,
)
from ..services import catalog
from ..services.image_processor import ImageProcessor
from ..services.ingestion import IncomingFile, MediaIngestionService
from ..services.media_storage import ObjectStorage, get_media_storage
from ..services.quota import check_quota
from ..services.usage import load_project_pages, pages_using

router = APIRouter(prefix="/projects/{project_id}/media", tags=["media"], dependencies=[Depends(require_api_key)])


def get_image_processor(settings: Settings = Depends(get_settings)) -> ImageProcessor:
    return ImageProcessor(
        quality=settings.image_quality,
        thumbnail_width=settings.thumbnail_width,
        thumbnail_quality=settings.thumbnail_quality,
    )


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": code, "message": message})


@router.post("/", response_model=MediaUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    project_id: str,
    files: list[UploadFile] | None = File(default=None),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_media_storage),
    processor: ImageProcessor = Depends(get_image_processor),
    settings: Settings = Depends(get_settings),
):
    if not files:
        return _error(status.HTTP_400_BAD_REQUEST, "NO_FILES", "No files provided for upload")
    if len(files) > settings.max_files_per_batch:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "TOO_MANY_FILES",
            f"At most {settings.max_files_per_batch} files can be uploaded at once",
        )

    incoming: list[IncomingFile] = []
    for upload in files:
        try:
            data = await upload.read()
        finally:
            await upload.close()
        incoming.append(
            IncomingFile(
                filename=upload.filename or "file",
                content_type=upload.content_type or "application/octet-stream",
                data=data,
            )
        )

    service = MediaIngestionService(db, storage, processor=processor, settings=settings)
    result = await service.ingest(project_id, incoming)
    response = MediaUploadResponse(
        data=[MediaAssetRead.model_validate(media, from_attributes=True) for media in result.succeeded],
        failed=[failure.as_dict() for failure in result.failed],
        quota=result.quota.as_dict(),
    )
    # "failed" is only present when at least one file failed.
    exclude = None if result.failed else {"failed"}
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=response.model_dump(mode="json", exclude=exclude))


@router.get("/", response_model=MediaListResponse)
def list_project_media(
    project_id: str,
    media_type: MediaTypeFilter = Query(default="all", alias="type"),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    result = catalog.list_media(db, project_id, media_type=media_type, search=search, page=page, limit=limit)
    pages = load_project_pages(db, project_id) if result.items else []
    items: list[MediaAssetListItem] = []
    for media in result.items:
        payload = MediaAssetListItem.model_validate(media, from_attributes=True)
        payload.used_in_pages = len(pages_using(pages, media.url))
        items.append(payload)
    quota = check_quota(db, project_id, limit=settings.project_storage_limit)
    return MediaListResponse(
        data=items,
        pagination={"page": result.page, "limit": result.limit, "total": result.total, "has_more": result.has_more},
        quota=quota.as_dict(),
    )


@router.get("/{media_id}", response_model=MediaItemResponse)
def get_project_media(project_id: str, media_id: str, db: Session = Depends(get_db)):
    media = catalog.get_media(db, project_id, media_id)
    return MediaItemResponse(data=MediaAssetRead.model_validate(media, from_attributes=True))


@router.patch("/{media_id}", response_model=MediaItemResponse)
def update_project_media(project_id: str, media_id: str, payload: MediaAssetUpdate, db: Session = Depends(get_db)):
    media = catalog.update_media(db, project_id, media_id, payload.model_dump(exclude_unset=True))
    return MediaItemResponse(data=MediaAssetRead.model_validate(media, from_attributes=True))


@router.delete("/{media_id}", response_model=MediaDeleteResponse)
def delete_project_media(
    project_id: str,
    media_id: str,
    force: bool = False,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_media_storage),
):
    catalog.delete_media(db, storage, project_id, media_id, force=force)
    return MediaDeleteResponse(message="Media deleted successfully")
