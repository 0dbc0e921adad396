from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

MediaTypeFilter = Literal["all", "image", "video", "pdf"]


class QuotaRead(BaseModel):
    used: int
    limit: int
    percentage: int


class MediaAssetRead(BaseModel):
    id: str
    project_id: str
    filename: str
    display_name: str
    alt_text: str | None = None
    storage_key: str
    url: str
    file_size: int
    mime_type: str
    original_mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    thumbnail_key: str | None = None
    thumbnail_url: str | None = None
    compressed: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MediaAssetListItem(MediaAssetRead):
    used_in_pages: int = 0


class MediaAssetUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    alt_text: str | None = None

    @field_validator("display_name")
    @classmethod
    def display_name_not_null(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("display_name cannot be null")
        return value


class FailedUpload(BaseModel):
    filename: str
    message: str
    code: str


class MediaUploadResponse(BaseModel):
    success: bool = True
    data: list[MediaAssetRead]
    failed: list[FailedUpload] | None = None
    quota: QuotaRead


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    has_more: bool


class MediaListResponse(BaseModel):
    success: bool = True
    data: list[MediaAssetListItem]
    pagination: Pagination
    quota: QuotaRead


class MediaItemResponse(BaseModel):
    success: bool = True
    data: MediaAssetRead


class MediaDeleteResponse(BaseModel):
    success: bool = True
    message: str
