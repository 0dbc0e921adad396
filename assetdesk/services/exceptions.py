"""Media domain specific exceptions."""


class MediaError(Exception):
    """Base class for media domain errors."""

    code = "MEDIA_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class ProjectNotFound(MediaError):
    """Raised when a batch targets a project that does not exist."""

    code = "PROJECT_NOT_FOUND"
    status_code = 404

    def __init__(self, project_id: str) -> None:
        super().__init__("Project not found")
        self.project_id = project_id


class QuotaExceeded(MediaError):
    """Raised when a batch would push project storage past the ceiling."""

    code = "QUOTA_EXCEEDED"
    status_code = 507

    def __init__(self, used: int, limit: int) -> None:
        gib = 1024 * 1024 * 1024
        super().__init__(f"Storage quota exceeded. Used: {used / gib:.2f} GB, Limit: {limit / gib:.0f} GB")
        self.used = used
        self.limit = limit

    @property
    def percentage(self) -> int:
        return round(self.used / self.limit * 100) if self.limit else 100

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["quota"] = {"used": self.used, "limit": self.limit, "percentage": self.percentage}
        return payload


class MediaNotFound(MediaError):
    """Raised when an asset id is unknown within the project."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, media_id: str) -> None:
        super().__init__("Media not found")
        self.media_id = media_id


class MediaInUse(MediaError):
    """Raised when deleting an asset that pages still reference."""

    code = "MEDIA_IN_USE"
    status_code = 409

    def __init__(self, pages_using: list[str]) -> None:
        super().__init__(f"Media is used in {len(pages_using)} page(s)")
        self.pages_using = pages_using

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["pages_using"] = self.pages_using
        return payload


class FileIngestionError(MediaError):
    """Base class for errors scoped to a single file of a batch."""

    code = "FILE_FAILED"
    status_code = 422


class UnsupportedMediaType(FileIngestionError):
    code = "UNSUPPORTED_TYPE"

    def __init__(self, mime_type: str) -> None:
        super().__init__(f"File type not supported: {mime_type}")
        self.mime_type = mime_type


class FileTooLarge(FileIngestionError):
    code = "FILE_TOO_LARGE"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File too large: {size} bytes (max {limit})")
        self.size = size
        self.limit = limit


class ImageProcessingError(FileIngestionError):
    code = "PROCESSING_FAILED"


class StorageWriteError(FileIngestionError):
    code = "STORAGE_WRITE_FAILED"
