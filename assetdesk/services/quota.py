from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.config import GIB
from ..models.media_asset import MediaAsset

PROJECT_STORAGE_LIMIT = 5 * GIB


@dataclass(slots=True, frozen=True)
class QuotaCheck:
    allowed: bool
    used: int
    limit: int

    @property
    def percentage(self) -> int:
        return round(self.used / self.limit * 100) if self.limit else 100

    def as_dict(self) -> dict:
        return {"used": self.used, "limit": self.limit, "percentage": self.percentage}


def project_usage(db: Session, project_id: str) -> int:
    stmt = select(func.coalesce(func.sum(MediaAsset.file_size), 0)).where(MediaAsset.project_id == project_id)
    return int(db.execute(stmt).scalar_one())


def check_quota(
    db: Session,
    project_id: str,
    additional_bytes: int = 0,
    limit: int = PROJECT_STORAGE_LIMIT,
) -> QuotaCheck:
    # Derived from the catalog on every call; there is no counter to drift.
    used = project_usage(db, project_id)
    return QuotaCheck(allowed=used + additional_bytes <= limit, used=used, limit=limit)
