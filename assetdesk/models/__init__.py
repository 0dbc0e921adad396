"""ORM models; importing this package registers every table on ``Base.metadata``."""

from .media_asset import MediaAsset
from .page import Page
from .project import Project

__all__ = [
    "MediaAsset",
    "Page",
    "Project",
]
