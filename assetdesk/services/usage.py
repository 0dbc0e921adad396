from typing import Any, Iterable

from sqlalchemy.orm import Session

from ..models.page import Page


def _iter_sections(sections: Any) -> Iterable[dict]:
    if isinstance(sections, dict):
        sections = sections.get("sections") or []
    if not isinstance(sections, list):
        return []
    return [section for section in sections if isinstance(section, dict)]


def page_references(sections: Any, asset_url: str) -> bool:
    if not asset_url:
        return False
    for section in _iter_sections(sections):
        content = section.get("content")
        if isinstance(content, str) and asset_url in content:
            return True
    return False


def load_project_pages(db: Session, project_id: str) -> list[tuple[str, Any]]:
    """Fetch ``(path, sections)`` for every page of a project, ordered by path."""
    rows = (
        db.query(Page.path, Page.sections)
        .filter(Page.project_id == project_id)
        .order_by(Page.path.asc())
        .all()
    )
    return [(path, sections) for path, sections in rows]


def pages_using(pages: Iterable[tuple[str, Any]], asset_url: str) -> list[str]:
    if not asset_url:
        return []
    return [path for path, sections in pages if page_references(sections, asset_url)]


def find_usage(db: Session, project_id: str, asset_url: str) -> list[str]:
    """Return the paths of pages whose section content embeds ``asset_url``.

    Pages are scanned linearly on every call; there is no reference index.
    Callers resolving many URLs at once should load the pages a single time
    with ``load_project_pages`` and match each URL with ``pages_using``.
    """
    if not asset_url:
        return []
    return pages_using(load_project_pages(db, project_id), asset_url)
