from __future__ import annotations

import io
import os
import tempfile
import threading

os.environ.setdefault("APP_DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_MEDIA_ROOT", tempfile.mkdtemp(prefix="assetdesk-media-"))
os.environ["APP_API_KEY"] = "test-key"

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from assetdesk.core.config import MIB, Settings
from assetdesk.core.database import Base, get_db
from assetdesk.main import app
from assetdesk.models import MediaAsset, Page, Project
from assetdesk.services.media_storage import get_media_storage

API_HEADERS = {"X-API-Key": "test-key"}


class FakeStorage:
    """In-memory object store that records every call."""

    def __init__(self, fail_on: tuple[str, ...] = (), fail_deletes: bool = False):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.puts: list[str] = []
        self.deletes: list[str] = []
        self.fail_on = fail_on
        self.fail_deletes = fail_deletes
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, content_type: str) -> None:
        if any(marker in key for marker in self.fail_on):
            raise ConnectionError("bucket unavailable")
        with self._lock:
            self.puts.append(key)
            self.objects[key] = (bytes(data), content_type)

    def delete(self, key: str) -> None:
        with self._lock:
            self.deletes.append(key)
        if self.fail_deletes:
            raise ConnectionError("bucket unavailable")
        with self._lock:
            self.objects.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"https://media.example.test/{key}"


def make_image(width: int = 640, height: int = 480, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    img = Image.new(mode, (width, height), color="white" if mode in ("RGB", "RGBA", "L") else 0)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def db_session() -> Session:
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite://",
        media_root=tmp_path,
        max_file_size=100 * MIB,
    )


@pytest.fixture()
def project(db_session: Session) -> Project:
    project = Project(name="Downtown Dental")
    db_session.add(project)
    db_session.commit()
    db_session.refresh(project)
    return project


@pytest.fixture()
def client(db_session: Session, storage: FakeStorage):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_media_storage] = lambda: storage
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def add_asset(db: Session, project: Project, **overrides) -> MediaAsset:
    fields = {
        "project_id": project.id,
        "filename": "photo.jpg",
        "display_name": "photo.jpg",
        "storage_key": f"uploads/{project.id}/{os.urandom(4).hex()}-photo.jpg.webp",
        "url": "",
        "file_size": 1024,
        "mime_type": "image/webp",
        "compressed": True,
    }
    fields.update(overrides)
    if not fields["url"]:
        fields["url"] = f"https://media.example.test/{fields['storage_key']}"
    media = MediaAsset(**fields)
    db.add(media)
    db.commit()
    db.refresh(media)
    return media


def add_page(db: Session, project: Project, path: str, sections) -> Page:
    page = Page(project_id=project.id, path=path, sections=sections)
    db.add(page)
    db.commit()
    return page
