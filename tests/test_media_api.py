from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.orm import Session

from assetdesk.core.config import GIB
from assetdesk.models import MediaAsset, Project

from conftest import API_HEADERS, FakeStorage, add_asset, add_page, make_image


def _media_url(project_id: str, suffix: str = "") -> str:
    return f"/api/projects/{project_id}/media/{suffix}"


def test_health(client: TestClient) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_requires_api_key(client: TestClient, project: Project) -> None:
    res = client.get(_media_url(project.id))
    assert res.status_code == 401
    res = client.get(_media_url(project.id), headers={"X-API-Key": "wrong"})
    assert res.status_code == 401


def test_bulk_upload_reports_partial_success(client: TestClient, project: Project, storage: FakeStorage) -> None:
    files = [
        ("files", ("file1.png", make_image(320, 240), "image/png")),
        ("files", ("file2.txt", b"plain text", "text/plain")),
        ("files", ("file3.pdf", b"%PDF-1.4 test", "application/pdf")),
    ]

    res = client.post(_media_url(project.id), files=files, headers=API_HEADERS)

    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert [item["filename"] for item in body["data"]] == ["file1.png", "file3.pdf"]
    assert body["failed"] == [
        {"filename": "file2.txt", "message": "File type not supported: text/plain", "code": "UNSUPPORTED_TYPE"}
    ]
    image, pdf = body["data"]
    assert image["mime_type"] == "image/webp"
    assert image["width"] == 320 and image["height"] == 240
    assert image["thumbnail_url"].startswith("https://media.example.test/")
    assert pdf["file_size"] == len(b"%PDF-1.4 test")
    assert body["quota"]["used"] == image["file_size"] + pdf["file_size"]
    assert body["quota"]["limit"] == 5 * GIB
    assert len(storage.objects) == 3


def test_upload_without_failures_omits_failed(client: TestClient, project: Project) -> None:
    files = [("files", ("doc.pdf", b"%PDF-1.4", "application/pdf"))]
    res = client.post(_media_url(project.id), files=files, headers=API_HEADERS)
    assert res.status_code == 201
    body = res.json()
    assert "failed" not in body
    assert [item["filename"] for item in body["data"]] == ["doc.pdf"]


def test_upload_requires_files(client: TestClient, project: Project) -> None:
    res = client.post(_media_url(project.id), data={"note": "nothing"}, headers=API_HEADERS)
    assert res.status_code == 400
    assert res.json()["error"] == "NO_FILES"


def test_upload_limits_batch_size(client: TestClient, project: Project) -> None:
    files = [("files", (f"doc{i}.pdf", b"%PDF", "application/pdf")) for i in range(21)]
    res = client.post(_media_url(project.id), files=files, headers=API_HEADERS)
    assert res.status_code == 400
    assert res.json()["error"] == "TOO_MANY_FILES"


def test_upload_to_unknown_project(client: TestClient, storage: FakeStorage) -> None:
    files = [("files", ("doc.pdf", b"%PDF", "application/pdf"))]
    res = client.post(_media_url("no-such-project"), files=files, headers=API_HEADERS)
    assert res.status_code == 404
    body = res.json()
    assert body == {"success": False, "error": "PROJECT_NOT_FOUND", "message": "Project not found"}
    assert storage.puts == []


def test_upload_over_quota(client: TestClient, db_session: Session, project: Project, storage: FakeStorage) -> None:
    add_asset(db_session, project, file_size=5 * GIB - 10)
    files = [("files", ("doc.pdf", b"%PDF-1.4 more than ten bytes", "application/pdf"))]

    res = client.post(_media_url(project.id), files=files, headers=API_HEADERS)

    assert res.status_code == 507
    body = res.json()
    assert body["success"] is False
    assert body["error"] == "QUOTA_EXCEEDED"
    assert body["quota"] == {"used": 5 * GIB - 10, "limit": 5 * GIB, "percentage": 100}
    assert "data" not in body
    assert storage.puts == []
    assert db_session.query(MediaAsset).count() == 1


def test_list_media_with_usage_and_pagination(client: TestClient, db_session: Session, project: Project) -> None:
    used = add_asset(db_session, project, filename="hero.png", display_name="Hero", file_size=300)
    add_asset(db_session, project, filename="menu.pdf", display_name="Menu", mime_type="application/pdf", file_size=700)
    add_page(db_session, project, "/", [{"name": "hero", "content": used.url}])
    add_page(db_session, project, "/about", [{"name": "hero", "content": used.url}])

    res = client.get(_media_url(project.id), params={"type": "image"}, headers=API_HEADERS)

    assert res.status_code == 200
    body = res.json()
    assert [item["filename"] for item in body["data"]] == ["hero.png"]
    assert body["data"][0]["used_in_pages"] == 2
    assert body["pagination"] == {"page": 1, "limit": 50, "total": 1, "has_more": False}
    assert body["quota"]["used"] == 1000


def test_list_media_loads_pages_once(client: TestClient, db_session: Session, project: Project) -> None:
    assets = [add_asset(db_session, project, filename=f"img{i}.png", display_name=f"img{i}.png") for i in range(5)]
    add_page(db_session, project, "/", [{"name": "gallery", "content": " ".join(a.url for a in assets[:3])}])
    add_page(db_session, project, "/team", [{"name": "hero", "content": assets[0].url}])

    page_selects: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany) -> None:
        if statement.lstrip().upper().startswith("SELECT") and "FROM pages" in statement:
            page_selects.append(statement)

    engine = db_session.get_bind()
    event.listen(engine, "before_cursor_execute", _record)
    try:
        res = client.get(_media_url(project.id), headers=API_HEADERS)
    finally:
        event.remove(engine, "before_cursor_execute", _record)

    assert res.status_code == 200
    usage = {item["filename"]: item["used_in_pages"] for item in res.json()["data"]}
    assert usage == {"img0.png": 2, "img1.png": 1, "img2.png": 1, "img3.png": 0, "img4.png": 0}
    assert len(page_selects) == 1


def test_list_media_search_and_page(client: TestClient, db_session: Session, project: Project) -> None:
    for name in ("Alpha.png", "alphabet.png", "beta.png"):
        add_asset(db_session, project, filename=name, display_name=name)

    res = client.get(_media_url(project.id), params={"search": "ALPHA", "limit": 1}, headers=API_HEADERS)

    body = res.json()
    assert len(body["data"]) == 1
    assert body["pagination"]["total"] == 2
    assert body["pagination"]["has_more"] is True


def test_list_media_rejects_unknown_type(client: TestClient, project: Project) -> None:
    res = client.get(_media_url(project.id), params={"type": "audio"}, headers=API_HEADERS)
    assert res.status_code == 422


def test_get_and_update_media(client: TestClient, db_session: Session, project: Project) -> None:
    media = add_asset(db_session, project, display_name="Before")

    res = client.patch(
        _media_url(project.id, media.id),
        json={"display_name": "After", "alt_text": "Reception area"},
        headers=API_HEADERS,
    )
    assert res.status_code == 200
    assert res.json()["data"]["display_name"] == "After"

    res = client.get(_media_url(project.id, media.id), headers=API_HEADERS)
    data = res.json()["data"]
    assert data["display_name"] == "After"
    assert data["alt_text"] == "Reception area"
    assert data["filename"] == "photo.jpg"


def test_update_rejects_null_display_name(client: TestClient, db_session: Session, project: Project) -> None:
    media = add_asset(db_session, project, display_name="Lobby", alt_text="Front desk")

    res = client.patch(_media_url(project.id, media.id), json={"display_name": None}, headers=API_HEADERS)

    assert res.status_code == 422
    db_session.refresh(media)
    assert media.display_name == "Lobby"
    assert media.alt_text == "Front desk"


def test_update_can_clear_alt_text(client: TestClient, db_session: Session, project: Project) -> None:
    media = add_asset(db_session, project, display_name="Lobby", alt_text="Front desk")

    res = client.patch(_media_url(project.id, media.id), json={"alt_text": None}, headers=API_HEADERS)

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["alt_text"] is None
    assert data["display_name"] == "Lobby"


def test_get_missing_media(client: TestClient, project: Project) -> None:
    res = client.get(_media_url(project.id, "missing"), headers=API_HEADERS)
    assert res.status_code == 404
    assert res.json()["error"] == "NOT_FOUND"


def test_delete_in_use_then_force(client: TestClient, db_session: Session, project: Project, storage: FakeStorage) -> None:
    media = add_asset(db_session, project)
    media_id, key = media.id, media.storage_key
    storage.objects[key] = (b"bytes", "image/webp")
    add_page(db_session, project, "/contact", [{"name": "map", "content": f"<img src='{media.url}'>"}])

    res = client.delete(_media_url(project.id, media_id), headers=API_HEADERS)
    assert res.status_code == 409
    body = res.json()
    assert body["error"] == "MEDIA_IN_USE"
    assert body["pages_using"] == ["/contact"]
    assert key in storage.objects

    res = client.delete(_media_url(project.id, media_id), params={"force": "true"}, headers=API_HEADERS)
    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "Media deleted successfully"}
    assert key not in storage.objects
    assert db_session.get(MediaAsset, media_id) is None
