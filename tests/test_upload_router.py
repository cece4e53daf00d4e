import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conftest import make_jpeg
from core.config import settings
from core.init_app import create_application
from routers.upload_router import get_ingest_service
from services.upload_service import MediaIngestService

MB = 1024 * 1024


def token_for(role: str) -> str:
    claims = {"sub": "agent", "id": 1, "email": "agent@example.com", "role": role}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(role: str = "agent") -> dict:
    return {"Authorization": f"Bearer {token_for(role)}"}


@pytest.fixture
def app(storage_settings, fake_s3):
    app = create_application()
    app.dependency_overrides[get_ingest_service] = (
        lambda: MediaIngestService.from_settings(storage_settings, s3_client=fake_s3)
    )
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def jpeg_part(name: str, size: int = 0):
    return ("files", (name, make_jpeg(pad_to=size), "image/jpeg"))


def test_upload_returns_ordered_camel_case_results(client, fake_s3):
    response = client.post(
        "/properties/images",
        headers=auth_headers(),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg"), jpeg_part("b.jpg"), jpeg_part("c.jpg")],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["listingId"] == "42"
    assert [f["originalName"] for f in body["files"]] == ["a.jpg", "b.jpg", "c.jpg"]
    assert [f["ordinal"] for f in body["files"]] == [0, 1, 2]
    assert all(f["contentType"] == "image/webp" for f in body["files"])
    assert body["summary"]["allUnique"] is True
    assert body["summary"]["distinctUrlCount"] == 3
    assert all(f["key"].startswith(f"properties/42/{body['sessionId']}/") for f in body["files"])
    assert len(fake_s3.put_calls) == 3


def test_oversized_file_rejected_with_400(client, fake_s3):
    response = client.post(
        "/properties/images",
        headers=auth_headers(),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg"), jpeg_part("huge.jpg", 11 * MB)],
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "validation_error"
    assert body["fileName"] == "huge.jpg"
    assert "huge.jpg" in body["error"]
    assert fake_s3.put_calls == []


def test_storage_failure_returns_502(storage_settings, app):
    from conftest import FakeS3Client

    failing = FakeS3Client(fail_for={"b.jpg"})
    app.dependency_overrides[get_ingest_service] = (
        lambda: MediaIngestService.from_settings(storage_settings, s3_client=failing)
    )
    response = TestClient(app).post(
        "/properties/images",
        headers=auth_headers(),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg"), jpeg_part("b.jpg")],
    )
    assert response.status_code == 502
    assert response.json()["code"] == "upload_error"
    assert "files" not in response.json()


def test_requires_authentication(client):
    response = client.post("/properties/images", data={"listingId": "42"}, files=[jpeg_part("a.jpg")])
    assert response.status_code == 401


def test_requires_upload_role(client, fake_s3):
    response = client.post(
        "/properties/images",
        headers=auth_headers(role="user"),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg")],
    )
    assert response.status_code == 403
    assert fake_s3.put_calls == []


def test_token_accepted_from_cookie(client):
    client.cookies.set("access_token", token_for("admin"))
    response = client.post("/properties/images", data={"listingId": "42"}, files=[jpeg_part("a.jpg")])
    assert response.status_code == 200


def test_missing_storage_configuration_returns_500(monkeypatch):
    monkeypatch.setattr(settings, "R2_BUCKET", None)
    response = TestClient(create_application()).post(
        "/properties/images",
        headers=auth_headers(),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg")],
    )
    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "configuration_error"
    assert "R2_BUCKET" in body["error"]


def test_session_objects_listing(client):
    upload = client.post(
        "/properties/images",
        headers=auth_headers(),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg"), jpeg_part("b.jpg")],
    ).json()

    response = client.get(
        f"/properties/42/sessions/{upload['sessionId']}/objects",
        headers=auth_headers(),
    )
    assert response.status_code == 200
    assert sorted(response.json()["keys"]) == sorted(f["key"] for f in upload["files"])


def test_health_reports_storage_state(client):
    body = client.get("/").json()
    assert body["status"] == "healthy"
    assert "storage_configured" in body


def test_oversized_part_rejected_before_it_is_read(client, fake_s3, monkeypatch):
    async def must_not_read(upload):
        raise AssertionError(f"{upload.filename} was read")

    monkeypatch.setattr("routers.upload_router.read_upload", must_not_read)
    response = client.post(
        "/properties/images",
        headers=auth_headers(),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg"), jpeg_part("huge.jpg", 11 * MB)],
    )
    assert response.status_code == 400
    assert response.json()["fileName"] == "huge.jpg"
    assert fake_s3.put_calls == []


def test_too_many_parts_rejected_before_reading(storage_settings, app, fake_s3, monkeypatch):
    async def must_not_read(upload):
        raise AssertionError(f"{upload.filename} was read")

    config = storage_settings.model_copy(update={"MAX_FILES_PER_BATCH": 2})
    app.dependency_overrides[get_ingest_service] = (
        lambda: MediaIngestService.from_settings(config, s3_client=fake_s3)
    )
    monkeypatch.setattr("routers.upload_router.read_upload", must_not_read)
    response = TestClient(app).post(
        "/properties/images",
        headers=auth_headers(),
        data={"listingId": "42"},
        files=[jpeg_part("a.jpg"), jpeg_part("b.jpg"), jpeg_part("c.jpg")],
    )
    assert response.status_code == 400
    assert "Too many files" in response.json()["error"]
    assert fake_s3.put_calls == []
