from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from insomnia_fuel.routers.gallery import router as gallery_router
from insomnia_fuel.services import r2_storage
from insomnia_fuel.services.errors import MediaStorageError
from tests.fixtures_data import ADMIN_HEADERS, CUSTOMER_HEADERS, build_client


class _FakeR2Client:
    def __init__(self, fail=False):
        self.fail = fail
        self.presign_calls = []
        self.deleted = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        if self.fail:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.presign_calls.append((operation, Params, ExpiresIn))
        return f"https://bucket.r2.test/{Params['Key']}?X-Amz-Signature=abc"

    def delete_object(self, Bucket, Key):
        if self.fail:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "DeleteObject")
        self.deleted.append((Bucket, Key))


@pytest.fixture
def r2_env(monkeypatch):
    monkeypatch.setenv("R2_ACCOUNT_ID", "acc")
    monkeypatch.setenv("R2_ACCESS_KEY_ID", "key")
    monkeypatch.setenv("R2_SECRET_ACCESS_KEY", "secret")
    monkeypatch.setenv("R2_BUCKET_NAME", "insomnia-media")
    monkeypatch.setenv("R2_PUBLIC_URL", "https://media.insomniafuel.com.au/")
    monkeypatch.setattr(r2_storage, "uuid4", lambda: SimpleNamespace(hex="abc123"))
    fake_client = _FakeR2Client()
    monkeypatch.setattr(r2_storage, "_get_r2_client", lambda: fake_client)
    return fake_client


def test_build_object_key_keeps_extension_and_rejects_non_images(r2_env):
    assert r2_storage.build_object_key("Latte Art.PNG", folder="/gallery/") == "gallery/abc123.png"

    with pytest.raises(ValueError):
        r2_storage.build_object_key("menu.pdf")


def test_missing_bucket_configuration_is_a_storage_error(monkeypatch):
    monkeypatch.delenv("R2_BUCKET_NAME", raising=False)

    with pytest.raises(MediaStorageError):
        r2_storage.create_upload_url("latte.jpg")


def test_upload_url_is_admin_only_and_presigned(r2_env):
    client = build_client(gallery_router)

    denied = client.post("/api/gallery/upload-url", json={"filename": "latte.jpg"}, headers=CUSTOMER_HEADERS)
    response = client.post(
        "/api/gallery/upload-url",
        json={"filename": "latte.jpg", "contentType": "image/jpeg"},
        headers=ADMIN_HEADERS,
    )

    assert denied.status_code == 403
    assert response.status_code == 200
    payload = response.json()
    assert payload["objectKey"].endswith("/abc123.jpg")
    assert payload["publicUrl"] == f"https://media.insomniafuel.com.au/{payload['objectKey']}"
    assert payload["expiresIn"] == r2_storage.GALLERY_UPLOAD_URL_TTL_SECONDS
    [(operation, params, _)] = r2_env.presign_calls
    assert operation == "put_object"
    assert params == {"Bucket": "insomnia-media", "Key": payload["objectKey"], "ContentType": "image/jpeg"}


def test_upload_url_rejects_unsupported_type(r2_env):
    client = build_client(gallery_router)

    response = client.post("/api/gallery/upload-url", json={"filename": "notes.txt"}, headers=ADMIN_HEADERS)

    assert response.status_code == 400


def test_upload_url_storage_failure_is_server_error(r2_env, monkeypatch):
    monkeypatch.setattr(r2_storage, "_get_r2_client", lambda: _FakeR2Client(fail=True))
    client = build_client(gallery_router)

    response = client.post("/api/gallery/upload-url", json={"filename": "latte.jpg"}, headers=ADMIN_HEADERS)

    assert response.status_code == 500


def test_gallery_register_list_and_delete(r2_env):
    client = build_client(gallery_router)
    image = {"objectKey": "insomnia-fuel/gallery/abc123.jpg", "width": 800, "height": 600, "format": "jpg"}

    created = client.post("/api/gallery", json=image, headers=ADMIN_HEADERS)
    duplicate = client.post("/api/gallery", json=image, headers=ADMIN_HEADERS)
    listing = client.get("/api/gallery")

    assert created.status_code == 201
    assert created.json()["url"] == "https://media.insomniafuel.com.au/insomnia-fuel/gallery/abc123.jpg"
    assert duplicate.status_code == 409
    assert [item["objectKey"] for item in listing.json()["items"]] == ["insomnia-fuel/gallery/abc123.jpg"]

    image_id = created.json()["id"]
    deleted = client.delete(f"/api/gallery/{image_id}", headers=ADMIN_HEADERS)

    assert deleted.status_code == 200
    assert r2_env.deleted == [("insomnia-media", "insomnia-fuel/gallery/abc123.jpg")]
    assert client.get("/api/gallery").json()["items"] == []
    assert client.delete(f"/api/gallery/{image_id}", headers=ADMIN_HEADERS).status_code == 404


def test_gallery_row_survives_failed_bucket_delete(r2_env, monkeypatch):
    client = build_client(gallery_router)
    image_id = client.post(
        "/api/gallery",
        json={"objectKey": "insomnia-fuel/gallery/abc123.jpg"},
        headers=ADMIN_HEADERS,
    ).json()["id"]
    monkeypatch.setattr(r2_storage, "_get_r2_client", lambda: _FakeR2Client(fail=True))

    response = client.delete(f"/api/gallery/{image_id}", headers=ADMIN_HEADERS)

    assert response.status_code == 500
    assert len(client.get("/api/gallery").json()["items"]) == 1
