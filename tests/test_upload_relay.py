import pytest
import httpx
from fastapi.testclient import TestClient

from services.upload_relay.app.main import app, get_http_client, get_relay_options
from services.upload_relay.app.relay import RelayOptions, build_relay_request, resolve_mime_type
from core.multipart import ExtractedFile
from core.exceptions import (
    MalformedPayload, MissingAttachment, MissingDestination,
    PayloadTooLarge, UnsupportedAttachmentType
)
from multipart_helpers import PRESIGNED_URL, build_multipart, multipart_content_type

JPEG_BYTES = b"\xff\xd8\xff\xe0" + bytes(range(256)) * 48 + b"\xff\xd9" # ~12KB


@pytest.fixture
def client():
    original_overrides = app.dependency_overrides.copy()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides = original_overrides


@pytest.fixture
def storage():
    """Fake storage provider; records every request and answers with ``storage.status_code``."""
    class FakeStorage:
        def __init__(self):
            self.requests = []
            self.status_code = 200
            self.text = ""
            self.error = None

        def handler(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if self.error:
                raise self.error
            return httpx.Response(self.status_code, text=self.text)

    fake = FakeStorage()
    app.dependency_overrides[get_http_client] = lambda: httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    return fake


def _post_upload(client: TestClient, image=JPEG_BYTES, x_object="products", url=PRESIGNED_URL):
    data = {"s3UploadUrl": url}
    if x_object is not None:
        data["xObject"] = x_object
    files = {"image": ("photo.jpg", image, "image/jpeg")} if image is not None else None
    return client.post("/api/s3-upload", data=data, files=files)


# --- build_relay_request ---
def test_build_relay_request_success():
    body = build_multipart({"s3UploadUrl": PRESIGNED_URL, "xObject": "products"}, image=JPEG_BYTES)
    relay_request = build_relay_request(body, multipart_content_type(), RelayOptions())

    assert relay_request.destination_url == PRESIGNED_URL
    assert relay_request.routing_key == "products"
    assert relay_request.content == JPEG_BYTES
    assert relay_request.mime_type == "image/jpeg"
    assert relay_request.filename == "photo.jpg"


@pytest.mark.parametrize("fields", [{"s3UploadUrl": PRESIGNED_URL}, {"s3UploadUrl": PRESIGNED_URL, "xObject": "  "}])
def test_build_relay_request_defaults_routing_key(fields):
    body = build_multipart(fields, image=JPEG_BYTES)
    assert build_relay_request(body, multipart_content_type(), RelayOptions()).routing_key == "default"


def test_build_relay_request_missing_boundary():
    body = build_multipart({"s3UploadUrl": PRESIGNED_URL}, image=JPEG_BYTES)
    with pytest.raises(MalformedPayload):
        build_relay_request(body, "multipart/form-data", RelayOptions())


@pytest.mark.parametrize("url", [None, "", "   "])
def test_build_relay_request_missing_destination(url):
    fields = {} if url is None else {"s3UploadUrl": url}
    body = build_multipart(fields, image=JPEG_BYTES)
    with pytest.raises(MissingDestination, match="S3 upload URL not provided"):
        build_relay_request(body, multipart_content_type(), RelayOptions())


def test_build_relay_request_missing_attachment():
    body = build_multipart({"s3UploadUrl": PRESIGNED_URL})
    with pytest.raises(MissingAttachment, match="No image file provided"):
        build_relay_request(body, multipart_content_type(), RelayOptions())


def test_build_relay_request_too_large():
    body = build_multipart({"s3UploadUrl": PRESIGNED_URL}, image=b"x" * 101)
    with pytest.raises(PayloadTooLarge) as exc_info:
        build_relay_request(body, multipart_content_type(), RelayOptions(max_bytes=100))
    assert exc_info.value.size == 101
    assert exc_info.value.status_code == 413


def test_build_relay_request_rejects_non_images():
    body = build_multipart({"s3UploadUrl": PRESIGNED_URL}, image=b"%PDF-1.7", filename="doc.pdf", content_type="application/pdf")
    with pytest.raises(UnsupportedAttachmentType):
        build_relay_request(body, multipart_content_type(), RelayOptions())
    # Allowed when the image-only filter is off
    relay_request = build_relay_request(body, multipart_content_type(), RelayOptions(images_only=False))
    assert relay_request.mime_type == "application/pdf"


@pytest.mark.parametrize("content_type, filename, expected", [
    ("image/png", "photo.jpg", "image/png"),
    ("application/octet-stream", "photo.png", "image/png"),
    (None, "photo.gif", "image/gif"),
    (None, "blob", "image/jpeg"),
])
def test_resolve_mime_type(content_type, filename, expected):
    attachment = ExtractedFile(content=b"", filename=filename, content_type=content_type)
    assert resolve_mime_type(attachment, "image/jpeg") == expected


# --- POST /api/s3-upload ---
def test_health_and_root(client: TestClient):
    assert client.get("/").json() == {"message": "Storefront Upload Relay Running"}
    health = client.get("/health").json()
    assert health["status"] == "success"
    assert "initialized" in health["message"]


def test_s3_upload_success(client: TestClient, storage):
    response = _post_upload(client)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "File uploaded to S3 successfully"}

    assert len(storage.requests) == 1
    put = storage.requests[0]
    assert put.method == "PUT"
    assert str(put.url) == PRESIGNED_URL
    assert put.headers["x-object"] == "products"
    assert put.headers["content-type"] == "image/jpeg"
    assert put.content == JPEG_BYTES


def test_s3_upload_without_x_object_uses_default(client: TestClient, storage):
    response = _post_upload(client, x_object=None)
    assert response.status_code == 200
    assert storage.requests[0].headers["x-object"] == "default"


def test_s3_upload_storage_rejection_is_proxied(client: TestClient, storage):
    storage.status_code, storage.text = 403, "<Error><Code>AccessDenied</Code></Error>"

    response = _post_upload(client)

    assert response.status_code == 403
    assert response.json() == {"error": "S3 upload failed: <Error><Code>AccessDenied</Code></Error>"}
    assert len(storage.requests) == 1 # no retry


def test_s3_upload_same_input_classified_identically(client: TestClient, storage):
    first = _post_upload(client)
    second = _post_upload(client)
    assert first.status_code == second.status_code == 200

    storage.status_code, storage.text = 500, "InternalError"
    assert _post_upload(client).status_code == _post_upload(client).status_code == 500


def test_s3_upload_storage_unreachable(client: TestClient, storage):
    storage.error = httpx.ConnectError("Connection refused")
    response = _post_upload(client)
    assert response.status_code == 503
    assert response.json() == {"error": "Storage provider unavailable."}


def test_s3_upload_missing_boundary(client: TestClient, storage):
    response = client.post("/api/s3-upload", content=b"not multipart", headers={"Content-Type": "multipart/form-data"})
    assert response.status_code == 400
    assert response.json() == {"error": "No multipart boundary found"}
    assert storage.requests == []


def test_s3_upload_missing_destination(client: TestClient, storage):
    response = _post_upload(client, url="")
    assert response.status_code == 400
    assert response.json() == {"error": "S3 upload URL not provided"}
    assert storage.requests == []


def test_s3_upload_missing_image(client: TestClient, storage):
    body = build_multipart({"s3UploadUrl": PRESIGNED_URL, "xObject": "products"})
    response = client.post("/api/s3-upload", content=body, headers={"Content-Type": multipart_content_type()})
    assert response.status_code == 400
    assert response.json() == {"error": "No image file provided"}
    assert storage.requests == []


def test_s3_upload_rejects_oversized_attachment(client: TestClient, storage):
    app.dependency_overrides[get_relay_options] = lambda: RelayOptions(max_bytes=1024)

    response = _post_upload(client, image=b"x" * 2048)

    assert response.status_code == 413
    assert "File too large" in response.json()["error"]
    assert storage.requests == []


def test_s3_upload_rejects_oversized_body_before_reading(client: TestClient, storage):
    app.dependency_overrides[get_relay_options] = lambda: RelayOptions(max_bytes=16)

    # Body exceeds the ceiling plus the multipart allowance
    response = _post_upload(client, image=b"x" * (128 * 1024))

    assert response.status_code == 413
    assert storage.requests == []


def test_s3_upload_binary_payload_is_forwarded_unchanged(client: TestClient, storage):
    payload = bytes(range(256)) * 4 + b"\r\n\r\n"
    response = _post_upload(client, image=payload)
    assert response.status_code == 200
    assert storage.requests[0].content == payload
