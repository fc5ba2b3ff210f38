import asyncio
import io
import re
import pytest
from fastapi import UploadFile
from PIL import Image

from media_service.main import app
from media_service.routers.images import read_upload
from media_service.image_service.service import ImageService
from media_service.settings import settings

SIX_MB = 6 * 1024 * 1024


def make_jpeg_bytes(size=(40, 30)):
    img = Image.new("RGB", size, color="blue")
    buf = io.BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


def upload(test_client, name="dish.jpg", category="menuItems", **data):
    files = {"image": (name, make_jpeg_bytes(), "image/jpeg")}
    return test_client.post("/api/images/upload", data={"category": category, **data}, files=files)


def test_root(test_client):
    resp = test_client.get("/")
    assert resp.status_code == 200


# ------------------------------
# /upload [POST]
# ------------------------------

def test_upload_image_success(test_client):
    resp = upload(test_client)
    assert resp.status_code == 200
    assert resp.headers["X-Content-Type-Options"] == "nosniff"

    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["category"] == "menuItems"
    assert data["originalName"] == "dish.jpg"
    assert data["contentType"] == "image/jpeg"
    assert re.fullmatch(r"menuItems/\d+-[a-z0-9]+\.jpe?g", data["path"])
    assert data["url"].endswith(data["path"])
    assert data["thumbnailUrl"].endswith("thumb_" + data["filename"])


def test_upload_defaults_to_general(test_client):
    files = {"image": ("x.jpg", make_jpeg_bytes(), "image/jpeg")}
    resp = test_client.post("/api/images/upload", files=files)
    assert resp.status_code == 200
    assert resp.json()["data"]["category"] == "general"


def test_upload_oversized_file(test_client, image_service, mocker):
    put = mocker.spy(image_service.storage, "put")
    files = {"image": ("huge.png", b"0" * SIX_MB, "image/png")}
    resp = test_client.post("/api/images/upload", data={"category": "restaurants"}, files=files)

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "size limit" in body["message"]
    assert put.call_count == 0


@pytest.mark.asyncio
async def test_read_upload_stops_past_limit():
    file = UploadFile(file=io.BytesIO(b"0" * SIX_MB), filename="huge.png")
    incoming = await read_upload(file, 1024)
    assert len(incoming.data) == 1025
    assert incoming.filename == "huge.png"


def test_upload_runs_service_off_event_loop(test_client, image_service, mocker):
    to_thread = mocker.spy(asyncio, "to_thread")
    resp = upload(test_client)
    assert resp.status_code == 200
    assert to_thread.call_args.args[0] == image_service.upload_one


def test_upload_invalid_file_type(test_client):
    files = {"image": ("f.txt", b"notimg", "text/plain")}
    resp = test_client.post("/api/images/upload", data={"category": "general"}, files=files)
    assert resp.status_code == 400


def test_upload_corrupt_image(test_client):
    files = {"image": ("f.jpg", b"notimg", "image/jpeg")}
    resp = test_client.post("/api/images/upload", files=files)
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_upload_without_file(test_client):
    resp = test_client.post("/api/images/upload", data={"category": "general"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_upload_invalid_category(test_client):
    resp = upload(test_client, category="drinks")
    assert resp.status_code == 400
    assert "drinks" in resp.json()["message"]


def test_upload_backend_unavailable(test_client):
    app.state.images = ImageService(storage=None, settings=settings)
    resp = upload(test_client)
    assert resp.status_code == 503
    assert resp.json() == {"success": False, "message": "Image storage is not configured."}


# ------------------------------
# /upload-multiple [POST]
# ------------------------------

def test_upload_multiple_partial_failure(test_client, image_service, mocker):
    put = mocker.spy(image_service.storage, "put")
    files = [
        ("images", ("a.jpg", make_jpeg_bytes(), "image/jpeg")),
        ("images", ("b.jpg", make_jpeg_bytes(), "image/jpeg")),
        ("images", ("big.png", b"0" * SIX_MB, "image/png")),
        ("images", ("c.jpg", make_jpeg_bytes(), "image/jpeg")),
    ]
    resp = test_client.post("/api/images/upload-multiple", data={"category": "offers"}, files=files)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [d["originalName"] for d in body["data"]] == ["a.jpg", "b.jpg", "c.jpg"]
    assert body["failed"] == ["big.png"]
    assert put.call_count == 3


def test_upload_multiple_same_names(test_client):
    files = [("images", ("same.jpg", make_jpeg_bytes(), "image/jpeg")) for _ in range(2)]
    resp = test_client.post("/api/images/upload-multiple", files=files)
    paths = [d["path"] for d in resp.json()["data"]]
    assert len(set(paths)) == 2


def test_upload_multiple_without_files(test_client):
    resp = test_client.post("/api/images/upload-multiple", data={"category": "offers"})
    assert resp.status_code == 400


def test_upload_multiple_all_invalid(test_client):
    files = [("images", ("a.txt", b"x", "text/plain"))]
    resp = test_client.post("/api/images/upload-multiple", files=files)
    assert resp.status_code == 400
    assert resp.json()["failed"] == ["a.txt"]


def test_upload_multiple_too_many(test_client):
    files = [("images", (f"{i}.jpg", make_jpeg_bytes(), "image/jpeg")) for i in range(11)]
    resp = test_client.post("/api/images/upload-multiple", files=files)
    assert resp.status_code == 400


# ------------------------------
# /delete [DELETE] + /info [GET]
# ------------------------------

def test_info_and_delete_image(test_client):
    data = upload(test_client).json()["data"]

    info = test_client.get(f"/api/images/info/menuItems/{data['filename']}")
    assert info.status_code == 200
    body = info.json()["data"]
    assert body["size"] == data["size"]
    assert body["url"] == data["url"]
    assert "createdAt" in body and "modifiedAt" in body

    resp = test_client.request(
        "DELETE", "/api/images/delete", json={"url": data["url"], "category": "menuItems"}
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    assert test_client.get(f"/api/images/info/menuItems/{data['filename']}").status_code == 404
    thumb = test_client.get(f"/api/images/info/menuItems/thumb_{data['filename']}")
    assert thumb.status_code == 404


def test_delete_unknown_url(test_client, image_service, mocker):
    remove = mocker.spy(image_service.storage, "remove")
    resp = test_client.request(
        "DELETE",
        "/api/images/delete",
        json={"url": "https://example.com/random/image.jpg", "category": "general"},
    )
    assert resp.status_code == 400
    assert remove.call_count == 0


def test_delete_missing_url(test_client):
    resp = test_client.request("DELETE", "/api/images/delete", json={"category": "general"})
    assert resp.status_code == 400


def test_delete_invalid_category(test_client):
    resp = test_client.request(
        "DELETE", "/api/images/delete", json={"url": "https://x.test/a.jpg", "category": "drinks"}
    )
    assert resp.status_code == 400


def test_delete_without_body(test_client):
    resp = test_client.request("DELETE", "/api/images/delete")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_delete_is_idempotent(test_client):
    data = upload(test_client, category="offers").json()["data"]
    for _ in range(2):
        resp = test_client.request(
            "DELETE", "/api/images/delete", json={"url": data["url"], "category": "offers"}
        )
        assert resp.status_code == 200


def test_info_nonexistent_image(test_client):
    resp = test_client.get("/api/images/info/general/nope.jpg")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_info_invalid_category(test_client):
    resp = test_client.get("/api/images/info/drinks/a.jpg")
    assert resp.status_code == 400
