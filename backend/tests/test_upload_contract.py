import hashlib
import os
from datetime import datetime

from tests.samples import BASE_URL, JPEG_BYTES, PNG_MAGIC
from tests.http_client import SyncASGIClient
from xrpic.main import create_app


def _stored_files(root):
    return sorted(p for p in root.rglob("*") if p.is_file())


def test_upload_png_contract(settings, upload_dir):
    client = SyncASGIClient(create_app(settings))

    resp = client.upload(("a.png", PNG_MAGIC, "image/png"))
    assert resp.status_code == 200

    body = resp.json()
    assert body["success"] is True
    assert "message" not in body
    digest = hashlib.md5(PNG_MAGIC).hexdigest()
    date_path = datetime.now().strftime("%Y/%m")
    expected_url = f"{BASE_URL}/{date_path}/{digest}.png"
    assert body["result"] == [expected_url]

    (item,) = body["fullResult"]
    assert set(item.keys()) == {"fileName", "imgURL", "extname", "type", "id", "createdAt", "updatedAt"}
    assert item["fileName"] == f"{digest}.png"
    assert item["imgURL"] == expected_url
    assert item["extname"] == ".png"
    assert item["type"] == "local"
    assert (upload_dir / date_path / f"{digest}.png").read_bytes() == PNG_MAGIC


def test_reupload_returns_same_url(settings, upload_dir):
    client = SyncASGIClient(create_app(settings))

    first = client.upload(("a.png", PNG_MAGIC, "image/png")).json()["fullResult"][0]
    second_resp = client.upload(("a.png", PNG_MAGIC, "image/png"))
    assert second_resp.status_code == 200
    second = second_resp.json()["fullResult"][0]

    stored = _stored_files(upload_dir)
    assert second["imgURL"] == first["imgURL"]
    assert len(stored) == 1
    assert second["createdAt"] == int(os.stat(stored[0]).st_mtime)


def test_text_payload_is_rejected(settings, upload_dir):
    client = SyncASGIClient(create_app(settings))
    payload = b"plain text line\n" * (10 * 1024 * 1024 // 16)

    resp = client.upload(("notes.txt", payload, "text/plain"))

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "unsupported file type" in resp.json()["message"]
    assert _stored_files(upload_dir) == []


def test_oversized_upload_is_413(make_settings):
    settings = make_settings(storage__max_file_size=1024)
    client = SyncASGIClient(create_app(settings))

    resp = client.upload(("big.png", PNG_MAGIC + b"\x00" * 2044, "image/png"))

    assert resp.status_code == 413
    assert resp.json()["success"] is False
    assert _stored_files(settings.storage.upload_dir) == []


def test_every_file_part_is_processed(settings):
    client = SyncASGIClient(create_app(settings))
    files = [
        ("file", ("a.png", PNG_MAGIC, "image/png")),
        ("other", ("b", JPEG_BYTES, "application/octet-stream")),
    ]

    resp = client.post("/upload", files=files, data={"note": "ignored"})

    assert resp.status_code == 200
    exts = [item["extname"] for item in resp.json()["fullResult"]]
    assert exts == [".png", ".jpg"]


def test_batch_aborts_on_first_bad_part(settings):
    client = SyncASGIClient(create_app(settings))
    files = [
        ("file", ("a.png", PNG_MAGIC, "image/png")),
        ("file", ("b.txt", b"hello", "text/plain")),
    ]

    resp = client.post("/upload", files=files)

    assert resp.status_code == 400
    assert "result" not in resp.json()


def test_form_without_files_is_400(settings):
    client = SyncASGIClient(create_app(settings))
    body = (
        b"--xrpicboundary\r\n"
        b'Content-Disposition: form-data; name="note"\r\n\r\n'
        b"x\r\n"
        b"--xrpicboundary--\r\n"
    )

    resp = client.post(
        "/upload",
        content=body,
        headers={"content-type": "multipart/form-data; boundary=xrpicboundary"},
    )

    assert resp.status_code == 400
    assert resp.json()["message"] == "No files uploaded"


def test_malformed_multipart_is_400(settings):
    client = SyncASGIClient(create_app(settings))

    resp = client.post("/upload", content=b"garbage", headers={"content-type": "multipart/form-data"})

    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Failed to parse form")


def test_json_upload_is_not_implemented(settings):
    client = SyncASGIClient(create_app(settings))

    clipboard = client.post("/upload", json={"list": []})
    paths = client.post("/upload", json={"list": ["/tmp/a.png"]})
    broken = client.post("/upload", content=b"{not json", headers={"content-type": "application/json"})

    assert clipboard.status_code == 501
    assert clipboard.json()["message"] == "Clipboard upload not supported in this implementation"
    assert paths.status_code == 501
    assert paths.json()["message"] == "Path upload not supported in this implementation"
    assert broken.status_code == 400
    assert broken.json()["message"] == "Invalid JSON request"


def test_unsupported_content_type(settings):
    client = SyncASGIClient(create_app(settings))

    resp = client.post("/upload", content=b"raw", headers={"content-type": "image/png"})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Unsupported content type"}


def test_auth_required_when_enabled(make_settings):
    settings = make_settings(auth__enabled=True, auth__secret_key="s3cret")
    app = create_app(settings)

    anonymous = SyncASGIClient(app).upload(("a.png", PNG_MAGIC, "image/png"))
    bearer = SyncASGIClient(app, headers={"Authorization": "Bearer s3cret"}).upload(
        ("a.png", PNG_MAGIC, "image/png")
    )
    query = SyncASGIClient(app).post("/upload?key=s3cret", files=[("file", ("a.png", PNG_MAGIC, "image/png"))])

    assert anonymous.status_code == 401
    assert anonymous.json() == {"success": False, "message": "Unauthorized"}
    assert bearer.status_code == 200
    assert query.status_code == 200


def test_stored_file_is_served_under_base_url_path(settings):
    client = SyncASGIClient(create_app(settings))
    url = client.upload(("a.png", PNG_MAGIC, "image/png")).json()["result"][0]

    served = client.get(url.removeprefix("https://img.example.com"))

    assert served.status_code == 200
    assert served.content == PNG_MAGIC


def test_base_url_without_path_does_not_shadow_routes(make_settings):
    app = create_app(make_settings(storage__base_url="https://img.example.com"))
    client = SyncASGIClient(app)

    assert client.get("/upload").status_code == 405
    assert client.get("/healthz").status_code == 200
    assert all(getattr(route, "name", None) != "uploads" for route in app.routes)
