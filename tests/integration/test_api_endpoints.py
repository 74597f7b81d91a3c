from unittest.mock import Mock

import pytest

from image_service.domain.errors import MetadataUnavailableError
from image_service.infrastructure.api.dependencies import get_image_repo


def _upload(client, png, patient="P1", user="U1", name="a.png", **extra):
    files = {"file": (name, png, "image/png")}
    data = {"patientId": patient, "userId": user, "username": "dr.who", **extra}
    return client.post("/images/upload", files=files, data=data)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "OK"
    assert body["database"] == "memory"


def test_root_lists_endpoints(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "upload" in r.json()["endpoints"]


def test_upload_and_retrieve(client, make_png):
    png = make_png()
    r = _upload(client, png, description="left arm", tags="skin")
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["patientId"] == "P1"
    assert data["uploadedBy"] == "dr.who"
    assert data["url"] == f"/images/{data['filename']}"
    assert data["image"]["isEdited"] is False
    assert data["image"]["parentImageId"] is None

    r2 = client.get(data["url"])
    assert r2.status_code == 200
    assert r2.content == png
    assert r2.headers["content-type"] == "image/png"


def test_upload_validation(client, make_png, settings):
    assert client.post("/images/upload", data={"patientId": "P1", "userId": "U1"}).status_code == 400
    assert _upload(client, make_png(), patient="").status_code == 400
    assert _upload(client, make_png(), user="").status_code == 400
    # rejected uploads leave nothing behind
    assert list(settings.upload_dir.iterdir()) == []


def test_upload_rejects_type_and_size(client, settings):
    files = {"file": ("a.gif", b"GIF89a", "image/gif")}
    r = client.post("/images/upload", files=files, data={"patientId": "P1", "userId": "U1"})
    assert r.status_code == 400
    big = b"\0" * (settings.max_file_size + 1)
    r = client.post(
        "/images/upload",
        files={"file": ("big.png", big, "image/png")},
        data={"patientId": "P1", "userId": "U1"},
    )
    assert r.status_code == 413
    assert list(settings.upload_dir.iterdir()) == []


def test_patient_listing_and_metadata(client, make_png):
    first = _upload(client, make_png(), patient="P-list").json()
    second = _upload(client, make_png(color=(1, 2, 3)), patient="P-list").json()
    _upload(client, make_png(), patient="P-other")

    r = client.get("/images/patient/P-list")
    assert r.status_code == 200
    images = r.json()["images"]
    assert [i["id"] for i in images] == [second["id"], first["id"]]
    assert all(i["patientId"] == "P-list" for i in images)
    assert images[0]["thumbnailUrl"] == images[0]["url"]

    meta = client.get(f"/images/metadata/{first['id']}")
    assert meta.status_code == 200
    assert meta.json()["originalFilename"] == "a.png"
    assert client.get("/images/metadata/missing").status_code == 404


def test_list_all(client, make_png):
    uploaded = _upload(client, make_png()).json()
    r = client.get("/images")
    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "metadata"
    assert any(i["id"] == uploaded["id"] for i in body["images"])


def test_add_text_scenario(client, make_png):
    source = _upload(client, make_png(w=120, h=80)).json()
    r = client.post(f"/images/{source['filename']}/text", json={"text": "Hello", "userId": 7})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["parentImageId"] == source["id"]
    assert data["isEdited"] is True
    assert data["editType"] == "add_text"
    assert data["recorded"] is True
    assert client.get(data["url"]).status_code == 200

    meta = client.get(f"/images/metadata/{data['id']}").json()
    assert meta["parentImageId"] == source["id"]
    assert meta["patientId"] == "P1"


def test_add_text_requires_text(client, make_png):
    source = _upload(client, make_png()).json()
    r = client.post(f"/images/{source['filename']}/text", json={"x": 5})
    assert r.status_code == 400


def test_draw(client, make_png):
    source = _upload(client, make_png(w=200, h=200)).json()
    r = client.post(f"/images/{source['filename']}/draw", json={"shape": "circle", "width": 30})
    assert r.status_code == 200, r.text
    assert r.json()["parameters"]["radius"] == 30
    r = client.post(f"/images/{source['filename']}/draw", json={"shape": "circle"})
    assert r.json()["parameters"]["radius"] == 50


def test_draw_invalid_shape(client, make_png):
    source = _upload(client, make_png()).json()
    r = client.post(f"/images/{source['filename']}/draw", json={"shape": "triangle"})
    assert r.status_code == 400


def test_edit_missing_source(client):
    r = client.post("/images/nope.png/text", json={"text": "x"})
    assert r.status_code == 404


def test_delete(client, make_png, settings):
    source = _upload(client, make_png()).json()
    r = client.delete(f"/images/{source['id']}")
    assert r.status_code == 200
    assert "message" in r.json()
    assert client.get(f"/images/metadata/{source['id']}").status_code == 404
    assert client.get(source["url"]).status_code == 404
    assert client.delete(f"/images/{source['id']}").status_code == 404


def test_delete_with_file_already_gone(client, make_png, settings):
    source = _upload(client, make_png()).json()
    (settings.upload_dir / source["filename"]).unlink()
    assert client.delete(f"/images/{source['id']}").status_code == 200


def test_get_missing_file(client):
    assert client.get("/images/does-not-exist.png").status_code == 404


@pytest.mark.parametrize(
    "path, body",
    [
        ("text", {"text": "Hi", "fontSize": 0}),
        ("text", {"text": "Hi", "x": "left"}),
        ("draw", {"shape": "line", "strokeWidth": 0}),
    ],
)
def test_malformed_edit_fields_are_bad_requests(client, make_png, settings, path, body):
    source = _upload(client, make_png()).json()
    r = client.post(f"/images/{source['filename']}/{path}", json=body)
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Invalid request")
    assert [p.name for p in settings.upload_dir.iterdir()] == [source["filename"]]


def test_oversized_geometry_is_rejected(client, make_png, settings):
    source = _upload(client, make_png()).json()
    r = client.post(
        f"/images/{source['filename']}/draw",
        json={"shape": "rectangle", "width": 1e6, "height": 1e6, "strokeWidth": 200000},
    )
    assert r.status_code == 400
    assert "strokeWidth" in r.json()["detail"]
    r = client.post(f"/images/{source['filename']}/text", json={"text": "Hi", "fontSize": 5000})
    assert r.status_code == 400
    assert [p.name for p in settings.upload_dir.iterdir()] == [source["filename"]]


def test_metadata_outage(client, make_png):
    source = _upload(client, make_png()).json()
    down = Mock()
    down.list_by_patient.side_effect = MetadataUnavailableError("down")
    down.list_all.side_effect = MetadataUnavailableError("down")
    client.app.dependency_overrides[get_image_repo] = lambda: down
    try:
        r = client.get("/images/patient/P1")
        assert r.status_code == 500
        r = client.get("/images")
        assert r.status_code == 200
        body = r.json()
        assert body["source"] == "files"
        assert body["total"] == 1
        assert body["images"][0]["filename"] == source["filename"]
    finally:
        client.app.dependency_overrides.clear()
