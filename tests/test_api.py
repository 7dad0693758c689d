import io

import pytest

from shared.api import create_app
from shared.identifiers import encode_id

from conftest import make_flac, PNG_BYTES


@pytest.fixture
def client(config, library):
    app = create_app(config, lib=library)
    app.testing = True
    return app.test_client()


def _upload(client, *files):
    return client.post(
        "/api/upload",
        data={"music": [(io.BytesIO(data), name, mime) for data, name, mime in files]},
        content_type="multipart/form-data",
    )


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "healthy"}


def test_music_before_first_scan(client):
    response = client.get("/api/music")

    assert response.status_code == 200
    data = response.get_json()
    assert data["needs_scan"] is True
    assert data["entries"] == []
    assert "message" in data


def test_upload_scan_list_flow(client, tmp_path):
    flac = make_flac(tmp_path / "src.flac", title="Song", picture=PNG_BYTES).read_bytes()

    response = _upload(client, (flac, "My Song.flac", "audio/flac"), (b"nope", "virus.exe", "application/x-msdownload"))
    assert response.status_code == 200
    data = response.get_json()
    assert data["total_uploaded"] == 1
    assert data["total_errors"] == 1
    stored = data["uploaded_files"][0]["filename"]
    assert stored.endswith("-My-Song.flac")

    response = client.post("/api/scan")
    assert response.status_code == 200
    assert response.get_json()["total_files"] == 1

    data = client.get("/api/music").get_json()
    assert data["total_files"] == 1
    track = data["entries"][0]
    assert track["title"] == "Song"
    assert track["stream_url"] == f"http://localhost/api/stream/{track['id']}"
    assert track["cover_url"].startswith("http://localhost/covers/")

    cover = client.get(track["cover_url"].replace("http://localhost", ""))
    assert cover.status_code == 200
    assert cover.data == PNG_BYTES


def test_upload_without_files(client):
    response = client.post("/api/upload", data={}, content_type="multipart/form-data")

    assert response.status_code == 400
    assert "error" in response.get_json()


def test_stream_range(client, storage_dir):
    (storage_dir / "1-a.mp3").write_bytes(bytes(range(250)) * 4)
    track_id = encode_id("1-a.mp3")

    response = client.get(f"/api/stream/{track_id}", headers={"Range": "bytes=100-199"})

    assert response.status_code == 206
    assert response.headers["Content-Range"] == "bytes 100-199/1000"
    assert response.headers["Accept-Ranges"] == "bytes"
    assert response.headers["Content-Type"] == "audio/mpeg"
    assert len(response.data) == 100
    assert response.data == (bytes(range(250)) * 4)[100:200]


def test_stream_full_and_unsatisfiable(client, storage_dir):
    (storage_dir / "1-a.mp3").write_bytes(b"\x01" * 1000)
    track_id = encode_id("1-a.mp3")

    full = client.get(f"/api/stream/{track_id}")
    assert full.status_code == 200
    assert len(full.data) == 1000

    bad = client.get(f"/api/stream/{track_id}", headers={"Range": "bytes=5000-"})
    assert bad.status_code == 416
    assert bad.headers["Content-Range"] == "bytes */1000"


def test_download_headers(client, storage_dir):
    (storage_dir / "1-a.mp3").write_bytes(b"\x01" * 10)

    response = client.get(f"/api/download/{encode_id('1-a.mp3')}")

    assert response.status_code == 200
    assert response.headers["Content-Disposition"] == 'attachment; filename="1-a.mp3"'
    assert response.data == b"\x01" * 10


def test_unknown_ids_are_404(client):
    for path in (f"/api/stream/{encode_id('missing.mp3')}", "/api/download/%21%21%21"):
        response = client.get(path)
        assert response.status_code == 404
        assert response.get_json() == {"error": "File not found"}


def test_delete(client, storage_dir):
    (storage_dir / "1-a.mp3").write_bytes(b"\x01")
    track_id = encode_id("1-a.mp3")

    response = client.delete(f"/api/music/{track_id}")
    assert response.status_code == 200
    assert not (storage_dir / "1-a.mp3").exists()

    again = client.delete(f"/api/music/{track_id}")
    assert again.status_code == 404
    assert again.get_json() == {"error": "File not found"}


def test_direct_file_route(client, storage_dir, config):
    (storage_dir / "1-a.mp3").write_bytes(b"\x02" * 20)

    assert client.get("/uploads/1-a.mp3").data == b"\x02" * 20
    # The catalog document is not audio and is not exposed
    config.catalog_path.write_text("{}")
    assert client.get("/uploads/music-list.json").status_code == 404


def test_stats_route(client, storage_dir):
    (storage_dir / "1-a.mp3").write_bytes(b"\x01" * 10)

    data = client.get("/api/stats").get_json()

    assert data["music_files"] == 1
    assert data["catalog_exists"] is False


def test_corrupt_catalog_is_server_error(client, config):
    config.catalog_path.write_text("[[[")

    response = client.get("/api/music")

    assert response.status_code == 500
    assert "error" in response.get_json()


def test_public_url_in_catalog(config, library, storage_dir):
    config.public_url = "https://music.example"
    (storage_dir / "1-a.mp3").write_bytes(b"\x01")
    client = create_app(config, lib=library).test_client()
    client.post("/api/scan")

    track = client.get("/api/music").get_json()["entries"][0]

    assert track["direct_url"] == "https://music.example/uploads/1-a.mp3"
