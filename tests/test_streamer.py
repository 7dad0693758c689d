import pytest

from shared.errors import TrackNotFound
from player.streamer import RangeStreamer, parse_range

DATA = bytes(range(256)) * 4  # 1024 bytes
SIZE_1000 = DATA[:1000]


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "1-track.mp3"
    path.write_bytes(SIZE_1000)
    return path


def _body(response):
    try:
        return b"".join(response.body)
    finally:
        response.body.close()


def test_full_content_without_range(audio_file):
    response = RangeStreamer().stream(audio_file)

    assert response.status == 200
    assert response.headers["Content-Length"] == "1000"
    assert response.headers["Content-Type"] == "audio/mpeg"
    assert "Content-Range" not in response.headers
    assert _body(response) == SIZE_1000


def test_bounded_range(audio_file):
    response = RangeStreamer().stream(audio_file, "bytes=100-199")

    assert response.status == 206
    assert response.headers["Content-Range"] == "bytes 100-199/1000"
    assert response.headers["Content-Length"] == "100"
    assert response.headers["Accept-Ranges"] == "bytes"
    body = _body(response)
    assert len(body) == 100
    assert body == SIZE_1000[100:200]


def test_open_ended_range(audio_file):
    response = RangeStreamer().stream(audio_file, "bytes=500-")

    assert response.status == 206
    assert response.headers["Content-Range"] == "bytes 500-999/1000"
    assert _body(response) == SIZE_1000[500:]


def test_small_chunks_still_serve_exact_range(audio_file):
    response = RangeStreamer(chunk_size=7).stream(audio_file, "bytes=3-52")
    assert _body(response) == SIZE_1000[3:53]


def test_end_past_file_is_clamped(audio_file):
    response = RangeStreamer().stream(audio_file, "bytes=990-5000")

    assert response.headers["Content-Range"] == "bytes 990-999/1000"
    assert len(_body(response)) == 10


def test_suffix_range(audio_file):
    response = RangeStreamer().stream(audio_file, "bytes=-100")

    assert response.headers["Content-Range"] == "bytes 900-999/1000"
    assert _body(response) == SIZE_1000[900:]


@pytest.mark.parametrize("header", ["bytes=1000-", "bytes=200-100", "items=0-10", "bytes=-0", "bytes=-"])
def test_unsatisfiable_range(audio_file, header):
    response = RangeStreamer().stream(audio_file, header)

    assert response.status == 416
    assert response.headers["Content-Range"] == "bytes */1000"
    assert response.body is None


def test_missing_file_raises_before_any_headers(tmp_path):
    with pytest.raises(TrackNotFound):
        RangeStreamer().stream(tmp_path / "nope.mp3", "bytes=0-10")


def test_early_close_releases_file(audio_file):
    response = RangeStreamer(chunk_size=10).stream(audio_file)
    body = response.body

    assert next(body) == SIZE_1000[:10]
    body.close()
    body.close()

    assert body._fh is None
    with pytest.raises(StopIteration):
        next(body)


def test_attachment_disposition(audio_file):
    response = RangeStreamer().stream(audio_file, disposition="attachment")

    assert response.headers["Content-Disposition"] == 'attachment; filename="1-track.mp3"'
    response.body.close()


def test_content_type_follows_extension(tmp_path):
    path = tmp_path / "a.flac"
    path.write_bytes(b"x")
    response = RangeStreamer().stream(path)
    assert response.headers["Content-Type"] == "audio/flac"
    response.body.close()


def test_parse_range_forms():
    assert parse_range("bytes=0-0", 10) == (0, 0)
    assert parse_range("bytes=0-", 10) == (0, 9)
    assert parse_range("bytes=-3", 10) == (7, 9)
    assert parse_range("bytes=-30", 10) == (0, 9)
    assert parse_range("bytes=10-", 10) is None
    assert parse_range("garbage", 10) is None
