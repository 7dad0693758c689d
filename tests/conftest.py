import struct
from pathlib import Path

import pytest
from mutagen.flac import FLAC, Picture

from shared.config import ServerConfig
from player.library import LibraryManager

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64


def _streaminfo_block() -> bytes:
    # 2 seconds of 44.1kHz stereo 16-bit, flagged as the last metadata block
    sample_rate, channels, bits, total_samples = 44100, 2, 16, 88200
    packed = (sample_rate << 44) | ((channels - 1) << 41) | ((bits - 1) << 36) | total_samples
    body = struct.pack(">HH", 4096, 4096) + b"\x00" * 6 + packed.to_bytes(8, "big") + b"\x00" * 16
    return bytes([0x80]) + len(body).to_bytes(3, "big") + body


def make_flac(path: Path, title=None, artist=None, album=None,
              picture: bytes = None, picture_mime: str = "image/png", **tags) -> Path:
    """Write a minimal FLAC file mutagen can read, with optional tags and cover."""
    path.write_bytes(b"fLaC" + _streaminfo_block() + b"\x00" * 1024)

    audio = FLAC(str(path))
    values = {"title": title, "artist": artist, "album": album, **tags}
    for key, value in values.items():
        if value is not None:
            audio[key] = str(value)
    if picture is not None:
        pic = Picture()
        pic.type = 3
        pic.mime = picture_mime
        pic.data = picture
        audio.add_picture(pic)
    audio.save()
    return path


@pytest.fixture
def config(tmp_path):
    return ServerConfig(storage_dir=tmp_path / "uploads", scan_workers=2, extract_timeout=5)


@pytest.fixture
def library(config):
    return LibraryManager.open(config)


@pytest.fixture
def storage_dir(library):
    return library.config.storage_dir
