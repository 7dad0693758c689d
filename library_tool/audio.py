"""
Audio file processing utilities.

This module wraps mutagen as the tag-parsing capability and maps its output
onto the canonical metadata record. Parsing failures never escape
``AudioProcessor.extract_metadata``: they produce a degraded record instead.
"""

import base64
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, Callable

from mutagen import File as MutagenFile
from mutagen.flac import FLAC, Picture
from mutagen.id3 import ID3
from mutagen.mp4 import MP4Tags, MP4Cover

from shared.constants import (
    SUPPORTED_AUDIO_FORMATS,
    UNKNOWN_ARTIST,
    UNKNOWN_ALBUM,
    METADATA_ERROR_MARKER,
    DEFAULT_EXTRACT_TIMEOUT,
)
from shared.filenames import ingest_timestamp_ms
from shared.models import MetadataRecord, EmbeddedPicture

logger = logging.getLogger(__name__)

# Canonical field -> (ID3 frame, MP4 atom, Vorbis comment)
TAG_KEYS = {
    'title': ('TIT2', '\xa9nam', 'title'),
    'artist': ('TPE1', '\xa9ART', 'artist'),
    'album': ('TALB', '\xa9alb', 'album'),
    'album_artist': ('TPE2', 'aART', 'albumartist'),
    'genre': ('TCON', '\xa9gen', 'genre'),
    'track': ('TRCK', 'trkn', 'tracknumber'),
    'year': ('TDRC', '\xa9day', 'date'),
}

_YEAR = re.compile(r"(\d{4})")
_NUMBER = re.compile(r"(\d+)")


def _tag_text(tags, key: str) -> Optional[str]:
    value = tags.get(key)
    if value is None:
        return None
    # ID3 frames keep their values in .text
    if hasattr(value, 'text'):
        value = value.text
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    # MP4 track numbers are (number, total) pairs
    if isinstance(value, tuple):
        value = value[0]
    text = str(value).strip()
    return text or None


def _parse_int(value: Optional[str], pattern=_NUMBER) -> Optional[int]:
    if not value:
        return None
    match = pattern.search(value)
    if not match:
        return None
    return int(match.group(1))


def _picture_mime(mime: Optional[str]) -> str:
    mime = (mime or '').strip().lower()
    if not mime:
        return 'image/jpeg'
    # ID3v2.2 stores a bare format like "PNG"
    if '/' not in mime:
        return f'image/{mime}'
    return mime


def _read_picture(audio) -> Optional[EmbeddedPicture]:
    if isinstance(audio, FLAC) and audio.pictures:
        pic = audio.pictures[0]
        return EmbeddedPicture(data=pic.data, mime=_picture_mime(pic.mime))

    tags = audio.tags
    if tags is None:
        return None

    if isinstance(tags, ID3):
        frames = tags.getall('APIC')
        if frames:
            return EmbeddedPicture(data=frames[0].data, mime=_picture_mime(frames[0].mime))
        return None

    if isinstance(tags, MP4Tags):
        covers = tags.get('covr')
        if covers:
            cover = covers[0]
            mime = 'image/png' if cover.imageformat == MP4Cover.FORMAT_PNG else 'image/jpeg'
            return EmbeddedPicture(data=bytes(cover), mime=mime)
        return None

    # Ogg containers carry FLAC picture blocks base64-encoded in a comment
    blocks = tags.get('metadata_block_picture')
    if blocks:
        pic = Picture(base64.b64decode(blocks[0]))
        return EmbeddedPicture(data=pic.data, mime=_picture_mime(pic.mime))
    return None


def parse_tags(file_path: str) -> Dict[str, Any]:
    """
    Parse an audio file with mutagen.

    Args:
        file_path: Path to audio file

    Returns:
        Dictionary with:
            - common: title, artist, album, album_artist, genre, track, year
            - format: duration (seconds), bitrate (bps), container
            - picture: EmbeddedPicture or None

    Raises:
        ValueError: The file is not a recognized audio format
        mutagen.MutagenError / OSError: The file could not be read
    """
    audio = MutagenFile(file_path)
    if audio is None:
        raise ValueError(f"Unrecognized audio format: {file_path}")

    tags = audio.tags
    if isinstance(tags, ID3):
        column = 0
    elif isinstance(tags, MP4Tags):
        column = 1
    else:
        column = 2

    common: Dict[str, Any] = {}
    if tags is not None:
        for field_name, keys in TAG_KEYS.items():
            common[field_name] = _tag_text(tags, keys[column])
    common['track'] = _parse_int(common.get('track'))
    common['year'] = _parse_int(common.get('year'), _YEAR)

    info = audio.info
    return {
        'common': common,
        'format': {
            'duration': float(getattr(info, 'length', 0) or 0),
            'bitrate': int(getattr(info, 'bitrate', 0) or 0),
            'container': type(audio).__name__,
        },
        'picture': _read_picture(audio),
    }


def upload_timestamp(path: Path, stat=None) -> str:
    """Ingest time of a stored file: its filename prefix, else its mtime."""
    ms = ingest_timestamp_ms(path.name)
    if ms is not None:
        seconds = ms / 1000.0
    else:
        seconds = (stat or path.stat()).st_mtime
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat(timespec='milliseconds')


class AudioProcessor:
    """Handler for audio file metadata extraction."""

    def __init__(self, timeout: Optional[float] = DEFAULT_EXTRACT_TIMEOUT,
                 parser: Optional[Callable[[str], Dict[str, Any]]] = None):
        self.timeout = timeout
        self.parser = parser or parse_tags

    @staticmethod
    def is_supported_format(file_path: str) -> bool:
        """
        Check if file format is supported.

        Args:
            file_path: Path to audio file

        Returns:
            True if the extension is a recognized audio extension
        """
        ext = Path(file_path).suffix.lower()
        return ext in SUPPORTED_AUDIO_FORMATS

    def _parse_with_timeout(self, path: Path) -> Dict[str, Any]:
        if not self.timeout:
            return self.parser(str(path))

        outcome: Dict[str, Any] = {}

        def target():
            try:
                outcome['value'] = self.parser(str(path))
            except Exception as e:
                outcome['error'] = e

        # Daemon thread so a parser that never returns cannot hold the process open
        worker = threading.Thread(target=target, name=f"TagParser-{path.name}", daemon=True)
        worker.start()
        worker.join(self.timeout)
        if worker.is_alive():
            raise TimeoutError(f"Tag parsing exceeded {self.timeout}s")
        if 'error' in outcome:
            raise outcome['error']
        return outcome['value']

    def extract_metadata(self, file_path) -> MetadataRecord:
        """
        Extract metadata from an audio file.

        Never raises for a parsing failure: corrupt files, unsupported codecs,
        I/O errors inside the parser and timeouts are logged and turned into a
        degraded record with ``error`` set. Only a failure to stat the file
        itself propagates.

        Args:
            file_path: Path to audio file

        Returns:
            MetadataRecord, complete or degraded
        """
        path = Path(file_path)
        try:
            parsed = self._parse_with_timeout(path)
        except Exception as e:
            logger.warning(f"Failed to extract metadata from {path.name}: {e}")
            return self.fallback_record(path)

        stat = path.stat()
        common = parsed.get('common') or {}
        fmt = parsed.get('format') or {}

        return MetadataRecord(
            filename=path.name,
            title=common.get('title') or path.stem,
            artist=common.get('artist') or UNKNOWN_ARTIST,
            album=common.get('album') or UNKNOWN_ALBUM,
            album_artist=common.get('album_artist'),
            genre=common.get('genre'),
            track=common.get('track'),
            year=common.get('year'),
            duration=round(float(fmt.get('duration') or 0), 3),
            bitrate=int(fmt.get('bitrate') or 0),
            format=path.suffix.lower().lstrip('.'),
            file_size=stat.st_size,
            upload_timestamp=upload_timestamp(path, stat),
            picture=parsed.get('picture'),
        )

    @staticmethod
    def fallback_record(file_path) -> MetadataRecord:
        """Degraded record built only from what the filesystem knows."""
        path = Path(file_path)
        stat = path.stat()
        return MetadataRecord(
            filename=path.name,
            title=path.stem,
            artist=UNKNOWN_ARTIST,
            album=UNKNOWN_ALBUM,
            duration=0,
            bitrate=0,
            format=path.suffix.lower().lstrip('.'),
            file_size=stat.st_size,
            upload_timestamp=upload_timestamp(path, stat),
            error=METADATA_ERROR_MARKER,
        )
