"""
Byte-range file streaming for seekable audio playback.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from shared.constants import AUDIO_MIMETYPES, DEFAULT_AUDIO_MIMETYPE, STREAM_CHUNK_SIZE
from shared.errors import TrackNotFound

logger = logging.getLogger(__name__)

_RANGE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)


class FileRange:
    """
    Iterator over ``[start, end]`` (inclusive) of a file, in chunks.

    The file is opened lazily on first read and closed when the range is
    exhausted or ``close()`` is called, whichever comes first. Closing early,
    or more than once, is fine.
    """

    def __init__(self, path: Path, start: int, end: int, chunk_size: int = STREAM_CHUNK_SIZE):
        self.path = path
        self.start = start
        self.end = end
        self.chunk_size = chunk_size
        self.remaining = max(0, end - start + 1)
        self._fh = None
        self._closed = False

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        if self._closed or self.remaining <= 0:
            self.close()
            raise StopIteration
        if self._fh is None:
            self._fh = open(self.path, "rb")
            self._fh.seek(self.start)
        chunk = self._fh.read(min(self.chunk_size, self.remaining))
        if not chunk:
            # File shrank underneath us
            self.close()
            raise StopIteration
        self.remaining -= len(chunk)
        return chunk

    def close(self) -> None:
        self._closed = True
        if self._fh is not None:
            self._fh.close()
            self._fh = None


@dataclass
class StreamResponse:
    status: int
    headers: Dict[str, str]
    body: Optional[FileRange]


def parse_range(range_header: str, file_size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single ``bytes=`` range against a file size.

    Supports ``start-end``, ``start-`` and the suffix form ``-length``. An end
    past the last byte is clamped.

    Returns:
        Inclusive ``(start, end)``, or None when the range is malformed or
        cannot be satisfied
    """
    match = _RANGE.match(range_header or "")
    if not match:
        return None
    start_str, end_str = match.group(1), match.group(2)

    if start_str == "" and end_str == "":
        return None
    if start_str == "":
        suffix = int(end_str)
        if suffix == 0 or file_size == 0:
            return None
        return max(0, file_size - suffix), file_size - 1

    start = int(start_str)
    end = int(end_str) if end_str else file_size - 1
    end = min(end, file_size - 1)
    if start >= file_size or start > end:
        return None
    return start, end


def content_type_for(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    return AUDIO_MIMETYPES.get(ext, DEFAULT_AUDIO_MIMETYPE)


class RangeStreamer:
    """Serves files with full (200) or partial (206) content."""

    def __init__(self, chunk_size: int = STREAM_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def stream(self, path: Path, range_header: Optional[str] = None,
               disposition: Optional[str] = None) -> StreamResponse:
        """
        Prepare a response for ``path``.

        Args:
            path: File to serve
            range_header: Raw HTTP Range header, if any
            disposition: "attachment" to force a download under the stored name

        Returns:
            StreamResponse; status 200, 206 or 416 (416 has no body)

        Raises:
            TrackNotFound: The file does not exist; nothing has been sent yet
        """
        path = Path(path)
        try:
            file_size = os.stat(path).st_size
        except FileNotFoundError as e:
            raise TrackNotFound(path.name, path.name) from e
        if not path.is_file():
            raise TrackNotFound(path.name, path.name)

        headers = {
            "Content-Type": content_type_for(path),
            "Accept-Ranges": "bytes",
        }
        if disposition:
            safe_name = path.name.replace('"', "")
            headers["Content-Disposition"] = f'{disposition}; filename="{safe_name}"'

        if not range_header:
            headers["Content-Length"] = str(file_size)
            return StreamResponse(200, headers, FileRange(path, 0, file_size - 1, self.chunk_size))

        byte_range = parse_range(range_header, file_size)
        if byte_range is None:
            logger.debug(f"Unsatisfiable range {range_header!r} for {path.name} ({file_size} bytes)")
            headers["Content-Range"] = f"bytes */{file_size}"
            headers["Content-Length"] = "0"
            return StreamResponse(416, headers, None)

        start, end = byte_range
        headers["Content-Range"] = f"bytes {start}-{end}/{file_size}"
        headers["Content-Length"] = str(end - start + 1)
        return StreamResponse(206, headers, FileRange(path, start, end, self.chunk_size))
