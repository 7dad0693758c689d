"""
Upload engine: validates incoming audio and moves it into the storage root.
"""

import logging
import os
import time
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Tuple

from shared.config import ServerConfig
from shared.constants import (
    ALLOWED_UPLOAD_MIMES,
    GENERIC_MIMES,
    PARTIAL_UPLOAD_SUFFIX,
    UPLOAD_CHUNK_SIZE,
)
from shared.errors import UploadRejected
from shared.filenames import stored_filename, repair_transport_encoding
from shared.identifiers import encode_id
from shared.models import IngestedFile, RejectedFile, UploadReport
from library_tool.audio import AudioProcessor

logger = logging.getLogger(__name__)

# (byte stream, original filename, declared size or None, declared MIME type or None)
UploadItem = Tuple[BinaryIO, str, Optional[int], Optional[str]]


class UploadEngine:
    """Handles validation and storage of uploaded music files."""

    def __init__(self, config: ServerConfig, processor: Optional[AudioProcessor] = None):
        self.config = config
        self.storage_dir = config.storage_dir
        self.processor = processor or AudioProcessor(timeout=config.extract_timeout)

    def validate(self, original_name: str, declared_size: Optional[int] = None,
                 mimetype: Optional[str] = None) -> None:
        """
        Check an upload before any byte is written.

        Raises:
            UploadRejected: With the specific reason
        """
        if not original_name:
            raise UploadRejected("", "Missing filename")

        if not AudioProcessor.is_supported_format(original_name):
            ext = Path(original_name).suffix or "(none)"
            raise UploadRejected(original_name, f"Unsupported file type {ext}")

        mime = (mimetype or "").split(";")[0].strip().lower()
        if mime not in GENERIC_MIMES and mime not in ALLOWED_UPLOAD_MIMES:
            raise UploadRejected(original_name, f"Unsupported content type {mime}")

        if declared_size is not None and declared_size > self.config.max_upload_bytes:
            raise UploadRejected(original_name, self._too_large_reason())

    def _too_large_reason(self) -> str:
        limit_mb = self.config.max_upload_bytes / (1024 * 1024)
        return f"File too large (max {limit_mb:g}MB)"

    def _reserve_name(self, original_name: str) -> Tuple[str, Path, BinaryIO]:
        """
        Claim a stored name by exclusively creating its ``.part`` file.

        Returns:
            (stored name, .part path, open .part handle)
        """
        # The millisecond prefix is the only uniqueness mechanism; step it forward on a clash
        timestamp = int(time.time() * 1000)
        while True:
            name = stored_filename(original_name, timestamp)
            final_path = self.storage_dir / name
            part_path = final_path.with_name(name + PARTIAL_UPLOAD_SUFFIX)
            if not final_path.exists():
                try:
                    return name, part_path, open(part_path, "xb")
                except FileExistsError:
                    # Another upload of the same name is still in flight
                    pass
            timestamp += 1

    def ingest(self, stream: BinaryIO, original_name: str,
               declared_size: Optional[int] = None,
               mimetype: Optional[str] = None) -> IngestedFile:
        """
        Store one uploaded file.

        Bytes are copied into a ``.part`` file and renamed into place only
        after the whole stream was read within the size limit.

        Args:
            stream: Readable binary stream with the file content
            original_name: Filename as declared by the client
            declared_size: Size declared by the client, if known
            mimetype: Content type declared by the client, if known

        Returns:
            IngestedFile with the stored name, id, size and extracted metadata

        Raises:
            UploadRejected: Validation failed; nothing is left in storage
        """
        original_name = repair_transport_encoding(original_name or "")
        self.validate(original_name, declared_size, mimetype)

        name, part_path, out = self._reserve_name(original_name)
        final_path = self.storage_dir / name

        size = 0
        try:
            with out:
                for chunk in iter(lambda: stream.read(UPLOAD_CHUNK_SIZE), b""):
                    size += len(chunk)
                    if size > self.config.max_upload_bytes:
                        raise UploadRejected(original_name, self._too_large_reason())
                    out.write(chunk)
            os.replace(part_path, final_path)
        except BaseException:
            try:
                os.remove(part_path)
            except FileNotFoundError:
                pass
            raise

        logger.info(f"Stored upload {original_name!r} as {name} ({size} bytes)")
        metadata = self.processor.extract_metadata(final_path)
        return IngestedFile(
            original_name=original_name,
            filename=name,
            id=encode_id(name),
            size=size,
            metadata=metadata,
        )

    def ingest_many(self, items: Iterable[UploadItem]) -> UploadReport:
        """
        Store several uploads; each one succeeds or fails on its own.

        Raises:
            UploadRejected: More files than ``max_files_per_upload``
        """
        items = list(items)
        if not items:
            raise UploadRejected("", "No files were uploaded")
        if len(items) > self.config.max_files_per_upload:
            raise UploadRejected("", f"Too many files (max {self.config.max_files_per_upload})")

        report = UploadReport()
        for stream, original_name, declared_size, mimetype in items:
            try:
                report.uploaded.append(self.ingest(stream, original_name, declared_size, mimetype))
            except UploadRejected as e:
                logger.warning(f"Rejected upload {e.filename!r}: {e.reason}")
                report.errors.append(RejectedFile(filename=e.filename or original_name, error=e.reason))
            except OSError as e:
                logger.error(f"Failed to store upload {original_name!r}: {e}")
                report.errors.append(RejectedFile(filename=original_name, error=str(e)))
        return report
