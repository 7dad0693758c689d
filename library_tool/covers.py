"""
Cover art storage.

Covers are stored once per stored filename under ``<md5(filename)>.<ext>``.
The first writer wins; later writers find the file already present and leave
it alone.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Optional

from shared.constants import COVER_EXTENSIONS, DEFAULT_COVER_EXTENSION
from shared.models import EmbeddedPicture
from library_tool.audio import AudioProcessor

logger = logging.getLogger(__name__)


def cover_hash(stored_filename: str) -> str:
    return hashlib.md5(stored_filename.encode("utf-8")).hexdigest()


def cover_extension(mime: Optional[str]) -> str:
    """png/gif/webp are recognized explicitly; anything else is stored as jpg."""
    return COVER_EXTENSIONS.get((mime or "").lower(), DEFAULT_COVER_EXTENSION)


class CoverStore:
    """Embedded cover art, one file per stored audio filename."""

    def __init__(self, covers_dir: Path, processor: Optional[AudioProcessor] = None):
        self.covers_dir = Path(covers_dir)
        self.processor = processor or AudioProcessor()

    def reference_for(self, stored_filename: str, mime: Optional[str]) -> str:
        return f"{cover_hash(stored_filename)}.{cover_extension(mime)}"

    def path_for(self, reference: str) -> Path:
        return self.covers_dir / reference

    def save(self, picture: Optional[EmbeddedPicture], stored_filename: str) -> Optional[str]:
        """
        Persist a picture for a stored filename unless one is already there.

        Args:
            picture: Embedded picture, or None when the file has no cover
            stored_filename: On-disk name of the owning audio file

        Returns:
            Cover reference ``<hash>.<ext>``, or None when there is no picture
            or it could not be written
        """
        if picture is None or not picture.data:
            return None

        reference = self.reference_for(stored_filename, picture.mime)
        dest_path = self.path_for(reference)
        if dest_path.exists():
            return reference

        try:
            self.covers_dir.mkdir(parents=True, exist_ok=True)
            # Exclusive create: a concurrent writer for the same hash loses the race cleanly
            with open(dest_path, "xb") as f:
                f.write(picture.data)
            logger.debug(f"Wrote cover {reference} for {stored_filename}")
        except FileExistsError:
            pass
        except OSError as e:
            logger.warning(f"Failed to write cover for {stored_filename}: {e}")
            return None
        return reference

    def extract_cover(self, file_path, stored_filename: Optional[str] = None) -> Optional[str]:
        """Parse ``file_path`` and store its embedded picture, if any."""
        path = Path(file_path)
        try:
            record = self.processor.extract_metadata(path)
        except OSError as e:
            logger.warning(f"Failed to read cover from {path.name}: {e}")
            return None
        return self.save(record.picture, stored_filename or path.name)

    def find(self, stored_filename: str) -> Optional[str]:
        """Return the reference of an existing cover for a stored filename."""
        prefix = cover_hash(stored_filename)
        candidates = {DEFAULT_COVER_EXTENSION, *COVER_EXTENSIONS.values()}
        for ext in sorted(candidates):
            reference = f"{prefix}.{ext}"
            if self.path_for(reference).exists():
                return reference
        return None

    def delete(self, reference: Optional[str]) -> bool:
        """Best-effort removal; never raises."""
        if not reference:
            return False
        path = self.path_for(reference)
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete cover {reference}: {e}")
            return False

    def count(self) -> int:
        if not self.covers_dir.is_dir():
            return 0
        return sum(1 for p in self.covers_dir.iterdir() if p.is_file())
