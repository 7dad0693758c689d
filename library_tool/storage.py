"""
Local filesystem storage for the library.

Owns the layout of the storage root: audio files at the top level, the
catalog document next to them and a covers/ subdirectory.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from shared.config import ServerConfig
from shared.errors import StorageUnavailable, TrackNotFound, CatalogCorrupt
from shared.identifiers import decode_id
from shared.models import Catalog, StorageStats
from library_tool.audio import AudioProcessor
from library_tool.covers import CoverStore

logger = logging.getLogger(__name__)


class LocalStorage:
    """
    Storage root on the local filesystem.
    Useful for self-hosting on a NAS or local drive.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self.base_path: Path = config.storage_dir
        self.catalog_path: Path = config.catalog_path
        self.covers_dir: Path = config.covers_dir

    def ensure_ready(self) -> None:
        """
        Create the storage root and covers directory and check they are writable.

        Raises:
            StorageUnavailable: The service must not start
        """
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            self.covers_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryFile(dir=self.base_path):
                pass
        except OSError as e:
            raise StorageUnavailable(f"Storage root {self.base_path} is not usable: {e}") from e
        logger.info(f"Storage root ready: {self.base_path}")

    def resolve(self, filename: str) -> Path:
        """Absolute path of a stored file; the name must be a plain basename."""
        if not filename or Path(filename).name != filename or filename in (".", ".."):
            raise TrackNotFound(filename, filename)
        return self.base_path / filename

    def path_for_id(self, track_id: str) -> Path:
        """
        Resolve an id to an existing audio file.

        Raises:
            TrackNotFound: The id is undecodable or names no file on disk
        """
        try:
            filename = decode_id(track_id)
        except ValueError as e:
            raise TrackNotFound(track_id) from e
        path = self.resolve(filename)
        if not path.is_file():
            raise TrackNotFound(track_id, filename)
        return path

    def list_audio_files(self) -> List[Path]:
        """
        Audio files directly inside the storage root.

        Raises:
            StorageUnavailable: The directory cannot be listed
        """
        try:
            entries = list(os.scandir(self.base_path))
        except OSError as e:
            raise StorageUnavailable(f"Cannot read storage root {self.base_path}: {e}") from e

        files = []
        for entry in entries:
            if entry.is_file() and AudioProcessor.is_supported_format(entry.name):
                files.append(Path(entry.path))
        return files

    def delete_track(self, track_id: str, covers: CoverStore) -> str:
        """
        Delete an audio file and, best-effort, its cover.

        Nothing on disk is touched when the file is already gone.

        Returns:
            The stored filename that was removed

        Raises:
            TrackNotFound: No file exists for the id
        """
        path = self.path_for_id(track_id)

        reference = covers.find(path.name)
        if reference:
            covers.delete(reference)

        try:
            os.remove(path)
        except FileNotFoundError as e:
            raise TrackNotFound(track_id, path.name) from e
        logger.info(f"Deleted {path.name}")
        return path.name

    def write_catalog(self, catalog: Catalog) -> None:
        """
        Replace the catalog document in one step.

        The full document is written to a temporary file in the storage root
        and renamed over the old one, so readers see either the previous
        catalog or the new one.

        Raises:
            StorageUnavailable: The catalog could not be written; the old one
                is left in place
        """
        data = catalog.to_json()
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".catalog-", suffix=".tmp", dir=self.base_path)
        except OSError as e:
            raise StorageUnavailable(f"Cannot write catalog in {self.base_path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.catalog_path)
        except BaseException as e:
            try:
                os.remove(tmp_path)
            except FileNotFoundError:
                pass
            if isinstance(e, OSError):
                raise StorageUnavailable(f"Cannot write catalog {self.catalog_path}: {e}") from e
            raise

    def load_catalog(self) -> Optional[Catalog]:
        """
        Load the persisted catalog.

        Returns:
            Catalog, or None if no scan has been run yet

        Raises:
            CatalogCorrupt: The document exists but is not a valid catalog
        """
        try:
            data = self.catalog_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return Catalog.from_json(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise CatalogCorrupt(f"Cannot parse {self.catalog_path}: {e}") from e

    def stats(self, covers: CoverStore) -> StorageStats:
        total_files = 0
        music_files = 0
        total_size = 0

        try:
            entries = list(os.scandir(self.base_path))
        except OSError as e:
            raise StorageUnavailable(f"Cannot read storage root {self.base_path}: {e}") from e

        for entry in entries:
            if not entry.is_file():
                continue
            total_files += 1
            total_size += entry.stat().st_size
            if AudioProcessor.is_supported_format(entry.name):
                music_files += 1

        if covers.covers_dir.is_dir():
            for cover in covers.covers_dir.iterdir():
                if cover.is_file():
                    total_size += cover.stat().st_size

        last_scan = None
        catalog_exists = self.catalog_path.is_file()
        if catalog_exists:
            try:
                catalog = self.load_catalog()
                last_scan = catalog.last_scan if catalog else None
            except CatalogCorrupt as e:
                logger.warning(f"Catalog present but unreadable: {e}")

        return StorageStats(
            total_files=total_files,
            music_files=music_files,
            covers=covers.count(),
            total_size=total_size,
            catalog_exists=catalog_exists,
            last_scan=last_scan,
        )
