"""
Core library management.
Wires storage, scanning, uploads, catalog reads and streaming together behind
the operations the API and the CLI expose.
"""

import logging
import threading
from typing import Iterable, Optional

from rich.progress import Progress

from shared.config import ServerConfig
from shared.models import Catalog, ScanReport, StorageStats, UploadReport
from library_tool.audio import AudioProcessor
from library_tool.covers import CoverStore
from library_tool.scanner import LibraryScanner
from library_tool.storage import LocalStorage
from library_tool.uploader import UploadEngine, UploadItem
from player.catalog import CatalogReader
from player.streamer import RangeStreamer, StreamResponse

logger = logging.getLogger(__name__)


class LibraryManager:
    """Manages the music library and stream responses."""

    def __init__(self, config: ServerConfig, processor: Optional[AudioProcessor] = None):
        self.config = config
        self.processor = processor or AudioProcessor(timeout=config.extract_timeout)
        self.storage = LocalStorage(config)
        self.covers = CoverStore(config.covers_dir, self.processor)
        self.scanner = LibraryScanner(self.storage, self.processor, self.covers,
                                      parallel=config.scan_workers)
        self.uploader = UploadEngine(config, self.processor)
        self.reader = CatalogReader(self.storage)
        self.streamer = RangeStreamer()
        self._scan_lock = threading.Lock()

    @classmethod
    def open(cls, config: ServerConfig, processor: Optional[AudioProcessor] = None) -> 'LibraryManager':
        """Build a manager and fail fast if the storage root is unusable."""
        manager = cls(config, processor)
        manager.storage.ensure_ready()
        return manager

    def ingest(self, items: Iterable[UploadItem]) -> UploadReport:
        """Store uploaded files. The catalog is only rebuilt by ``rescan``."""
        return self.uploader.ingest_many(items)

    def rescan(self, progress: Optional[Progress] = None) -> ScanReport:
        """Rebuild the catalog. Concurrent calls run one after another."""
        with self._scan_lock:
            return self.scanner.scan(progress=progress)

    def read_catalog(self, server_address: str) -> Catalog:
        return self.reader.read(self.config.public_url or server_address)

    def delete(self, track_id: str) -> str:
        """
        Delete a track's cover (best-effort) and audio file.

        Raises:
            TrackNotFound: No file exists for the id; nothing was changed
        """
        return self.storage.delete_track(track_id, self.covers)

    def stream(self, track_id: str, range_header: Optional[str] = None) -> StreamResponse:
        path = self.storage.path_for_id(track_id)
        return self.streamer.stream(path, range_header)

    def download(self, track_id: str, range_header: Optional[str] = None) -> StreamResponse:
        path = self.storage.path_for_id(track_id)
        return self.streamer.stream(path, range_header, disposition="attachment")

    def stats(self) -> StorageStats:
        return self.storage.stats(self.covers)
