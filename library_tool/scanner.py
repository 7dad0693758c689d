"""
Library scanner.
Lists the storage root, extracts metadata and covers for every audio file and
rewrites the catalog from scratch.
"""

import concurrent.futures
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from rich.progress import Progress

from shared.constants import DEFAULT_SCAN_WORKERS
from shared.identifiers import encode_id
from shared.models import Catalog, Track, ScanReport, ScanFailure
from library_tool.audio import AudioProcessor
from library_tool.covers import CoverStore
from library_tool.storage import LocalStorage

logger = logging.getLogger(__name__)


def catalog_sort_key(track: Track) -> Tuple[str, str]:
    # Case-insensitive first, raw name as a tie-breaker so the order is total
    return (track.filename.casefold(), track.filename)


class LibraryScanner:
    def __init__(self, storage: LocalStorage, processor: AudioProcessor,
                 covers: CoverStore, parallel: int = DEFAULT_SCAN_WORKERS):
        self.storage = storage
        self.processor = processor
        self.covers = covers
        self.parallel = max(1, parallel)

    def scan(self, progress: Optional[Progress] = None) -> ScanReport:
        """
        Rebuild and persist the catalog for the storage root.

        Every call re-derives the catalog from disk; nothing from a previous
        catalog is reused. A file whose tags cannot be read still gets an
        entry (degraded). Only a storage root that cannot be listed aborts.

        Raises:
            StorageUnavailable: The storage root cannot be read
        """
        logger.info(f"Scanning {self.storage.base_path}")
        audio_files = self.storage.list_audio_files()
        logger.info(f"Found {len(audio_files)} audio files")

        tracks: List[Track] = []
        failures: List[ScanFailure] = []

        task = None
        if progress:
            task = progress.add_task("[cyan]Processing tracks...", total=len(audio_files))

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.parallel) as executor:
            future_to_file = {
                executor.submit(self._process_file, f): f
                for f in audio_files
            }

            for future in concurrent.futures.as_completed(future_to_file):
                f_path = future_to_file[future]
                try:
                    tracks.append(future.result())
                except OSError as e:
                    # The file vanished or became unreadable between listing and stat
                    logger.error(f"Error processing {f_path.name}: {e}")
                    failures.append(ScanFailure(filename=f_path.name, error=str(e)))

                if progress:
                    progress.advance(task)

        tracks.sort(key=catalog_sort_key)

        catalog = Catalog(
            last_scan=datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
            entries=tracks,
        )
        self.storage.write_catalog(catalog)

        report = ScanReport(catalog=catalog, files_found=len(audio_files), failures=failures)
        logger.info(
            f"Scan complete: {report.processed}/{report.files_found} processed, "
            f"{report.degraded} without metadata"
        )
        return report

    def _process_file(self, file_path: Path) -> Track:
        """Metadata -> cover -> id -> Track for one file."""
        record = self.processor.extract_metadata(file_path)
        cover_reference = self.covers.save(record.picture, file_path.name)
        return Track.from_metadata(encode_id(file_path.name), record, cover_reference)
