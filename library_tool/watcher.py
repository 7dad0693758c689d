"""
Storage folder watcher.
Monitors the storage root and triggers a rescan once changes settle.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from shared.constants import DEFAULT_WATCH_DEBOUNCE, PARTIAL_UPLOAD_SUFFIX
from shared.errors import MusicShelfError
from library_tool.audio import AudioProcessor

logger = logging.getLogger(__name__)


class StorageFolderHandler(FileSystemEventHandler):
    def __init__(self, library, debounce_delay: float = DEFAULT_WATCH_DEBOUNCE):
        self.library = library
        self.debounce_delay = debounce_delay
        self.debounce_timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def on_created(self, event):
        self._handle(event, event.src_path)

    def on_deleted(self, event):
        self._handle(event, event.src_path)

    def on_modified(self, event):
        self._handle(event, event.src_path)

    def on_moved(self, event):
        # Finished uploads arrive as a rename from .part to the final name
        self._handle(event, getattr(event, 'dest_path', event.src_path))

    def _handle(self, event, path: str):
        if event.is_directory or not self._is_audio(path):
            return
        self._trigger_scan()

    def _is_audio(self, path: str) -> bool:
        if path.endswith(PARTIAL_UPLOAD_SUFFIX):
            return False
        return AudioProcessor.is_supported_format(path)

    def _trigger_scan(self):
        """Trigger scan with debouncing so a burst of changes yields one scan."""
        with self._lock:
            if self.debounce_timer:
                self.debounce_timer.cancel()
            self.debounce_timer = threading.Timer(self.debounce_delay, self._run_scan)
            self.debounce_timer.daemon = True
            self.debounce_timer.start()

    def _run_scan(self):
        logger.info("Watcher: changes detected, rescanning")
        try:
            self.library.rescan()
        except MusicShelfError as e:
            logger.error(f"Watcher: rescan failed: {e}")

    def cancel(self):
        with self._lock:
            if self.debounce_timer:
                self.debounce_timer.cancel()
                self.debounce_timer = None


class LibraryWatcher:
    def __init__(self, library, debounce_delay: Optional[float] = None):
        self.library = library
        self.observer = Observer()
        self.handler = StorageFolderHandler(
            library,
            debounce_delay if debounce_delay is not None else DEFAULT_WATCH_DEBOUNCE,
        )

    def start(self):
        """Start monitoring the storage root (not its covers subdirectory)."""
        path = Path(self.library.config.storage_dir)
        self.observer.schedule(self.handler, str(path), recursive=False)
        self.observer.start()
        logger.info(f"Watcher: monitoring {path}")

    def stop(self):
        self.handler.cancel()
        self.observer.stop()
        self.observer.join()
