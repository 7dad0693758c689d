"""
Server configuration.

Built once at process start (from the environment, optionally seeded from a
.env file) and passed to every component that touches the storage root.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from shared.constants import (
    CATALOG_FILENAME,
    COVERS_DIRNAME,
    DEFAULT_STORAGE_DIR,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_MAX_UPLOAD_MB,
    DEFAULT_MAX_FILES_PER_UPLOAD,
    DEFAULT_SCAN_WORKERS,
    DEFAULT_EXTRACT_TIMEOUT,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "MUSICSHELF_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


@dataclass
class ServerConfig:
    """
    Configuration for one library instance.

    Attributes:
        storage_dir: Root directory holding audio files, covers and the catalog
        host: Interface the HTTP server binds to
        port: Port the HTTP server binds to
        public_url: Address used in catalog URLs instead of the request host
        max_upload_bytes: Per-file upload ceiling
        max_files_per_upload: Files accepted in one upload request
        scan_workers: Parallel metadata extraction workers during a scan
        extract_timeout: Seconds before a stuck tag parse counts as a failure
    """
    storage_dir: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    public_url: Optional[str] = None
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_MB * 1024 * 1024
    max_files_per_upload: int = DEFAULT_MAX_FILES_PER_UPLOAD
    scan_workers: int = DEFAULT_SCAN_WORKERS
    extract_timeout: float = DEFAULT_EXTRACT_TIMEOUT

    def __post_init__(self):
        self.storage_dir = Path(self.storage_dir).expanduser().absolute()
        if self.public_url:
            self.public_url = self.public_url.rstrip("/")

    @property
    def catalog_path(self) -> Path:
        return self.storage_dir / CATALOG_FILENAME

    @property
    def covers_dir(self) -> Path:
        return self.storage_dir / COVERS_DIRNAME

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides) -> 'ServerConfig':
        """
        Build a config from ``MUSICSHELF_*`` environment variables.

        Values from ``env_file`` (or a .env in the working directory) are
        loaded first without overriding the real environment. Keyword
        overrides win over both.
        """
        load_dotenv(env_file)

        try:
            values = {
                "storage_dir": _env("STORAGE_DIR", DEFAULT_STORAGE_DIR),
                "host": _env("HOST", DEFAULT_HOST),
                "port": int(_env("PORT", str(DEFAULT_PORT))),
                "public_url": _env("PUBLIC_URL"),
                "max_upload_bytes": int(float(_env("MAX_UPLOAD_MB", str(DEFAULT_MAX_UPLOAD_MB))) * 1024 * 1024),
                "max_files_per_upload": int(_env("MAX_FILES", str(DEFAULT_MAX_FILES_PER_UPLOAD))),
                "scan_workers": int(_env("SCAN_WORKERS", str(DEFAULT_SCAN_WORKERS))),
                "extract_timeout": float(_env("EXTRACT_TIMEOUT", str(DEFAULT_EXTRACT_TIMEOUT))),
            }
        except ValueError as e:
            raise ValueError(f"Invalid {ENV_PREFIX}* setting: {e}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        logger.debug(f"Loaded config: storage_dir={config.storage_dir}, port={config.port}")
        return config
