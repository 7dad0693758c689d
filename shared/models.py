"""
Data models for tracks, the catalog and the results of library operations.

This module defines the core data structures shared by the scanner, the
upload pipeline, the catalog reader and the API. Derived values (stream and
cover URLs) live on the models but are never written to the catalog file.
"""

from dataclasses import dataclass, asdict, field, fields
from typing import List, Dict, Optional, Any
import json

# Keys recomputed on every read and therefore never persisted
URL_FIELDS = ("stream_url", "direct_url", "download_url", "cover_url")


@dataclass
class EmbeddedPicture:
    """Raw cover image bytes pulled out of an audio file's tags."""
    data: bytes
    mime: str = "image/jpeg"


@dataclass
class MetadataRecord:
    """
    Result of extracting metadata from one audio file.

    A record is either complete or degraded. A degraded record carries only
    filesystem facts plus ``error``; callers must check ``is_degraded``
    rather than expecting an exception.

    Attributes:
        filename: Stored filename (basename)
        title: Song title, falls back to the filename stem
        artist: Artist name or placeholder
        album: Album name or placeholder
        album_artist: Album artist (optional)
        genre: Genre (optional)
        track: Track number in album (optional)
        year: Release year (optional)
        duration: Duration in seconds
        bitrate: Bitrate in bits per second
        format: Audio format (file extension)
        file_size: Size in bytes
        upload_timestamp: ISO-8601 ingest time
        error: Failure marker, set only on degraded records
        picture: Embedded cover art, in memory only
    """
    filename: str
    title: str
    artist: str
    album: str
    duration: float
    bitrate: int
    format: str
    file_size: int
    upload_timestamp: str
    album_artist: Optional[str] = None
    genre: Optional[str] = None
    track: Optional[int] = None
    year: Optional[int] = None
    error: Optional[str] = None
    picture: Optional[EmbeddedPicture] = field(default=None, repr=False, compare=False)

    @property
    def is_degraded(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("picture", None)
        return data


@dataclass
class Track:
    """
    One catalog entry.

    ``id`` is a reversible encoding of ``filename``; the URL fields are bound
    to a server address by the catalog reader and are None in the persisted
    form.
    """
    id: str
    filename: str
    title: str
    artist: str
    album: str
    duration: float
    bitrate: int
    format: str
    file_size: int
    upload_timestamp: str
    album_artist: Optional[str] = None
    genre: Optional[str] = None
    track: Optional[int] = None
    year: Optional[int] = None
    cover_reference: Optional[str] = None
    error: Optional[str] = None
    stream_url: Optional[str] = None
    direct_url: Optional[str] = None
    download_url: Optional[str] = None
    cover_url: Optional[str] = None

    @classmethod
    def from_metadata(cls, track_id: str, record: MetadataRecord,
                      cover_reference: Optional[str] = None) -> 'Track':
        """Build a catalog entry from an extractor record."""
        return cls(
            id=track_id,
            filename=record.filename,
            title=record.title,
            artist=record.artist,
            album=record.album,
            duration=record.duration,
            bitrate=record.bitrate,
            format=record.format,
            file_size=record.file_size,
            upload_timestamp=record.upload_timestamp,
            album_artist=record.album_artist,
            genre=record.genre,
            track=record.track,
            year=record.year,
            cover_reference=cover_reference,
            error=record.error,
        )

    def to_dict(self, include_urls: bool = True) -> Dict[str, Any]:
        """Convert track to dictionary, optionally without the derived URLs."""
        data = asdict(self)
        if not include_urls:
            for key in URL_FIELDS:
                data.pop(key, None)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Track':
        """Create Track from dictionary, filtering unknown keys."""
        field_names = {f.name for f in fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in field_names}
        return cls(**filtered_data)


@dataclass
class Catalog:
    """
    The durable index of the storage root.

    Rebuilt from disk on every scan and serialized as a single JSON document.
    ``needs_scan`` is only ever true on the placeholder returned when no
    catalog has been written yet.
    """
    last_scan: Optional[str]
    entries: List[Track] = field(default_factory=list)
    needs_scan: bool = False

    @property
    def total_files(self) -> int:
        return len(self.entries)

    @classmethod
    def empty(cls) -> 'Catalog':
        return cls(last_scan=None, entries=[], needs_scan=True)

    def to_dict(self, include_urls: bool = True) -> Dict[str, Any]:
        data = {
            "last_scan": self.last_scan,
            "total_files": self.total_files,
            "entries": [t.to_dict(include_urls=include_urls) for t in self.entries],
        }
        if self.needs_scan:
            data["needs_scan"] = True
        return data

    def to_json(self, indent: int = 2) -> str:
        """
        Serialize the persisted form of the catalog.

        Args:
            indent: JSON indentation level

        Returns:
            JSON string without any derived URLs
        """
        return json.dumps(self.to_dict(include_urls=False), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Catalog':
        entries = [Track.from_dict(t) for t in data.get("entries", [])]
        return cls(last_scan=data.get("last_scan"), entries=entries)

    @classmethod
    def from_json(cls, json_str: str) -> 'Catalog':
        return cls.from_dict(json.loads(json_str))


@dataclass
class ScanFailure:
    filename: str
    error: str


@dataclass
class ScanReport:
    """Outcome of a full rescan: the rebuilt catalog plus counts."""
    catalog: Catalog
    files_found: int
    failures: List[ScanFailure] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.catalog.total_files

    @property
    def degraded(self) -> int:
        return sum(1 for t in self.catalog.entries if t.error)

    def to_dict(self) -> Dict[str, Any]:
        data = self.catalog.to_dict()
        data.update({
            "files_found": self.files_found,
            "processed": self.processed,
            "degraded": self.degraded,
            "failures": [asdict(f) for f in self.failures],
        })
        return data


@dataclass
class IngestedFile:
    original_name: str
    filename: str
    id: str
    size: int
    metadata: Optional[MetadataRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_name": self.original_name,
            "filename": self.filename,
            "id": self.id,
            "size": self.size,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


@dataclass
class RejectedFile:
    filename: str
    error: str


@dataclass
class UploadReport:
    """Per-file outcome of a multi-file upload."""
    uploaded: List[IngestedFile] = field(default_factory=list)
    errors: List[RejectedFile] = field(default_factory=list)

    @property
    def total_uploaded(self) -> int:
        return len(self.uploaded)

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        total = self.total_uploaded + self.total_errors
        return {
            "message": f"Uploaded {self.total_uploaded}/{total} files",
            "uploaded_files": [f.to_dict() for f in self.uploaded],
            "errors": [asdict(e) for e in self.errors],
            "total_uploaded": self.total_uploaded,
            "total_errors": self.total_errors,
        }


@dataclass
class StorageStats:
    total_files: int
    music_files: int
    covers: int
    total_size: int
    catalog_exists: bool
    last_scan: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
