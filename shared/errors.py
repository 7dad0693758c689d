"""
Exception types shared by the library tool, the player and the API.
"""


class MusicShelfError(Exception):
    """Base class for all library errors."""


class StorageUnavailable(MusicShelfError):
    """The storage root is missing, unreadable or not writable."""


class CatalogCorrupt(MusicShelfError):
    """The catalog document exists but cannot be parsed."""


class TrackNotFound(MusicShelfError):
    """An id resolved to a stored filename with no file on disk."""

    def __init__(self, track_id: str, filename: str = None):
        self.track_id = track_id
        self.filename = filename
        super().__init__(f"Track not found: {filename or track_id}")


class InvalidIdentifier(MusicShelfError, ValueError):
    """An id could not be decoded into a safe stored filename."""


class UploadRejected(MusicShelfError):
    """An upload failed validation and never reached storage."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"{filename}: {reason}")
