"""
Shared constants used across the library tool, player and API.
"""

# Storage layout
CATALOG_FILENAME = "music-list.json"
COVERS_DIRNAME = "covers"
PARTIAL_UPLOAD_SUFFIX = ".part"

# Audio formats
SUPPORTED_AUDIO_FORMATS = [
    ".mp3", ".wav", ".flac", ".aac", ".ogg", ".webm", ".m4a"
]

ALLOWED_UPLOAD_MIMES = [
    "audio/mpeg",
    "audio/mp3",
    "audio/x-mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/wave",
    "audio/vnd.wave",
    "audio/flac",
    "audio/x-flac",
    "audio/aac",
    "audio/x-aac",
    "audio/ogg",
    "application/ogg",
    "audio/webm",
    "audio/mp4",
    "audio/m4a",
    "audio/x-m4a",
    # Browsers and mimetypes label audio-only webm/ogg files by their container
    "video/webm",
    "video/ogg",
]

# Declared types that carry no information and are judged on extension alone
GENERIC_MIMES = ["", "application/octet-stream"]

AUDIO_MIMETYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "webm": "audio/webm",
    "m4a": "audio/mp4",
}
DEFAULT_AUDIO_MIMETYPE = "audio/mpeg"

# Cover art
COVER_EXTENSIONS = {
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
DEFAULT_COVER_EXTENSION = "jpg"

# Metadata placeholders
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"
METADATA_ERROR_MARKER = "Unable to read metadata"

# Upload settings
DEFAULT_MAX_UPLOAD_MB = 100
DEFAULT_MAX_FILES_PER_UPLOAD = 20
UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1MB

# Scan settings
DEFAULT_SCAN_WORKERS = 4
DEFAULT_EXTRACT_TIMEOUT = 30  # seconds
DEFAULT_WATCH_DEBOUNCE = 5.0  # seconds

# Streaming
STREAM_CHUNK_SIZE = 64 * 1024  # bytes

# Server settings
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
DEFAULT_DATA_DIR = "~/.local/share/musicshelf"
DEFAULT_STORAGE_DIR = DEFAULT_DATA_DIR + "/uploads"
