"""
Filename normalization for uploaded files.

Turns whatever name a client sends into an ASCII name made only of letters,
digits, dots and dashes, then prefixes it with the ingest timestamp.
"""

import re
import unicodedata
from pathlib import PurePosixPath

DEFAULT_STEM = "track"

# Letters that NFKD does not decompose into a base letter plus a mark
_FOLD_TABLE = str.maketrans({
    "đ": "d", "Đ": "D",
    "ł": "l", "Ł": "L",
    "ø": "o", "Ø": "O",
    "ß": "ss",
    "æ": "ae", "Æ": "AE",
    "œ": "oe", "Œ": "OE",
    "þ": "th", "Þ": "Th",
    "ð": "d", "Ð": "D",
})

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Za-z0-9.\-]")
_DASHES = re.compile(r"-{2,}")
_STORED_PREFIX = re.compile(r"^(\d{13})-")


def repair_transport_encoding(text: str) -> str:
    """
    Undo a UTF-8 name that was decoded as latin-1 on the way in.

    Text that does not round-trip (already correct, or not latin-1 at all) is
    returned unchanged.
    """
    try:
        return text.encode("latin-1").decode("utf-8")
    except UnicodeError:
        return text


def _fold(text: str) -> str:
    text = text.translate(_FOLD_TABLE)
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _clean(part: str) -> str:
    part = _WHITESPACE.sub("-", _fold(part).strip())
    part = _DISALLOWED.sub("", part)
    return _DASHES.sub("-", part)


def normalize_filename(original: str) -> str:
    """
    Normalize an uploaded filename into a filesystem- and URL-safe name.

    Directory components are discarded, diacritics are folded to base Latin
    letters, whitespace runs become a single dash and anything outside
    ``[A-Za-z0-9.-]`` is dropped. The result never starts with a dot or dash.

    The name must already be decoded; see ``repair_transport_encoding``.
    """
    name = original or ""
    # Client-supplied paths ("C:\\music\\a.mp3", "../a.mp3") keep only the last part
    name = PurePosixPath(name.replace("\\", "/")).name

    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""

    stem = _clean(stem).lstrip(".-").rstrip(".-")
    ext = _clean(ext).replace(".", "").lower()

    if not stem:
        stem = DEFAULT_STEM
    return f"{stem}.{ext}" if ext else stem


def stored_filename(original: str, timestamp_ms: int) -> str:
    """Build the on-disk name ``<timestamp_ms>-<normalized original>``."""
    return f"{timestamp_ms}-{normalize_filename(original)}"


def ingest_timestamp_ms(filename: str) -> int:
    """Return the ingest timestamp encoded in a stored filename, or None."""
    match = _STORED_PREFIX.match(filename)
    if not match:
        return None
    return int(match.group(1))
