"""
Opaque track identifiers.

An id is the URL-safe base64 form of the stored filename. It is not a secret:
anyone can decode it back to the filename.
"""

import base64
import binascii

from shared.errors import InvalidIdentifier


def encode_id(filename: str) -> str:
    """Encode a stored filename into a URL-safe id."""
    return base64.urlsafe_b64encode(filename.encode("utf-8")).decode("ascii")


def decode_id(track_id: str) -> str:
    """
    Decode an id back into a stored filename.

    Accepts both the URL-safe and the standard base64 alphabet, with or without
    padding. Raises InvalidIdentifier for anything that does not decode to a
    plain filename inside the storage root.
    """
    if not track_id:
        raise InvalidIdentifier("Empty id")

    padded = track_id + "=" * (-len(track_id) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        filename = raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidIdentifier(f"Undecodable id: {track_id!r}") from e

    if not filename or filename in (".", "..") or any(c in filename for c in "/\\\x00"):
        raise InvalidIdentifier(f"Id does not name a stored file: {track_id!r}")
    return filename
