"""
Catalog reader.
Loads the persisted catalog and binds every entry's URLs to the address the
caller is being served from.
"""

from urllib.parse import quote

from shared.models import Catalog, Track
from library_tool.storage import LocalStorage


def bind_urls(track: Track, server_address: str) -> Track:
    """Fill the derived URL fields of a track for ``server_address``."""
    base = server_address.rstrip("/")
    track.stream_url = f"{base}/api/stream/{track.id}"
    track.download_url = f"{base}/api/download/{track.id}"
    track.direct_url = f"{base}/uploads/{quote(track.filename)}"
    track.cover_url = f"{base}/covers/{track.cover_reference}" if track.cover_reference else None
    return track


class CatalogReader:
    """Read side of the catalog."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def read(self, server_address: str) -> Catalog:
        """
        Return the current catalog with URLs bound to ``server_address``.

        When no scan has been run yet the result is an empty catalog with
        ``needs_scan`` set, not an error.

        Raises:
            CatalogCorrupt: The catalog document cannot be parsed
        """
        catalog = self.storage.load_catalog()
        if catalog is None:
            return Catalog.empty()

        for track in catalog.entries:
            bind_urls(track, server_address)
        return catalog
