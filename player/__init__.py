"""Read side of the library: catalog reading, range streaming and the library facade."""

from .library import LibraryManager
from .streamer import RangeStreamer, StreamResponse

__all__ = ["LibraryManager", "RangeStreamer", "StreamResponse"]
