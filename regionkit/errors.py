"""
Exceptions raised by regionkit.

Every error is recoverable: a bad chunk raises from the call that touched it
and leaves the Region and the other chunks usable.
"""


class RegionKitError(Exception):
    """Base class for all regionkit errors."""


# Container / chunk layer

class RegionError(RegionKitError):
    pass


class RegionIOError(RegionError):
    """The byte source could not be read."""


class TruncatedHeader(RegionError):
    """The source is too small to hold the 8 KiB header."""


class OutOfRange(RegionError, ValueError):
    """Local chunk coordinates outside 0..31."""


class ChunkError(RegionError):
    """Error tied to one chunk slot. `x` and `z` are set when known."""

    def __init__(self, msg="", x=None, z=None):
        super().__init__(msg)
        self.x = x
        self.z = z

    def __str__(self):
        msg = super().__str__()
        if self.x is None:
            return msg
        return f"chunk ({self.x}, {self.z}): {msg}"


class InvalidOffset(ChunkError):
    """The header points somewhere a chunk cannot start."""


class TruncatedChunk(ChunkError):
    """The source ends before the chunk does."""


class LengthMismatch(TruncatedChunk):
    """The chunk length does not fit in the sectors allocated to it."""


class UnknownScheme(ChunkError):
    """Compression scheme byte outside the known set."""


class DecompressionFailed(ChunkError):
    pass


class ExternalChunkError(ChunkError):
    """Tried to decompress a chunk whose body lives in an external file."""


# Tag layer

class TagDecodeError(RegionKitError):
    """Malformed tag data. `offset` is the cursor position when it failed."""

    def __init__(self, msg="", offset=None):
        super().__init__(msg)
        self.offset = offset

    def __str__(self):
        msg = super().__str__()
        if self.offset is None:
            return msg
        return f"{msg} (at byte {self.offset})"


class InvalidTagKind(TagDecodeError):
    pass


class UnexpectedEnd(TagDecodeError):
    pass


class StringEncodingError(TagDecodeError):
    pass


class RecursionLimitExceeded(TagDecodeError):
    pass


class InvalidLength(TagDecodeError):
    """Negative array, list or string length."""


# Accessor layer

class AccessError(RegionKitError):
    pass


class TypeMismatch(AccessError, TypeError):
    pass


class KeyNotFound(AccessError, KeyError):
    def __str__(self):
        # KeyError repr()s its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class IndexOutOfRange(AccessError, IndexError):
    pass
