import logging
import struct

from . import nbt
from .compression import CompressionScheme, decompress
from .constants import (
    CHUNK_HEADER_SIZE,
    EXTERNAL_FLAG,
    HEADER_SIZE,
    MAX_CHUNK_SIZE,
    MAX_DEPTH,
    SECTOR_SIZE,
)
from .errors import (
    ChunkError,
    ExternalChunkError,
    InvalidOffset,
    LengthMismatch,
    TruncatedChunk,
)

logger = logging.getLogger("regionkit.chunk")


class RawChunk(object):
    """One chunk's payload as stored in the region, still compressed.

    Owns a copy of its bytes; it stays usable after the region is closed.
    """
    external = False

    def __init__(self, x, z, scheme, payload, timestamp=0):
        self.x = x
        self.z = z
        self.scheme = CompressionScheme(scheme)
        self.payload = bytes(payload)
        self.timestamp = timestamp

    @property
    def length(self):
        """Stored length field: payload plus the scheme byte."""
        return len(self.payload) + 1

    def __len__(self):
        return len(self.payload)

    def __repr__(self):
        return "%s(x=%d, z=%d, scheme=%s, bytes=%d)" % (
            type(self).__name__, self.x, self.z, self.scheme.name, len(self.payload))

    def decompress(self, max_size=MAX_CHUNK_SIZE):
        try:
            return decompress(self.scheme, self.payload, max_size)
        except ChunkError as e:
            e.x, e.z = self.x, self.z
            raise

    def decode(self, max_depth=MAX_DEPTH, max_size=MAX_CHUNK_SIZE):
        """Decompress and decode into the root TagCompound."""
        return nbt.decode(self.decompress(max_size), max_depth)


class ExternalChunk(RawChunk):
    """Chunk whose body lives in a separate file.

    The scheme byte carried the external flag; `scheme` is the scheme the
    external file uses. The inline payload is kept as-is and never
    decompressed, since locating the external file is up to the caller.
    """
    external = True

    def decompress(self, max_size=MAX_CHUNK_SIZE):
        raise ExternalChunkError(
            "chunk body is stored in an external file", x=self.x, z=self.z)

    def decode(self, max_depth=MAX_DEPTH, max_size=MAX_CHUNK_SIZE):
        return self.decompress(max_size)


def _scheme(value, x, z):
    try:
        return CompressionScheme.from_byte(value)
    except ChunkError as e:
        e.x, e.z = x, z
        raise


def read_chunk(read_at, source_size, sector_offset, sector_count, x=None, z=None, timestamp=0):
    """Read the chunk at `sector_offset` from a random-access source.

    `read_at(offset, size)` returns at most `size` bytes starting at
    `offset`. Returns None for the (0, 0) "not generated" entry, an
    ExternalChunk when the scheme byte carries the external flag, and a
    RawChunk otherwise.
    """
    if sector_offset == 0 and sector_count == 0:
        return None
    if sector_offset == 0:
        raise InvalidOffset(f"sector offset 0 with {sector_count} sectors", x, z)
    if sector_offset * SECTOR_SIZE < HEADER_SIZE:
        raise InvalidOffset(f"sector offset {sector_offset} lies inside the header", x, z)
    if sector_count == 0:
        raise InvalidOffset(f"sector offset {sector_offset} with 0 sectors", x, z)

    start = sector_offset * SECTOR_SIZE
    if start >= source_size:
        raise InvalidOffset(
            f"sector offset {sector_offset} is past the end of the source ({source_size} bytes)", x, z)

    head = read_at(start, CHUNK_HEADER_SIZE)
    if len(head) < 4:
        raise TruncatedChunk("source ends inside the length field", x, z)
    length = struct.unpack('>I', head[:4])[0]
    if length == 0:
        raise TruncatedChunk("chunk length is 0", x, z)
    if len(head) < CHUNK_HEADER_SIZE:
        raise TruncatedChunk("source ends before the scheme byte", x, z)
    if length + 4 > sector_count * SECTOR_SIZE:
        raise LengthMismatch(
            f"length {length} does not fit in {sector_count} sectors", x, z)

    flag = head[4] & EXTERNAL_FLAG
    scheme = _scheme(head[4] & ~EXTERNAL_FLAG if flag else head[4], x, z)

    payload = read_at(start + CHUNK_HEADER_SIZE, length - 1)
    if len(payload) < length - 1:
        raise TruncatedChunk(
            f"expected {length - 1} payload bytes, source has {len(payload)}", x, z)

    logger.debug(f"chunk ({x}, {z}): {length} bytes at sector {sector_offset}, {scheme.name}"
                 f"{' (external)' if flag else ''}")
    if flag:
        return ExternalChunk(x, z, scheme, payload, timestamp)
    return RawChunk(x, z, scheme, payload, timestamp)
