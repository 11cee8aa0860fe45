"""
Region container: 32x32 chunk slots behind an 8 KiB header.

The header holds 1024 big-endian location entries
(`sector_offset << 8 | sector_count`) followed by 1024 big-endian
timestamps. Chunks are only read and decoded when asked for.
"""
import collections
import io
import logging
import os
import struct
import threading
from concurrent.futures import ThreadPoolExecutor

from .chunk import read_chunk
from .constants import (
    CHUNK_COUNT,
    CHUNK_WIDTH,
    HEADER_SIZE,
    MAX_CHUNK_SIZE,
    MAX_DEPTH,
    REGION_WIDTH,
    SECTOR_SIZE,
)
from .errors import OutOfRange, RegionIOError, RegionKitError, TruncatedHeader

logger = logging.getLogger("regionkit.region")

_ENTRIES = struct.Struct(f'>{CHUNK_COUNT}I')


class ChunkLocation(collections.namedtuple('ChunkLocation', 'sector_offset sector_count')):
    __slots__ = ()

    @classmethod
    def from_entry(cls, entry):
        return cls(entry >> 8, entry & 0xFF)

    @property
    def is_empty(self):
        return self.sector_offset == 0 and self.sector_count == 0


class ChunkResult(collections.namedtuple('ChunkResult', 'x z value error')):
    """Outcome of decoding one slot in a batch.

    `value` is the root TagCompound, an ExternalChunk, or None for a chunk
    that was never generated. `error` is set instead when the slot failed.
    """
    __slots__ = ()

    @property
    def ok(self):
        return self.error is None


def parse_region_position(name):
    """Region coordinates from an `r.<x>.<z>.mca` file name, or None."""
    parts = os.path.basename(str(name)).split('.')
    if len(parts) != 4 or parts[0] != 'r' or parts[3] != 'mca':
        return None
    try:
        return int(parts[1]), int(parts[2])
    except ValueError:
        return None


def _check_coords(x, z):
    for v in (x, z):
        if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v < REGION_WIDTH:
            raise OutOfRange(
                f"chunk coordinates ({x!r}, {z!r}) outside 0..{REGION_WIDTH - 1}")
    return x + z * REGION_WIDTH


class Region(object):
    def __init__(self, fileobj, name=None, owns_file=False,
                 max_depth=MAX_DEPTH, max_chunk_size=MAX_CHUNK_SIZE):
        self.file = fileobj
        self.name = name
        self.max_depth = max_depth
        self.max_chunk_size = max_chunk_size
        self.closed = False
        self._owns_file = owns_file
        self._lock = threading.Lock()

        try:
            self.size = self.file.seek(0, io.SEEK_END)
            self.file.seek(0)
            header = self.file.read(HEADER_SIZE)
        except OSError as e:
            raise RegionIOError(f"cannot read region source: {e}") from e

        if len(header) < HEADER_SIZE:
            raise TruncatedHeader(
                f"region source is {len(header)} bytes, header needs {HEADER_SIZE}")

        self.locations = tuple(
            ChunkLocation.from_entry(e) for e in _ENTRIES.unpack_from(header, 0))
        self.timestamps = _ENTRIES.unpack_from(header, SECTOR_SIZE)

        self.is_padded = self.size % SECTOR_SIZE == 0
        if not self.is_padded:
            logger.warning(f"{self.name or 'region'}: size {self.size} is not a multiple of {SECTOR_SIZE}")
        logger.debug(f"{self.name or 'region'}: {self.chunk_count()} chunks, {self.size} bytes")

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self.name)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        """Release the byte source if the region opened it."""
        if self._owns_file and not self.closed:
            self.file.close()
        self.closed = True

    @property
    def position(self):
        return parse_region_position(self.name) if self.name else None

    def _read_at(self, offset, size):
        with self._lock:
            try:
                self.file.seek(offset)
                return self.file.read(size)
            except (OSError, ValueError) as e:
                raise RegionIOError(f"read of {size} bytes at {offset} failed: {e}") from e

    # Header lookups

    def location(self, x, z):
        return self.locations[_check_coords(x, z)]

    def timestamp(self, x, z):
        """Last save time of the slot, Unix epoch seconds."""
        return self.timestamps[_check_coords(x, z)]

    def has_chunk(self, x, z):
        return not self.location(x, z).is_empty

    def chunk_count(self):
        return sum(1 for loc in self.locations if not loc.is_empty)

    def iter_present(self):
        for index, loc in enumerate(self.locations):
            if not loc.is_empty:
                yield index % REGION_WIDTH, index // REGION_WIDTH

    # Chunk access

    def get_chunk(self, x, z):
        """Raw chunk at local coordinates, or None if never generated."""
        index = _check_coords(x, z)
        loc = self.locations[index]
        if loc.is_empty:
            return None
        return read_chunk(self._read_at, self.size, loc.sector_offset, loc.sector_count,
                          x, z, self.timestamps[index])

    def get_chunk_from_block(self, block_x, block_z):
        """Raw chunk holding a block, in block coordinates relative to the region."""
        limit = REGION_WIDTH * CHUNK_WIDTH
        if not (0 <= block_x < limit and 0 <= block_z < limit):
            raise OutOfRange(f"block coordinates ({block_x}, {block_z}) outside 0..{limit - 1}")
        return self.get_chunk(block_x // CHUNK_WIDTH, block_z // CHUNK_WIDTH)

    def decode_chunk(self, x, z):
        """Decoded root compound of a chunk.

        Returns None for a chunk never generated, and the ExternalChunk
        itself when the body lives in another file.
        """
        chunk = self.get_chunk(x, z)
        if chunk is None or chunk.external:
            return chunk
        return chunk.decode(self.max_depth, self.max_chunk_size)

    def _decode_slot(self, index):
        x, z = index % REGION_WIDTH, index // REGION_WIDTH
        try:
            value = self.decode_chunk(x, z)
        except RegionKitError as e:
            logger.warning(f"{self.name or 'region'}: chunk ({x}, {z}) failed: {e}")
            return ChunkResult(x, z, None, e)
        return ChunkResult(x, z, value, None)

    def decode_all(self, workers=None):
        """Decode every slot; one ChunkResult per slot, in index order.

        A failing chunk is reported in its own result and never stops the
        rest of the batch.
        """
        if not workers:
            return [self._decode_slot(i) for i in range(CHUNK_COUNT)]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self._decode_slot, range(CHUNK_COUNT)))

    def validate(self, workers=None):
        """Results of all slots that fail to read or decode."""
        return [r for r in self.decode_all(workers) if not r.ok]


def open_region(source, max_depth=MAX_DEPTH, max_chunk_size=MAX_CHUNK_SIZE):
    """Open a region from a path, a bytes-like object or a binary file object.

    A path is opened and closed by the Region; a file object passed in is
    left open for the caller.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        buf = io.BytesIO(bytes(source))
        try:
            return Region(buf, owns_file=True,
                          max_depth=max_depth, max_chunk_size=max_chunk_size)
        except RegionKitError:
            buf.close()
            raise

    if isinstance(source, (str, os.PathLike)):
        path = os.fspath(source)
        try:
            f = open(path, 'rb')
        except OSError as e:
            raise RegionIOError(f"cannot open {path}: {e}") from e
        try:
            return Region(f, name=path, owns_file=True,
                          max_depth=max_depth, max_chunk_size=max_chunk_size)
        except RegionKitError:
            f.close()
            raise

    return Region(source, name=getattr(source, 'name', None),
                  max_depth=max_depth, max_chunk_size=max_chunk_size)
