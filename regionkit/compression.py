import enum
import logging
import struct
import zlib

import lz4.block
import xxhash

from .constants import MAX_CHUNK_SIZE
from .errors import DecompressionFailed, UnknownScheme

logger = logging.getLogger("regionkit.compression")


class CompressionScheme(enum.IntEnum):
    """Scheme byte stored in front of every chunk payload."""
    GZIP = 1  # RFC 1952
    ZLIB = 2  # RFC 1950
    UNCOMPRESSED = 3
    LZ4 = 4  # LZ4Block stream

    @classmethod
    def from_byte(cls, value):
        try:
            return cls(value)
        except ValueError:
            raise UnknownScheme(f"unknown compression scheme {value}") from None


_WBITS = {
    CompressionScheme.GZIP: 16 + zlib.MAX_WBITS,
    CompressionScheme.ZLIB: zlib.MAX_WBITS,
}

# LZ4Block stream (lz4-java's LZ4BlockOutputStream): a run of blocks, each
#   magic "LZ4Block", token (method | level), compressed length,
#   original length, checksum of the original bytes
# with little-endian 32-bit fields, closed by an empty RAW block.
LZ4_MAGIC = b'LZ4Block'
LZ4_RAW = 0x10
LZ4_COMPRESSED = 0x20
_LZ4_HEADER = struct.Struct('<8sBiiI')
_LZ4_SEED = 0x9747B28C


def lz4_checksum(data):
    # lz4-java keeps only the low 28 bits of the hash
    return xxhash.xxh32(data, seed=_LZ4_SEED).intdigest() & 0x0FFFFFFF


def _inflate(data, wbits, max_size):
    d = zlib.decompressobj(wbits)
    try:
        out = d.decompress(data, max_size + 1)
    except zlib.error as e:
        raise DecompressionFailed(f"inflate failed: {e}") from e
    if len(out) > max_size:
        raise DecompressionFailed(f"decompressed size exceeds {max_size} bytes")
    if not d.eof:
        raise DecompressionFailed("compressed stream is truncated")
    return out


def _unblock(data, max_size):
    out = bytearray()
    pos = 0
    while True:
        if len(data) - pos < _LZ4_HEADER.size:
            raise DecompressionFailed("LZ4 stream is truncated")
        magic, token, clen, olen, check = _LZ4_HEADER.unpack_from(data, pos)
        pos += _LZ4_HEADER.size

        if magic != LZ4_MAGIC:
            raise DecompressionFailed(f"bad LZ4 block magic {magic!r}")
        method = token & 0xF0
        if method not in (LZ4_RAW, LZ4_COMPRESSED):
            raise DecompressionFailed(f"unknown LZ4 block method {method:#x}")
        block_size = 1 << (10 + (token & 0x0F))
        if clen < 0 or olen < 0 or olen > block_size:
            raise DecompressionFailed(f"bad LZ4 block lengths {clen}/{olen}")
        if olen == 0 or clen == 0:
            if olen or clen or check:
                raise DecompressionFailed("malformed LZ4 end block")
            break
        if method == LZ4_RAW and clen != olen:
            raise DecompressionFailed(f"raw LZ4 block with lengths {clen}/{olen}")

        # checked before anything is allocated for the block
        if len(out) + olen > max_size:
            raise DecompressionFailed(f"decompressed size exceeds {max_size} bytes")
        if len(data) - pos < clen:
            raise DecompressionFailed("LZ4 stream is truncated")
        body = data[pos:pos + clen]
        pos += clen

        if method == LZ4_RAW:
            block = body
        else:
            try:
                block = lz4.block.decompress(body, uncompressed_size=olen)
            except lz4.block.LZ4BlockError as e:
                raise DecompressionFailed(f"LZ4 block failed: {e}") from e
            if len(block) != olen:
                raise DecompressionFailed(f"LZ4 block gave {len(block)} bytes, expected {olen}")
        if lz4_checksum(block) != check:
            raise DecompressionFailed("LZ4 block checksum mismatch")
        out += block

    if pos < len(data):
        logger.debug(f"{len(data) - pos} bytes after LZ4 end block")
    return bytes(out)


def decompress(scheme, data, max_size=MAX_CHUNK_SIZE):
    """Decompress a chunk payload stored with `scheme`.

    Any malformed stream surfaces as DecompressionFailed; an unknown scheme
    as UnknownScheme.
    """
    scheme = CompressionScheme.from_byte(scheme)
    data = bytes(data)

    if scheme == CompressionScheme.UNCOMPRESSED:
        if len(data) > max_size:
            raise DecompressionFailed(f"payload size exceeds {max_size} bytes")
        return data
    if scheme == CompressionScheme.LZ4:
        out = _unblock(data, max_size)
    else:
        out = _inflate(data, _WBITS[scheme], max_size)

    logger.debug(f"{scheme.name}: {len(data)} -> {len(out)} bytes")
    return out
