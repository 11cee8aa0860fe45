import logging

from .compression import CompressionScheme, decompress
from .constants import VERSION
from .chunk import ExternalChunk, RawChunk, read_chunk
from .errors import *  # noqa: F401,F403
from .nbt import (
    TagByte,
    TagByteArray,
    TagCompound,
    TagDouble,
    TagFloat,
    TagInt,
    TagIntArray,
    TagKind,
    TagList,
    TagLong,
    TagLongArray,
    TagShort,
    TagString,
    decode,
    decode_named,
)
from .region import ChunkLocation, ChunkResult, Region, open_region, parse_region_position

__version__ = VERSION

open = open_region

logging.getLogger("regionkit").addHandler(logging.NullHandler())
