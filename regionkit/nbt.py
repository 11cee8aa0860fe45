"""
Decoder for the binary tag format stored inside chunks.

A tree is made of typed nodes: fixed-width big-endian scalars,
length-prefixed strings and arrays, homogeneous lists and named compounds.
The root is always one named compound.

    >>> root = decode(payload)
    >>> root["Status"].value
    'minecraft:full'
"""
import enum
import logging
import struct

from .constants import MAX_DEPTH
from .errors import (
    IndexOutOfRange,
    InvalidLength,
    InvalidTagKind,
    KeyNotFound,
    RecursionLimitExceeded,
    StringEncodingError,
    UnexpectedEnd,
)

logger = logging.getLogger("regionkit.nbt")


class TagKind(enum.IntEnum):
    END = 0
    BYTE = 1
    SHORT = 2
    INT = 3
    LONG = 4
    FLOAT = 5
    DOUBLE = 6
    BYTE_ARRAY = 7
    STRING = 8
    LIST = 9
    COMPOUND = 10
    INT_ARRAY = 11
    LONG_ARRAY = 12


# Tag nodes -------------------------------------------------------------------

class Tag(object):
    __slots__ = ('value',)
    kind = None

    def __init__(self, value):
        self.value = value

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.value == other.value

    __hash__ = None

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self.value)


class _ScalarTag(Tag):
    __slots__ = ()
    fmt = None


class TagByte(_ScalarTag):
    __slots__ = ()
    kind = TagKind.BYTE
    fmt = struct.Struct('>b')


class TagShort(_ScalarTag):
    __slots__ = ()
    kind = TagKind.SHORT
    fmt = struct.Struct('>h')


class TagInt(_ScalarTag):
    __slots__ = ()
    kind = TagKind.INT
    fmt = struct.Struct('>i')


class TagLong(_ScalarTag):
    __slots__ = ()
    kind = TagKind.LONG
    fmt = struct.Struct('>q')


class TagFloat(_ScalarTag):
    __slots__ = ()
    kind = TagKind.FLOAT
    fmt = struct.Struct('>f')


class TagDouble(_ScalarTag):
    __slots__ = ()
    kind = TagKind.DOUBLE
    fmt = struct.Struct('>d')


class TagString(Tag):
    __slots__ = ()
    kind = TagKind.STRING


class _ArrayTag(Tag):
    """Fixed-width signed integers; `value` is a tuple."""
    __slots__ = ()
    code = None
    width = None

    def __init__(self, value=()):
        self.value = tuple(value)

    def __len__(self):
        return len(self.value)

    def __iter__(self):
        return iter(self.value)


class TagByteArray(_ArrayTag):
    __slots__ = ()
    kind = TagKind.BYTE_ARRAY
    code = 'b'
    width = 1


class TagIntArray(_ArrayTag):
    __slots__ = ()
    kind = TagKind.INT_ARRAY
    code = 'i'
    width = 4


class TagLongArray(_ArrayTag):
    __slots__ = ()
    kind = TagKind.LONG_ARRAY
    code = 'q'
    width = 8


class TagList(Tag):
    """Homogeneous sequence. Every element has kind `element_kind`."""
    __slots__ = ('element_kind',)
    kind = TagKind.LIST

    def __init__(self, element_kind, value=()):
        self.element_kind = TagKind(element_kind)
        self.value = tuple(value)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.element_kind == other.element_kind and self.value == other.value

    def __len__(self):
        return len(self.value)

    def __iter__(self):
        return iter(self.value)

    def __getitem__(self, index):
        if index < 0 or index >= len(self.value):
            raise IndexOutOfRange(
                f"index {index} out of range for list of {len(self.value)}")
        return self.value[index]

    def __repr__(self):
        return "%s(%s, %r)" % (type(self).__name__, self.element_kind.name, list(self.value))


class TagCompound(Tag):
    """Ordered mapping of unique names to tags."""
    __slots__ = ()
    kind = TagKind.COMPOUND

    def __init__(self, value=None):
        self.value = dict(value or {})

    def __len__(self):
        return len(self.value)

    def __iter__(self):
        return iter(self.value)

    def __contains__(self, name):
        return name in self.value

    def __getitem__(self, name):
        try:
            return self.value[name]
        except KeyError:
            raise KeyNotFound(f"no tag named {name!r}") from None

    def get(self, name, default=None):
        return self.value.get(name, default)

    def keys(self):
        return self.value.keys()

    def items(self):
        return self.value.items()


TAG_CLASSES = {cls.kind: cls for cls in (
    TagByte, TagShort, TagInt, TagLong, TagFloat, TagDouble, TagByteArray,
    TagString, TagList, TagCompound, TagIntArray, TagLongArray,
)}

_SCALARS = {cls.kind: cls for cls in (
    TagByte, TagShort, TagInt, TagLong, TagFloat, TagDouble)}
_ARRAYS = {cls.kind: cls for cls in (TagByteArray, TagIntArray, TagLongArray)}

# Smallest possible encoded payload per kind, used to reject list counts
# that cannot fit in what is left of the buffer.
_MIN_SIZE = {
    TagKind.END: 0,
    TagKind.BYTE: 1,
    TagKind.SHORT: 2,
    TagKind.INT: 4,
    TagKind.LONG: 8,
    TagKind.FLOAT: 4,
    TagKind.DOUBLE: 8,
    TagKind.BYTE_ARRAY: 4,
    TagKind.STRING: 2,
    TagKind.LIST: 5,
    TagKind.COMPOUND: 1,
    TagKind.INT_ARRAY: 4,
    TagKind.LONG_ARRAY: 4,
}

_U8 = struct.Struct('>B')
_U16 = struct.Struct('>H')
_I32 = struct.Struct('>i')


def decode_text(raw):
    """Decode tag text: plain UTF-8, or the modified UTF-8 written by Java
    (NUL as C0 80, supplementary characters as surrogate pairs)."""
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError:
        pass
    try:
        text = raw.replace(b'\xc0\x80', b'\x00').decode('utf-8', 'surrogatepass')
        return text.encode('utf-16-le', 'surrogatepass').decode('utf-16-le')
    except UnicodeError as e:
        raise StringEncodingError(f"invalid string data: {e.reason}") from e


# Decoder ---------------------------------------------------------------------

class TagReader(object):
    """Recursive-descent reader over one decompressed buffer.

    Compounds and lists each add one level of nesting; more than `max_depth`
    levels raise RecursionLimitExceeded.
    """

    def __init__(self, data, max_depth=MAX_DEPTH):
        self.data = bytes(data)
        self.pos = 0
        self.depth = 0
        self.max_depth = max_depth

    def remaining(self):
        return len(self.data) - self.pos

    def _need(self, n):
        if n > self.remaining():
            raise UnexpectedEnd(
                f"need {n} bytes, {self.remaining()} left", offset=self.pos)

    def _unpack(self, st):
        self._need(st.size)
        value = st.unpack_from(self.data, self.pos)[0]
        self.pos += st.size
        return value

    def _length(self):
        n = self._unpack(_I32)
        if n < 0:
            raise InvalidLength(f"negative length {n}", offset=self.pos - 4)
        return n

    def read_kind(self):
        kind = self._unpack(_U8)
        if kind > TagKind.LONG_ARRAY:
            raise InvalidTagKind(f"invalid tag kind {kind}", offset=self.pos - 1)
        return TagKind(kind)

    def read_string(self):
        start = self.pos
        n = self._unpack(_U16)
        self._need(n)
        raw = self.data[self.pos:self.pos + n]
        self.pos += n
        try:
            return decode_text(raw)
        except StringEncodingError as e:
            e.offset = start
            raise

    def _read_scalar(self, kind):
        if kind in _SCALARS:
            cls = _SCALARS[kind]
            return cls(self._unpack(cls.fmt))
        if kind == TagKind.STRING:
            return TagString(self.read_string())
        cls = _ARRAYS[kind]
        n = self._length()
        self._need(n * cls.width)
        values = struct.unpack_from(f'>{n}{cls.code}', self.data, self.pos)
        self.pos += n * cls.width
        return cls(values)

    def _enter(self):
        self.depth += 1
        if self.depth > self.max_depth:
            raise RecursionLimitExceeded(
                f"nesting deeper than {self.max_depth} levels", offset=self.pos)

    # Containers read their children inline so that each level of nesting
    # costs one Python frame.

    def _read_list(self):
        self._enter()
        element_kind = self.read_kind()
        n = self._length()
        if element_kind == TagKind.END and n:
            raise InvalidTagKind(
                f"list of {n} elements has element kind END", offset=self.pos - 5)
        self._need(n * _MIN_SIZE[element_kind])

        items = []
        for _ in range(n):
            if element_kind == TagKind.COMPOUND:
                items.append(self._read_compound())
            elif element_kind == TagKind.LIST:
                items.append(self._read_list())
            else:
                items.append(self._read_scalar(element_kind))

        self.depth -= 1
        return TagList(element_kind, items)

    def _read_compound(self):
        self._enter()
        entries = {}
        while True:
            kind = self.read_kind()
            if kind == TagKind.END:
                break
            name = self.read_string()
            if kind == TagKind.COMPOUND:
                tag = self._read_compound()
            elif kind == TagKind.LIST:
                tag = self._read_list()
            else:
                tag = self._read_scalar(kind)
            if name in entries:
                logger.debug(f"duplicate tag name {name!r}, keeping the last one")
            entries[name] = tag

        self.depth -= 1
        return TagCompound(entries)

    def read_root(self):
        kind = self.read_kind()
        if kind != TagKind.COMPOUND:
            raise InvalidTagKind(
                f"root tag must be a compound, got {kind.name}", offset=0)
        name = self.read_string()
        root = self._read_compound()
        if self.remaining():
            logger.debug(f"{self.remaining()} trailing bytes after root compound")
        return name, root


def decode_named(data, max_depth=MAX_DEPTH):
    """Decode a root compound, returning `(name, compound)`."""
    reader = TagReader(data, max_depth)
    try:
        return reader.read_root()
    except RecursionError:
        raise RecursionLimitExceeded(
            "interpreter recursion limit hit while decoding", offset=reader.pos) from None


def decode(data, max_depth=MAX_DEPTH):
    """Decode a decompressed chunk payload into its root TagCompound."""
    return decode_named(data, max_depth)[1]
