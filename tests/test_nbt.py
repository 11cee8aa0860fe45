import struct

import pytest

from builders import encode_root, make_chunk_tree
from regionkit.errors import (
    IndexOutOfRange,
    InvalidLength,
    InvalidTagKind,
    RecursionLimitExceeded,
    StringEncodingError,
    UnexpectedEnd,
)
from regionkit.nbt import (
    TagByte,
    TagCompound,
    TagInt,
    TagKind,
    TagList,
    TagString,
    decode,
    decode_named,
    decode_text,
)


def _name(text):
    raw = text.encode('utf-8')
    return struct.pack('>H', len(raw)) + raw


def _root(body, name=""):
    """Root compound wrapping an already encoded entry list (no End)."""
    return b'\x0a' + _name(name) + body + b'\x00'


def test_decode_full_tree(chunk_tree, chunk_payload):
    root = decode(chunk_payload)
    assert root == chunk_tree
    assert list(root) == list(chunk_tree)
    assert root["Status"].value == "minecraft:full"
    assert root["sections"][0]["block_states"]["data"].value == (0, -1, 2 ** 62, -(2 ** 63))
    assert root["sections"][0]["BlockLight"].value == (0, 15, -1, -128)
    assert root["Temperature"].value == 0.5
    assert root["Humidity"].value == -1.25


def test_decode_named_returns_root_name():
    name, root = decode_named(encode_root(TagCompound({"a": TagInt(1)}), name="Level"))
    assert name == "Level"
    assert root == TagCompound({"a": TagInt(1)})


def test_decode_is_idempotent(chunk_payload):
    assert decode(chunk_payload) == decode(chunk_payload)


def test_scalars_are_big_endian_twos_complement():
    body = (b'\x01' + _name("b") + b'\xff'
            + b'\x02' + _name("s") + b'\x80\x00'
            + b'\x03' + _name("i") + b'\x00\x00\x01\x00'
            + b'\x04' + _name("l") + b'\xff' * 8
            + b'\x05' + _name("f") + struct.pack('>f', 1.5)
            + b'\x06' + _name("d") + struct.pack('>d', -2.0))
    root = decode(_root(body))
    assert [root[k].value for k in "bsilfd"] == [-1, -32768, 256, -1, 1.5, -2.0]


def test_empty_compound_and_empty_list():
    root = decode(_root(b'\x09' + _name("empty") + b'\x00' + struct.pack('>i', 0)))
    assert root["empty"] == TagList(TagKind.END, [])
    assert decode(b'\x0a\x00\x00\x00') == TagCompound()


def test_nested_lists_of_lists():
    inner = TagList(TagKind.INT, [TagInt(1), TagInt(2)])
    tree = TagCompound({"grid": TagList(TagKind.LIST, [inner, TagList(TagKind.END)])})
    assert decode(encode_root(tree)) == tree


def test_trailing_bytes_are_ignored():
    assert decode(encode_root(TagCompound({"a": TagByte(1)})) + b'junk') == TagCompound({"a": TagByte(1)})


@pytest.mark.parametrize("kind", [13, 99, 200, 255])
def test_invalid_kind_in_compound(kind):
    with pytest.raises(InvalidTagKind):
        decode(_root(bytes([kind]) + _name("x") + b'\x00'))


def test_invalid_list_element_kind():
    with pytest.raises(InvalidTagKind):
        decode(_root(b'\x09' + _name("x") + b'\xc8' + struct.pack('>i', 1)))


def test_end_list_with_elements_is_rejected():
    with pytest.raises(InvalidTagKind):
        decode(_root(b'\x09' + _name("x") + b'\x00' + struct.pack('>i', 3)))


@pytest.mark.parametrize("data", [b'\x00', b'\x08\x00\x00\x00\x00', b'\x09\x00\x00'])
def test_root_must_be_compound(data):
    with pytest.raises(InvalidTagKind):
        decode(data)


@pytest.mark.parametrize("cut", [0, 1, 3, 10, -1])
def test_truncated_input(chunk_payload, cut):
    data = chunk_payload[:cut]
    with pytest.raises(UnexpectedEnd):
        decode(data)


def test_every_prefix_fails_cleanly(chunk_payload):
    for end in range(len(chunk_payload)):
        with pytest.raises(UnexpectedEnd):
            decode(chunk_payload[:end])


def test_huge_declared_array_is_rejected_before_allocation():
    body = b'\x0c' + _name("big") + struct.pack('>i', 2 ** 31 - 1)
    with pytest.raises(UnexpectedEnd):
        decode(_root(body))


def test_huge_declared_list_is_rejected():
    body = b'\x09' + _name("big") + b'\x0a' + struct.pack('>i', 2 ** 31 - 1)
    with pytest.raises(UnexpectedEnd):
        decode(_root(body))


@pytest.mark.parametrize("kind", [b'\x07', b'\x0b', b'\x0c'])
def test_negative_array_length(kind):
    with pytest.raises(InvalidLength):
        decode(_root(kind + _name("neg") + struct.pack('>i', -1)))


def test_negative_list_length():
    with pytest.raises(InvalidLength):
        decode(_root(b'\x09' + _name("neg") + b'\x01' + struct.pack('>i', -5)))


def test_invalid_string_bytes():
    body = b'\x08' + _name("s") + b'\x00\x02\xff\xfe'
    with pytest.raises(StringEncodingError) as exc:
        decode(_root(body))
    assert exc.value.offset is not None


def test_modified_utf8_strings():
    # NUL as C0 80 and U+1F600 as a surrogate pair
    raw = b'a\xc0\x80b' + '\ud83d'.encode('utf-8', 'surrogatepass') + '\ude00'.encode('utf-8', 'surrogatepass')
    assert decode_text(raw) == 'a\x00b\U0001F600'


def test_lone_surrogate_is_rejected():
    with pytest.raises(StringEncodingError):
        decode_text('\ud83d'.encode('utf-8', 'surrogatepass'))


def _nested_compounds(depth):
    # root plus depth - 1 nested compounds, each named "n"
    return b'\x0a\x00\x00' + (b'\x0a' + _name("n")) * (depth - 1) + b'\x00' * depth


def test_depth_at_limit_decodes():
    root = decode(_nested_compounds(16), max_depth=16)
    node, levels = root, 1
    while "n" in node:
        node, levels = node["n"], levels + 1
    assert levels == 16


def test_depth_beyond_limit():
    with pytest.raises(RecursionLimitExceeded):
        decode(_nested_compounds(17), max_depth=16)


def test_default_depth_bound_protects_the_stack():
    data = b'\x0a\x00\x00' + (b'\x09' + _name("n") + b'\x09' + struct.pack('>i', 1)) + b'\x09\x00\x00\x00\x01' * 100000
    with pytest.raises(RecursionLimitExceeded):
        decode(data)


def test_deep_compound_default_bound():
    with pytest.raises(RecursionLimitExceeded):
        decode(_nested_compounds(100000))


def test_tag_equality_is_structural():
    assert make_chunk_tree() == make_chunk_tree()
    assert make_chunk_tree() != make_chunk_tree(status="minecraft:empty")
    assert TagInt(1) != TagByte(1)
    assert TagList(TagKind.INT) != TagList(TagKind.END)
    assert TagString("a") == TagString("a")


def test_list_index_bounds():
    tags = TagList(TagKind.INT, [TagInt(1), TagInt(2)])
    assert tags[1] == TagInt(2)
    for i in (2, -1, -3):
        with pytest.raises(IndexOutOfRange):
            tags[i]
