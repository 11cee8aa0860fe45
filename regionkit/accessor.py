"""Read-only, type-checked navigation over decoded tag trees."""
import re

from .errors import TypeMismatch
from .nbt import Tag, TagCompound, TagKind, TagList

_ARRAY_KINDS = (TagKind.BYTE_ARRAY, TagKind.INT_ARRAY, TagKind.LONG_ARRAY)

_PART = re.compile(r'([^\[\]]*)((?:\[-?\d+\])*)')
_INDEX = re.compile(r'\[(-?\d+)\]')


def _expected_kind(kind):
    if isinstance(kind, type) and issubclass(kind, Tag):
        return kind.kind
    return TagKind(kind)


def _check(tag, kind, where):
    if kind is None:
        return tag
    expected = _expected_kind(kind)
    if tag.kind != expected:
        raise TypeMismatch(f"{where}: expected {expected.name}, found {tag.kind.name}")
    return tag


def get(compound, name, kind=None):
    """Child `name` of a compound, optionally required to be of `kind`.

    `kind` is a TagKind, its integer value, or a Tag subclass.
    """
    if not isinstance(compound, TagCompound):
        raise TypeMismatch(f"cannot look up {name!r} in {type(compound).__name__}")
    return _check(compound[name], kind, repr(name))


def index(list_tag, i, kind=None):
    """Element `i` of a list, optionally required to be of `kind`."""
    if not isinstance(list_tag, TagList):
        raise TypeMismatch(f"cannot index {type(list_tag).__name__}")
    return _check(list_tag[i], kind, f"[{i}]")


def get_value(compound, name, kind):
    return get(compound, name, kind).value


def _split_path(path):
    steps = []
    for part in path.split('.'):
        m = _PART.fullmatch(part)
        if m is None or not (m.group(1) or m.group(2)):
            raise ValueError(f"malformed tag path {path!r}")
        if m.group(1):
            steps.append(m.group(1))
        steps.extend(int(i) for i in _INDEX.findall(m.group(2)))
    return steps


def get_path(tree, path, kind=None):
    """Follow a path such as `"sections[0].block_states.palette"`.

    Names select compound children, `[n]` selects list elements.
    """
    node = tree
    for step in _split_path(path):
        if isinstance(step, int):
            node = index(node, step)
        else:
            node = get(node, step)
    return _check(node, kind, repr(path))


def to_python(tag):
    """Plain Python copy of a tree: dicts, lists, ints, floats and strings."""
    if isinstance(tag, TagCompound):
        return {name: to_python(child) for name, child in tag.items()}
    if isinstance(tag, TagList):
        return [to_python(child) for child in tag]
    if tag.kind in _ARRAY_KINDS:
        return list(tag.value)
    return tag.value
