import pytest

from builders import BASE_TIME, build_region, compress, encode_root, make_chunk_tree


@pytest.fixture
def chunk_tree():
    return make_chunk_tree()


@pytest.fixture
def chunk_payload(chunk_tree):
    return encode_root(chunk_tree)


@pytest.fixture
def region_bytes():
    """Region with one chunk per scheme along z=0, an external chunk at
    (4, 0) and a far corner chunk at (31, 31)."""
    chunks = {}
    for x, scheme in enumerate((2, 1, 3, 4)):
        chunks[(x, 0)] = (scheme, compress(scheme, encode_root(make_chunk_tree(x, 0))))
    chunks[(4, 0)] = (0x82, b'')
    chunks[(31, 31)] = (2, compress(2, encode_root(make_chunk_tree(31, 31, "minecraft:features"))))
    timestamps = {xz: BASE_TIME + i for i, xz in enumerate(chunks)}
    return build_region(chunks, timestamps)


@pytest.fixture
def region_file(tmp_path, region_bytes):
    path = tmp_path / "r.1.-2.mca"
    path.write_bytes(region_bytes)
    return path
