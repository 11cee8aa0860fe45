VERSION = "0.3.0"

# Region layout
SECTOR_SIZE = 4096
REGION_WIDTH = 32
CHUNK_COUNT = REGION_WIDTH * REGION_WIDTH
HEADER_SIZE = 2 * SECTOR_SIZE
CHUNK_HEADER_SIZE = 5  # u32 length + u8 scheme

# Scheme byte flag: chunk body stored in a separate file
EXTERNAL_FLAG = 0x80

# Blocks per chunk side, used for block -> chunk coordinates
CHUNK_WIDTH = 16

# Decode limits (overridable per call)
MAX_DEPTH = 512
MAX_CHUNK_SIZE = 16 * 1024 * 1024
