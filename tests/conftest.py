import io
import struct
import zlib

import pytest
from PIL import Image

from qrstudio.config import RenderConfig
from qrstudio.generator import ModuleMatrix


def finder_matrix(size: int = 29) -> ModuleMatrix:
    """Synthetic matrix with the three 7x7 finder patterns and a sparse body."""
    rows = [[False] * size for _ in range(size)]
    for orig_r, orig_c in [(0, 0), (0, size - 7), (size - 7, 0)]:
        for r in range(7):
            for c in range(7):
                ring = r in (0, 6) or c in (0, 6)
                core = 2 <= r <= 4 and 2 <= c <= 4
                rows[orig_r + r][orig_c + c] = ring or core
    for r in range(8, size - 8):
        for c in range(8, size - 8):
            rows[r][c] = (r * 7 + c * 3) % 5 == 0
    return ModuleMatrix(rows)


def single_cell_matrix(size: int, row: int, col: int) -> ModuleMatrix:
    rows = [[False] * size for _ in range(size)]
    rows[row][col] = True
    return ModuleMatrix(rows)


def logo_png(color=(220, 30, 30, 255), size: int = 64) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (size, size), color).save(buf, format="PNG")
    return buf.getvalue()


def _png_chunk(tag: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", zlib.crc32(tag + data) & 0xFFFFFFFF)


def oversized_png(edge: int = 20000) -> bytes:
    """A valid PNG header declaring an *edge* x *edge* RGBA image, with no pixel data."""
    header = struct.pack(">IIBBBBB", edge, edge, 8, 6, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", zlib.compress(b""))
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture
def matrix29():
    return finder_matrix(29)


@pytest.fixture
def config():
    return RenderConfig()


@pytest.fixture
def logo_bytes():
    return logo_png()
