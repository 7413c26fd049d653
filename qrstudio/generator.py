"""Matrix encoder: text in, square boolean module grid out.

The engine owns the quiet zone, so matrices are produced with a zero border.
"""

import asyncio
from collections.abc import Iterator, Sequence

import qrcode
from qrcode.exceptions import DataOverflowError

from qrstudio.config import ECCLevel, coerce_enum
from qrstudio.errors import EncodingError
from qrstudio.logging import audit, get_logger, trace

log = get_logger("generator")

# Edge, in modules, of each of the three finder patterns.
FINDER_EDGE = 7


class ModuleMatrix:
    """Immutable square grid of modules (True = dark)."""

    __slots__ = ("_rows",)

    def __init__(self, rows: Sequence[Sequence[bool]]):
        frozen = tuple(tuple(bool(cell) for cell in row) for row in rows)
        if not frozen:
            raise EncodingError("module matrix is empty")
        size = len(frozen)
        for r, row in enumerate(frozen):
            if len(row) != size:
                raise EncodingError(f"module matrix is not square: row {r} has {len(row)} cells, expected {size}")
        self._rows = frozen

    @classmethod
    def from_rows(cls, rows) -> "ModuleMatrix":
        if isinstance(rows, cls):
            return rows
        if rows is None:
            raise EncodingError("module matrix is absent")
        return cls(rows)

    @property
    def size(self) -> int:
        return len(self._rows)

    def get(self, row: int, col: int) -> bool:
        return self._rows[row][col]

    def in_finder(self, row: int, col: int) -> bool:
        """True for cells inside one of the three corner finder patterns."""
        far = self.size - FINDER_EDGE
        return (row < FINDER_EDGE and (col < FINDER_EDGE or col >= far)) or (row >= far and col < FINDER_EDGE)

    def active_cells(self) -> Iterator[tuple[int, int]]:
        """Yield (row, col) of every dark module in row-major order."""
        for r, row in enumerate(self._rows):
            for c, cell in enumerate(row):
                if cell:
                    yield r, c

    def rows(self) -> tuple[tuple[bool, ...], ...]:
        return self._rows

    def __eq__(self, other):
        return isinstance(other, ModuleMatrix) and self._rows == other._rows

    def __hash__(self):
        return hash(self._rows)

    def __repr__(self):
        return f"ModuleMatrix({self.size}x{self.size})"


@trace
def encode_matrix(text: str, ecc: ECCLevel | str = ECCLevel.M, version: int | None = None) -> ModuleMatrix:
    """Encode *text* into a module matrix at the given error-correction tier.

    Args:
        text: The string to encode (URL, text, etc.)
        ecc: Error correction level: L/M/Q/H
        version: QR version 1-40 (None = smallest that fits)
    """
    if not text:
        raise EncodingError("cannot encode empty input")
    level = coerce_enum(ECCLevel, ecc, "error-correction level")

    qr = qrcode.QRCode(
        version=version,
        error_correction=level.value,
        box_size=1,
        border=0,
    )
    qr.add_data(text)
    try:
        qr.make(fit=(version is None))
    except (DataOverflowError, ValueError) as exc:
        raise EncodingError(f"input does not fit in a QR code: {exc}") from exc

    matrix = ModuleMatrix(qr.modules)
    audit("qr.encoded", logger=log,
          data=text[:80], version=qr.version, size=f"{matrix.size}x{matrix.size}", ecc=level.name)
    return matrix


async def encode(text: str, ecc: ECCLevel | str = ECCLevel.M, version: int | None = None) -> ModuleMatrix:
    """Coroutine form of :func:`encode_matrix` for async callers.

    Encoding runs on the event loop; the engine keeps no worker threads.
    """
    await asyncio.sleep(0)
    return encode_matrix(text, ecc, version)
