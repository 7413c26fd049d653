"""Module shape painter: one active module -> one filled shape."""

import math

from PIL import ImageDraw

from qrstudio.config import FinderStyle, ModuleStyle, RenderConfig
from qrstudio.generator import ModuleMatrix

DOT_RADIUS = 0.42
ROUNDED_RADIUS = 0.35
ROUNDED_INSET = 0.5  # per edge, in canonical units


def _snap(v: float) -> int:
    return math.floor(v + 0.5)


def cell_box(x: float, y: float, pitch: float, inset: float = 0.0) -> tuple[int, int, int, int]:
    """Whole-pixel box [x0, y0, x1, y1] (inclusive) covering a cell.

    Both edges are snapped from the same pitch, so the right edge of one
    cell always meets the left edge of its neighbour.
    """
    return (
        _snap(x + inset),
        _snap(y + inset),
        _snap(x + pitch - inset) - 1,
        _snap(y + pitch - inset) - 1,
    )


def paint(
    draw: ImageDraw.ImageDraw,
    x: float,
    y: float,
    pitch: float,
    style: ModuleStyle,
    color: tuple[int, ...],
    inset: float = ROUNDED_INSET,
) -> None:
    """Draw a single module whose cell's top-left corner is (x, y).

    *inset* only applies to rounded modules and is in output pixels.
    """
    if style is ModuleStyle.DOTS:
        cx = x + pitch / 2
        cy = y + pitch / 2
        r = DOT_RADIUS * pitch
        draw.ellipse(
            [_snap(cx - r), _snap(cy - r), _snap(cx + r) - 1, _snap(cy + r) - 1],
            fill=color,
        )
    elif style is ModuleStyle.ROUNDED:
        box = cell_box(x, y, pitch, inset=inset)
        if box[2] < box[0] or box[3] < box[1]:
            # inset swallowed a one-pixel cell
            box = cell_box(x, y, pitch)
        draw.rounded_rectangle(box, radius=max(1, _snap(ROUNDED_RADIUS * pitch)), fill=color)
    else:  # squares
        draw.rectangle(cell_box(x, y, pitch), fill=color)


def module_style(config: RenderConfig, matrix: ModuleMatrix, row: int, col: int) -> ModuleStyle:
    """Style for one module once the finder-pattern override is applied."""
    if config.finder_style is FinderStyle.SQUARE and matrix.in_finder(row, col):
        return ModuleStyle.SQUARES
    return config.style
