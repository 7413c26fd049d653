"""Vector emitter: module matrix -> SVG document at canonical size.

Shapes mirror :mod:`qrstudio.shapes` formula for formula, but in the
canonical coordinate space and without pixel snapping.
"""

from qrstudio.config import CANONICAL_SIZE, ModuleStyle, RenderConfig
from qrstudio.generator import ModuleMatrix
from qrstudio.geometry import resolve
from qrstudio.logging import audit, get_logger, trace
from qrstudio.shapes import DOT_RADIUS, ROUNDED_INSET, ROUNDED_RADIUS, module_style

log = get_logger("vector")

SVG_NS = "http://www.w3.org/2000/svg"
CLOSING_TAG = "</svg>"


def fmt(value: float) -> str:
    """Two-decimal coordinate, so documents are reproducible and diffable."""
    s = f"{value:.2f}"
    return "0.00" if s == "-0.00" else s


def module_element(x: float, y: float, pitch: float, style: ModuleStyle) -> str:
    """One SVG primitive for the module whose cell starts at (x, y)."""
    if style is ModuleStyle.DOTS:
        return (f'<circle cx="{fmt(x + pitch / 2)}" cy="{fmt(y + pitch / 2)}" '
                f'r="{fmt(DOT_RADIUS * pitch)}"/>')
    if style is ModuleStyle.ROUNDED:
        side = max(pitch - 2 * ROUNDED_INSET, 0.0)
        radius = ROUNDED_RADIUS * pitch
        return (f'<rect x="{fmt(x + ROUNDED_INSET)}" y="{fmt(y + ROUNDED_INSET)}" '
                f'width="{fmt(side)}" height="{fmt(side)}" rx="{fmt(radius)}" ry="{fmt(radius)}"/>')
    return f'<rect x="{fmt(x)}" y="{fmt(y)}" width="{fmt(pitch)}" height="{fmt(pitch)}"/>'


@trace
def emit(matrix: ModuleMatrix, config: RenderConfig) -> str:
    """Emit the SVG document for *matrix* styled by *config*."""
    matrix = ModuleMatrix.from_rows(matrix)
    size = CANONICAL_SIZE
    plan = resolve(matrix.size, size)

    out = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="{SVG_NS}" width="{size}" height="{size}" viewBox="0 0 {size} {size}">',
        f'<rect x="0" y="0" width="{size}" height="{size}" fill="{config.background}"/>',
        f'<g fill="{config.foreground}">',
    ]
    shapes = 0
    for r, c in matrix.active_cells():
        x, y = plan.cell_origin(r, c)
        out.append(module_element(x, y, plan.pitch, module_style(config, matrix, r, c)))
        shapes += 1
    out.append("</g>")
    out.append(CLOSING_TAG)

    audit("vector.emitted", logger=log,
          modules=matrix.size, pitch=round(plan.pitch, 4), style=config.style.value,
          finders=config.finder_style.value, shapes=shapes)
    return "\n".join(out)
