"""Raster renderer: module matrix -> RGB pixel surface of any square size."""

from PIL import Image, ImageDraw

from qrstudio.config import CANONICAL_SIZE, RenderConfig
from qrstudio.errors import ConfigError
from qrstudio.generator import ModuleMatrix
from qrstudio.geometry import GeometryPlan, resolve
from qrstudio.logging import audit, get_logger, trace
from qrstudio.shapes import ROUNDED_INSET, module_style, paint

log = get_logger("raster")


def draw_modules(surface: Image.Image, matrix: ModuleMatrix, config: RenderConfig, plan: GeometryPlan) -> int:
    """Paint every active module of *matrix* onto *surface*; returns the count.

    The rounded inset scales with the surface so every size matches the
    vector document geometrically.
    """
    draw = ImageDraw.Draw(surface)
    color = config.foreground_rgb
    inset = ROUNDED_INSET * plan.target_size / CANONICAL_SIZE
    painted = 0
    for r, c in matrix.active_cells():
        x, y = plan.cell_origin(r, c)
        paint(draw, x, y, plan.pitch, module_style(config, matrix, r, c), color, inset)
        painted += 1
    return painted


@trace
def render(matrix: ModuleMatrix, config: RenderConfig, target_size: int) -> Image.Image:
    """Render *matrix* onto a fresh ``target_size`` x ``target_size`` surface.

    Every size is drawn from scratch with its own pitch rather than
    resampled from another render, so edges stay sharp at any export size.
    """
    if isinstance(target_size, bool) or not isinstance(target_size, int):
        raise ConfigError(f"raster size must be a whole number of pixels, got {target_size!r}")
    matrix = ModuleMatrix.from_rows(matrix)
    plan = resolve(matrix.size, target_size)

    surface = Image.new("RGB", (target_size, target_size), config.background_rgb)
    painted = draw_modules(surface, matrix, config, plan)

    audit("raster.rendered", logger=log,
          size=f"{target_size}x{target_size}", modules=matrix.size,
          pitch=round(plan.pitch, 4), style=config.style.value, painted=painted)
    return surface
