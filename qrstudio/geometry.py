"""Geometry resolver: module count + target size -> per-module pitch."""

from dataclasses import dataclass

from qrstudio.errors import GeometryError

# Quiet zone in modules on every side of the matrix.
QUIET_ZONE = 2


@dataclass(frozen=True)
class GeometryPlan:
    matrix_size: int
    target_size: float
    margin: int
    total_modules: int
    pitch: float

    def cell_origin(self, row: int, col: int) -> tuple[float, float]:
        """Top-left corner of module (row, col) in target units."""
        return (col + self.margin) * self.pitch, (row + self.margin) * self.pitch


def minimum_size(matrix_size: int) -> int:
    return matrix_size + 2 * QUIET_ZONE


def resolve(matrix_size: int, target_size: float) -> GeometryPlan:
    """Compute the pitch for one render.

    Raises GeometryError when the target cannot give every module at least
    one unit, in which case modules could vanish.
    """
    minimum = minimum_size(matrix_size)
    if target_size < minimum:
        raise GeometryError(matrix_size, target_size, minimum)
    return GeometryPlan(
        matrix_size=matrix_size,
        target_size=target_size,
        margin=QUIET_ZONE,
        total_modules=minimum,
        pitch=target_size / minimum,
    )
