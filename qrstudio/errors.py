"""Error taxonomy for the rendering and export engine."""


class QRStudioError(Exception):
    """Base class for every error raised by qrstudio."""


class ConfigError(QRStudioError, ValueError):
    """Invalid render configuration (colour, style, ratio, format, size)."""


class EncodingError(QRStudioError, ValueError):
    """Empty or unencodable input, or an absent/malformed module matrix."""


class AssetError(QRStudioError):
    """Logo image could not be decoded. Recovered locally, never fatal."""


class GeometryError(QRStudioError, ValueError):
    """Target canvas is too small to hold the matrix plus its quiet zone."""

    def __init__(self, matrix_size: int, target_size: int, minimum: int):
        self.matrix_size = matrix_size
        self.target_size = target_size
        self.minimum = minimum
        super().__init__(
            f"target size {target_size} is below the minimum {minimum} "
            f"for a {matrix_size}x{matrix_size} matrix"
        )
