"""Render configuration: immutable, validated values passed into every render."""

import dataclasses
import re
from dataclasses import dataclass, field
from enum import Enum

import qrcode.constants
from PIL import Image

from qrstudio.errors import ConfigError
from qrstudio.logging import get_logger

log = get_logger("config")

# Logical edge of the vector document and of the live preview surface.
CANONICAL_SIZE = 400

LOGO_SIZE_MIN = 0.10
LOGO_SIZE_MAX = 0.35
LOGO_RADIUS_MIN = 0.0
LOGO_RADIUS_MAX = 50.0

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")


class ModuleStyle(Enum):
    SQUARES = "squares"
    DOTS = "dots"
    ROUNDED = "rounded"


class FinderStyle(Enum):
    MATCH = "match"  # finder modules take the module style
    SQUARE = "square"  # finder modules always solid squares


class ECCLevel(Enum):
    L = qrcode.constants.ERROR_CORRECT_L  # 7%
    M = qrcode.constants.ERROR_CORRECT_M  # 15%
    Q = qrcode.constants.ERROR_CORRECT_Q  # 25%
    H = qrcode.constants.ERROR_CORRECT_H  # 30%


ECC_NAMES = {"L": ECCLevel.L, "M": ECCLevel.M, "Q": ECCLevel.Q, "H": ECCLevel.H}


def parse_hex_color(value: str) -> str:
    """Normalise ``#RRGGBB`` / ``RRGGBB`` to lowercase ``#rrggbb``."""
    match = _HEX_COLOR.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ConfigError(f"invalid colour {value!r}: expected 6-digit hex such as '#1a2b3c'")
    return "#" + match.group(1).lower()


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    s = value.lstrip("#")
    return tuple(int(s[i : i + 2], 16) for i in (0, 2, 4))


def _linearize(channel: int) -> float:
    """Convert sRGB channel (0-255) to linear light value."""
    c = channel / 255.0
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def _luminance(rgb: tuple[int, int, int]) -> float:
    r, g, b = [_linearize(ch) for ch in rgb]
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def check_contrast(fg: tuple[int, ...], bg: tuple[int, ...]) -> float:
    """WCAG contrast ratio between two RGB colours (1.0 - 21.0)."""
    l1 = _luminance(fg[:3])
    l2 = _luminance(bg[:3])
    if l1 < l2:
        l1, l2 = l2, l1
    return (l1 + 0.05) / (l2 + 0.05)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _number(name: str, value) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def coerce_enum(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip()
        if enum_cls is ECCLevel and key.upper() in ECC_NAMES:
            return ECC_NAMES[key.upper()]
        for member in enum_cls:
            if member.value == key.lower():
                return member
    choices = ", ".join(m.name if enum_cls is ECCLevel else m.value for m in enum_cls)
    raise ConfigError(f"invalid {name} {value!r}: expected one of {choices}")


@dataclass(frozen=True)
class RenderConfig:
    """Everything a render needs besides the matrix.

    ``logo_size`` is a fraction of the canvas edge; values above 1 are read
    as percentages. ``logo_radius`` is expressed in canonical 400-unit
    pixels and scaled with the canvas. Both are clamped to their bounds.

    ``finder_style`` decides whether the three 7x7 finder patterns follow
    ``style`` module by module or are always drawn as solid squares, which
    keeps dotted and rounded codes detectable by line-scanning decoders.
    """

    foreground: str = "#000000"
    background: str = "#ffffff"
    style: ModuleStyle = ModuleStyle.SQUARES
    finder_style: FinderStyle = FinderStyle.MATCH
    ecc: ECCLevel = ECCLevel.M
    logo: bytes | Image.Image | None = field(default=None, repr=False, compare=False)
    logo_size: float = 0.20
    logo_radius: float = 12.0

    def __post_init__(self):
        set_ = object.__setattr__
        set_(self, "foreground", parse_hex_color(self.foreground))
        set_(self, "background", parse_hex_color(self.background))
        set_(self, "style", coerce_enum(ModuleStyle, self.style, "style"))
        set_(self, "finder_style", coerce_enum(FinderStyle, self.finder_style, "finder style"))
        set_(self, "ecc", coerce_enum(ECCLevel, self.ecc, "error-correction level"))

        if self.logo is not None and not isinstance(self.logo, (bytes, bytearray, Image.Image)):
            raise ConfigError(f"logo must be raw bytes or a PIL image, got {type(self.logo).__name__}")
        if isinstance(self.logo, bytearray):
            set_(self, "logo", bytes(self.logo))

        ratio = _number("logo_size", self.logo_size)
        if ratio > 1:
            ratio /= 100.0
        set_(self, "logo_size", _clamp(ratio, LOGO_SIZE_MIN, LOGO_SIZE_MAX))
        set_(self, "logo_radius",
             _clamp(_number("logo_radius", self.logo_radius), LOGO_RADIUS_MIN, LOGO_RADIUS_MAX))

        contrast = check_contrast(self.foreground_rgb, self.background_rgb)
        if contrast < 4.5:
            log.warning("Contrast ratio %.1f:1 between %s and %s is below 4.5:1, scannability at risk",
                        contrast, self.foreground, self.background)

    @property
    def foreground_rgb(self) -> tuple[int, int, int]:
        return hex_to_rgb(self.foreground)

    @property
    def background_rgb(self) -> tuple[int, int, int]:
        return hex_to_rgb(self.background)

    @property
    def has_logo(self) -> bool:
        return self.logo is not None and (not isinstance(self.logo, bytes) or len(self.logo) > 0)

    def replace(self, **changes) -> "RenderConfig":
        """Return a new validated config with *changes* applied."""
        unknown = set(changes) - {f.name for f in dataclasses.fields(self)}
        if unknown:
            raise ConfigError(f"unknown config field(s): {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **changes)
