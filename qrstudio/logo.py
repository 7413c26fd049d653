"""Logo compositor: decode, lay out, and overlay a logo on raster or vector output.

Both paths share :func:`logo_layout`; the raster path adds a blurred drop
shadow under the backing plate, the vector path draws shape and placement
only.
"""

import asyncio
import base64
import io
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from PIL import Image, ImageChops, ImageDraw, ImageFilter, UnidentifiedImageError

from qrstudio.config import CANONICAL_SIZE, RenderConfig
from qrstudio.errors import AssetError
from qrstudio.logging import audit, get_logger, trace
from qrstudio.vector import CLOSING_TAG, fmt

log = get_logger("logo")

PLATE_PADDING = 0.12
CLIP_RADIUS = 0.7
SHADOW_BLUR = 0.04      # of plate edge
SHADOW_OFFSET = 0.015   # of plate edge, downward
SHADOW_ALPHA = 70

LogoDecoder = Callable[[object], Awaitable[Image.Image]]


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _decode_bytes(raw: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
        return img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise AssetError(f"logo could not be decoded: {exc}") from exc


async def decode_logo(raw) -> Image.Image:
    """Decode raw logo bytes into an RGBA image.

    Decoding runs on the event loop after one suspension point; a render
    that started meanwhile still supersedes this one.

    An already-decoded PIL image is passed through (as RGBA).
    """
    if isinstance(raw, Image.Image):
        try:
            return raw.convert("RGBA")
        except (OSError, ValueError) as exc:
            raise AssetError(f"logo image could not be converted: {exc}") from exc
    if not isinstance(raw, (bytes, bytearray)) or not raw:
        raise AssetError("logo is empty or not an image")
    await asyncio.sleep(0)
    return _decode_bytes(bytes(raw))


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LogoLayout:
    canvas: float
    logo_edge: float
    logo_x: float
    logo_y: float
    padding: float
    plate_edge: float
    plate_x: float
    plate_y: float
    plate_radius: float
    clip_radius: float


def logo_layout(canvas_edge: float, config: RenderConfig) -> LogoLayout:
    """Centered logo square and its backing plate for a given canvas edge.

    ``config.logo_radius`` is in canonical units and scales with the canvas.
    """
    logo_edge = canvas_edge * config.logo_size
    padding = PLATE_PADDING * logo_edge
    plate_edge = logo_edge + 2 * padding
    logo_xy = (canvas_edge - logo_edge) / 2
    plate_xy = (canvas_edge - plate_edge) / 2

    radius = min(config.logo_radius * canvas_edge / CANONICAL_SIZE, plate_edge / 2)
    return LogoLayout(
        canvas=canvas_edge,
        logo_edge=logo_edge,
        logo_x=logo_xy,
        logo_y=logo_xy,
        padding=padding,
        plate_edge=plate_edge,
        plate_x=plate_xy,
        plate_y=plate_xy,
        plate_radius=radius,
        clip_radius=min(CLIP_RADIUS * radius, logo_edge / 2),
    )


# ---------------------------------------------------------------------------
# Raster compositing
# ---------------------------------------------------------------------------

def _rounded_mask(edge: int, radius: float) -> Image.Image:
    mask = Image.new("L", (edge, edge), 0)
    ImageDraw.Draw(mask).rounded_rectangle([0, 0, edge - 1, edge - 1], radius=round(radius), fill=255)
    return mask


@trace
def composite_raster(surface: Image.Image, config: RenderConfig, logo: Image.Image) -> Image.Image:
    """Overlay *logo* on *surface* and return the new RGB image."""
    width, height = surface.size
    layout = logo_layout(width, config)

    plate_box = [
        round(layout.plate_x),
        round(layout.plate_y),
        round(layout.plate_x + layout.plate_edge) - 1,
        round(layout.plate_y + layout.plate_edge) - 1,
    ]
    plate_radius = round(layout.plate_radius)

    # -- Soft drop shadow under the plate --------------------------------------
    offset = round(SHADOW_OFFSET * layout.plate_edge)
    shadow = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    ImageDraw.Draw(shadow).rounded_rectangle(
        [plate_box[0], plate_box[1] + offset, plate_box[2], plate_box[3] + offset],
        radius=plate_radius, fill=(0, 0, 0, SHADOW_ALPHA),
    )
    shadow = shadow.filter(ImageFilter.GaussianBlur(SHADOW_BLUR * layout.plate_edge))
    result = Image.alpha_composite(surface.convert("RGBA"), shadow)

    # -- Backing plate in the background colour ------------------------------
    ImageDraw.Draw(result).rounded_rectangle(plate_box, radius=plate_radius, fill=config.background_rgb + (255,))

    # -- Logo, stretched to the logo square and clipped to rounded corners ---
    edge = max(1, round(layout.logo_edge))
    fitted = logo.convert("RGBA").resize((edge, edge), Image.LANCZOS)
    clip = ImageChops.multiply(fitted.getchannel("A"), _rounded_mask(edge, layout.clip_radius))
    result.paste(fitted, (round(layout.logo_x), round(layout.logo_y)), clip)

    audit("logo.composited", logger=log,
          target="raster", canvas=f"{width}x{height}", logo_edge=round(layout.logo_edge, 2),
          plate_edge=round(layout.plate_edge, 2), radius=round(layout.plate_radius, 2))
    return result.convert("RGB")


# ---------------------------------------------------------------------------
# Vector compositing
# ---------------------------------------------------------------------------

def _png_data_uri(logo: Image.Image) -> str:
    buf = io.BytesIO()
    logo.convert("RGBA").save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def logo_elements(config: RenderConfig, logo: Image.Image, canvas_edge: float = CANONICAL_SIZE) -> list[str]:
    """SVG elements for the plate and the clipped logo image."""
    layout = logo_layout(canvas_edge, config)
    pr = fmt(layout.plate_radius)
    cr = fmt(layout.clip_radius)
    return [
        "<defs>",
        '<clipPath id="logo-clip">',
        f'<rect x="{fmt(layout.logo_x)}" y="{fmt(layout.logo_y)}" width="{fmt(layout.logo_edge)}" '
        f'height="{fmt(layout.logo_edge)}" rx="{cr}" ry="{cr}"/>',
        "</clipPath>",
        "</defs>",
        f'<rect x="{fmt(layout.plate_x)}" y="{fmt(layout.plate_y)}" width="{fmt(layout.plate_edge)}" '
        f'height="{fmt(layout.plate_edge)}" rx="{pr}" ry="{pr}" fill="{config.background}"/>',
        f'<image x="{fmt(layout.logo_x)}" y="{fmt(layout.logo_y)}" width="{fmt(layout.logo_edge)}" '
        f'height="{fmt(layout.logo_edge)}" preserveAspectRatio="none" clip-path="url(#logo-clip)" '
        f'href="{_png_data_uri(logo)}"/>',
    ]


@trace
def composite_vector(document: str, config: RenderConfig, logo: Image.Image) -> str:
    """Splice the logo plate and image into *document* just before ``</svg>``."""
    head, tag, tail = document.rpartition(CLOSING_TAG)
    if not tag:
        raise ValueError("document has no closing </svg> tag")
    elements = logo_elements(config, logo)
    audit("logo.composited", logger=log, target="vector", logo_size=config.logo_size)
    return head + "\n".join(elements) + "\n" + tag + tail


# ---------------------------------------------------------------------------
# Generation-aware compositing
# ---------------------------------------------------------------------------

class RenderGeneration:
    """Monotonic token source: the newest token is the only current one."""

    def __init__(self):
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def advance(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current


async def load_logo(config: RenderConfig, decoder: LogoDecoder = decode_logo) -> Image.Image | None:
    """Decode ``config.logo``; a failed decode yields None instead of an error."""
    if not config.has_logo:
        return None
    try:
        return await decoder(config.logo)
    except AssetError as exc:
        log.warning("Logo decode failed, continuing without logo: %s", exc)
        audit("logo.skipped", logger=log, reason=str(exc))
        return None


async def composite_when_ready(
    surface: Image.Image,
    config: RenderConfig,
    token: int,
    generations: RenderGeneration,
    decoder: LogoDecoder = decode_logo,
) -> Image.Image | None:
    """Await the logo decode, then composite if *token* is still current.

    Returns None when a newer render started while decoding; the surface
    unchanged when there is no usable logo.
    """
    logo = await load_logo(config, decoder)
    if not generations.is_current(token):
        audit("logo.superseded", logger=log, token=token, current=generations.current)
        return None
    if logo is None:
        return surface
    return composite_raster(surface, config, logo)
