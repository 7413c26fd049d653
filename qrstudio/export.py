"""Export coordinator: configuration + matrix -> PNG or SVG byte buffer."""

import asyncio
import io
from enum import Enum
from pathlib import Path

from qrstudio.budget import ECCBudget, assess
from qrstudio.config import CANONICAL_SIZE, RenderConfig
from qrstudio.errors import ConfigError, EncodingError
from qrstudio.generator import ModuleMatrix
from qrstudio.logging import audit, get_logger, trace
from qrstudio.logo import LogoDecoder, composite_raster, composite_vector, decode_logo, load_logo
from qrstudio.raster import render as render_raster
from qrstudio.vector import emit

log = get_logger("export")

EXPORT_SIZES = (400, 800, 1200)
FILENAME_STEM = "qr-code"


class ExportFormat(Enum):
    PNG = "png"
    SVG = "svg"


_FORMAT_ALIASES = {
    "png": ExportFormat.PNG,
    "raster": ExportFormat.PNG,
    "svg": ExportFormat.SVG,
    "vector": ExportFormat.SVG,
}


def parse_format(fmt: ExportFormat | str) -> ExportFormat:
    if isinstance(fmt, ExportFormat):
        return fmt
    try:
        return _FORMAT_ALIASES[str(fmt).strip().lower()]
    except KeyError:
        raise ConfigError(f"unsupported export format {fmt!r}: expected png or svg") from None


def export_filename(fmt: ExportFormat | str, size: int | None = None) -> str:
    """Filename hint handed to the file-save step."""
    fmt = parse_format(fmt)
    if fmt is ExportFormat.SVG or size is None:
        return f"{FILENAME_STEM}.{fmt.value}"
    return f"{FILENAME_STEM}-{size}.{fmt.value}"


def scan_budget(matrix: ModuleMatrix, config: RenderConfig, logo) -> ECCBudget | None:
    """Budget for what was actually drawn; a logo that failed to decode covers nothing."""
    return assess(matrix, config, with_logo=logo is not None)


def _check_inputs(matrix, config) -> ModuleMatrix:
    if not isinstance(config, RenderConfig):
        raise ConfigError(f"expected a RenderConfig, got {type(config).__name__}")
    if matrix is None:
        raise EncodingError("nothing to export: module matrix is absent")
    return ModuleMatrix.from_rows(matrix)


@trace
async def export(
    matrix: ModuleMatrix,
    config: RenderConfig,
    fmt: ExportFormat | str,
    size: int | None = None,
    decoder: LogoDecoder = decode_logo,
) -> bytes:
    """Produce the final byte buffer for one export request.

    PNG requires *size* and is rendered fresh at that size. SVG ignores
    *size* and is always emitted at the canonical size. A logo that fails
    to decode is left out rather than failing the export. When the result
    may not scan (see :func:`qrstudio.budget.assess`) a warning is logged
    but the export still completes.
    """
    fmt = parse_format(fmt)
    matrix = _check_inputs(matrix, config)

    if fmt is ExportFormat.PNG:
        if size is None:
            raise ConfigError("raster export requires a size")
        surface = render_raster(matrix, config, size)
        logo = await load_logo(config, decoder)
        if logo is not None:
            surface = composite_raster(surface, config, logo)
        buf = io.BytesIO()
        surface.save(buf, format="PNG")
        data = buf.getvalue()
    else:
        document = emit(matrix, config)
        logo = await load_logo(config, decoder)
        if logo is not None:
            document = composite_vector(document, config, logo)
        data = document.encode("utf-8")
        size = CANONICAL_SIZE

    budget = scan_budget(matrix, config, logo)

    audit("export.done", logger=log,
          format=fmt.value, size=size, bytes=len(data),
          style=config.style.value, logo=logo is not None,
          scan_safe=None if budget is None else budget.safe)
    return data


def export_sync(matrix: ModuleMatrix, config: RenderConfig, fmt: ExportFormat | str,
                size: int | None = None) -> bytes:
    """Blocking wrapper around :func:`export` for scripts and the CLI."""
    return asyncio.run(export(matrix, config, fmt, size))


def save_export(data: bytes, path: str | Path) -> Path:
    """Write an export buffer to *path*, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    audit("export.saved", logger=log, path=str(path), bytes=len(data))
    return path
