"""Scan verification: decode rendered codes with real-world decoders."""

import io
import time
from collections.abc import Callable
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image, ImageOps

from qrstudio.logging import audit, get_logger, trace

log = get_logger("verify")

# Extra quiet zone (as a fraction of the image edge) added before decoding,
# as if the code were printed on a page.
SCAN_PADDING = 0.10


@dataclass
class ScanResult:
    """Result of a single scan attempt."""
    success: bool
    decoded_data: str | None = None
    decode_time_ms: float = 0.0
    decoder: str = ""
    error: str | None = None


def _pad(image: Image.Image) -> Image.Image:
    rgb = image.convert("RGB")
    border = max(1, int(rgb.size[0] * SCAN_PADDING))
    return ImageOps.expand(rgb, border=border, fill=rgb.getpixel((0, 0)))


def _run(decoder: str, fn: Callable[[Image.Image], str | None], image: Image.Image) -> ScanResult:
    start = time.perf_counter()
    try:
        data = fn(_pad(image))
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        audit("scan.error", logger=log, decoder=decoder, error=str(e), time_ms=round(elapsed, 1))
        return ScanResult(success=False, decode_time_ms=elapsed, decoder=decoder, error=str(e))

    elapsed = (time.perf_counter() - start) * 1000
    if data:
        audit("scan.verified", logger=log, decoder=decoder, success=True, time_ms=round(elapsed, 1), data=data[:80])
        return ScanResult(success=True, decoded_data=data, decode_time_ms=elapsed, decoder=decoder)
    audit("scan.verified", logger=log, decoder=decoder, success=False, time_ms=round(elapsed, 1))
    return ScanResult(success=False, decode_time_ms=elapsed, decoder=decoder, error="No QR code detected")


def _decode_opencv(image: Image.Image) -> str | None:
    gray = cv2.cvtColor(np.array(image), cv2.COLOR_RGB2GRAY)
    data, _, _ = cv2.QRCodeDetector().detectAndDecode(gray)
    return data or None


def _decode_pyzbar(image: Image.Image) -> str | None:
    # needs the zbar shared library, so only imported when asked for
    from pyzbar.pyzbar import decode as pyzbar_decode

    results = pyzbar_decode(image)
    if not results:
        return None
    return results[0].data.decode("utf-8", errors="replace")


@trace
def scan_opencv(image: Image.Image) -> ScanResult:
    """Scan a QR code using OpenCV's built-in QR detector."""
    return _run("opencv", _decode_opencv, image)


@trace
def scan_pyzbar(image: Image.Image) -> ScanResult:
    """Scan a QR code using pyzbar (wraps ZBar)."""
    return _run("pyzbar/zbar", _decode_pyzbar, image)


@trace
def verify(image: Image.Image | bytes, expected_data: str | None = None) -> list[ScanResult]:
    """Run all available decoders on a rendered surface or PNG buffer.

    Args:
        image: PIL Image, or PNG bytes as produced by a raster export.
        expected_data: If provided, a decode with different content counts as failure.

    Returns:
        List of ScanResults, one per decoder.
    """
    if isinstance(image, (bytes, bytearray)):
        image = Image.open(io.BytesIO(image))
    results = []
    for scanner in (scan_pyzbar, scan_opencv):
        result = scanner(image)
        if result.success and expected_data and result.decoded_data != expected_data:
            result.success = False
            result.error = f"Data mismatch: got '{result.decoded_data}', expected '{expected_data}'"
        results.append(result)
    return results
