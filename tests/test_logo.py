import asyncio
import base64
import io
import threading
import xml.etree.ElementTree as ET

import pytest
from PIL import Image

import qrstudio.logo
from conftest import logo_png, oversized_png
from qrstudio.config import RenderConfig
from qrstudio.errors import AssetError
from qrstudio.logo import (
    RenderGeneration,
    composite_raster,
    composite_vector,
    composite_when_ready,
    decode_logo,
    load_logo,
    logo_layout,
)
from qrstudio.raster import render
from qrstudio.vector import SVG_NS, emit

NS = {"svg": SVG_NS}
RED = (220, 30, 30)


def close(pixel, expected, tol=2):
    return all(abs(a - b) <= tol for a, b in zip(pixel, expected))


def test_layout_scenario():
    layout = logo_layout(400, RenderConfig(logo_size=22))
    assert layout.logo_edge == pytest.approx(88)
    assert layout.logo_x == pytest.approx(156)
    assert layout.logo_y + layout.logo_edge == pytest.approx(244)
    assert layout.padding == pytest.approx(10.56)
    assert layout.plate_edge == pytest.approx(109.12)


def test_radius_scales_with_canvas():
    cfg = RenderConfig(logo_size=0.3, logo_radius=20)
    assert logo_layout(400, cfg).plate_radius == pytest.approx(20)
    assert logo_layout(1200, cfg).plate_radius == pytest.approx(60)
    assert logo_layout(1200, cfg).clip_radius == pytest.approx(42)


def test_radius_capped_at_half_plate():
    layout = logo_layout(400, RenderConfig(logo_size=0.10, logo_radius=50))
    assert layout.plate_radius == pytest.approx(layout.plate_edge / 2)
    assert layout.clip_radius <= layout.logo_edge / 2


@pytest.mark.parametrize("canvas", [400, 800, 1200])
@pytest.mark.parametrize("ratio", [0.10, 0.15, 0.22, 0.30, 0.35])
@pytest.mark.parametrize("radius", [0, 12.5, 25, 50])
def test_plate_stays_inside_canvas(canvas, ratio, radius):
    layout = logo_layout(canvas, RenderConfig(logo_size=ratio, logo_radius=radius))
    assert layout.plate_x >= 0 and layout.plate_y >= 0
    assert layout.plate_x + layout.plate_edge <= canvas
    assert layout.plate_y + layout.plate_edge <= canvas
    assert 0 <= layout.plate_radius <= layout.plate_edge / 2


def test_decode_logo_bytes():
    img = asyncio.run(decode_logo(logo_png(size=32)))
    assert img.mode == "RGBA"
    assert img.size == (32, 32)


def test_decode_logo_passes_images_through():
    src = Image.new("RGB", (10, 10), RED)
    assert asyncio.run(decode_logo(src)).getpixel((0, 0)) == RED + (255,)


@pytest.mark.parametrize("raw", [b"not an image", b"", "logo.png"])
def test_decode_logo_failure_is_asset_error(raw):
    with pytest.raises(AssetError):
        asyncio.run(decode_logo(raw))


def test_decode_logo_rejects_decompression_bomb():
    with pytest.raises(AssetError, match="could not be decoded"):
        asyncio.run(decode_logo(oversized_png()))


def test_decode_runs_on_the_event_loop_thread(monkeypatch):
    threads = []
    decode = qrstudio.logo._decode_bytes

    def recording(raw):
        threads.append(threading.get_ident())
        return decode(raw)

    monkeypatch.setattr(qrstudio.logo, "_decode_bytes", recording)
    asyncio.run(decode_logo(logo_png()))
    assert threads == [threading.get_ident()]


def test_load_logo_swallows_asset_error():
    cfg = RenderConfig(logo=b"garbage")
    assert asyncio.run(load_logo(cfg)) is None
    assert asyncio.run(load_logo(RenderConfig())) is None


def test_composite_raster(matrix29, logo_bytes):
    cfg = RenderConfig(logo=logo_bytes, logo_size=0.22, logo_radius=10)
    base = render(matrix29, cfg, 400)
    logo = asyncio.run(decode_logo(logo_bytes))
    out = composite_raster(base, cfg, logo)
    assert out.size == (400, 400) and out.mode == "RGB"
    assert close(out.getpixel((200, 200)), RED)
    # plate padding ring is background colour
    assert out.getpixel((150, 200)) == (255, 255, 255)
    # rounded clip leaves the logo square's corner unpainted by the logo
    assert out.getpixel((156, 156)) == (255, 255, 255)
    # outside the plate the code is untouched
    assert out.getpixel((30, 30)) == base.getpixel((30, 30))
    assert not close(base.getpixel((200, 200)), RED)


def test_composite_raster_is_deterministic(matrix29, logo_bytes):
    cfg = RenderConfig(logo=logo_bytes)
    logo = asyncio.run(decode_logo(logo_bytes))
    a = composite_raster(render(matrix29, cfg, 800), cfg, logo)
    b = composite_raster(render(matrix29, cfg, 800), cfg, logo)
    assert a.tobytes() == b.tobytes()


def test_composite_vector(matrix29, logo_bytes):
    cfg = RenderConfig(logo=logo_bytes, logo_size=22, logo_radius=10, background="#fefefe")
    logo = asyncio.run(decode_logo(logo_bytes))
    doc = composite_vector(emit(matrix29, cfg), cfg, logo)
    root = ET.fromstring(doc.encode("utf-8"))

    clip = root.find("svg:defs/svg:clipPath/svg:rect", NS)
    assert clip.get("rx") == "7.00"
    assert clip.get("width") == "88.00"

    plate = [el for el in root.findall("svg:rect", NS) if el.get("rx")][0]
    assert plate.get("width") == "109.12"
    assert plate.get("x") == "145.44"
    assert plate.get("rx") == "10.00"
    assert plate.get("fill") == "#fefefe"

    image = root.find("svg:image", NS)
    assert image.get("x") == "156.00" and image.get("width") == "88.00"
    assert image.get("clip-path") == "url(#logo-clip)"
    href = image.get("href")
    assert href.startswith("data:image/png;base64,")
    embedded = Image.open(io.BytesIO(base64.b64decode(href.split(",", 1)[1])))
    assert embedded.size == (64, 64)
    # logo elements come after the module group so they sit on top
    tags = [el.tag.split("}")[1] for el in root]
    assert tags.index("image") > tags.index("g")
    assert doc.rstrip().endswith("</svg>")


def test_generation_tokens():
    gens = RenderGeneration()
    first = gens.advance()
    second = gens.advance()
    assert second > first
    assert gens.is_current(second)
    assert not gens.is_current(first)


def test_composite_when_ready_discards_stale_result(matrix29, logo_bytes):
    cfg = RenderConfig(logo=logo_bytes)
    gens = RenderGeneration()

    async def scenario():
        gate = asyncio.Event()

        async def slow_decoder(raw):
            await gate.wait()
            return await decode_logo(raw)

        token = gens.advance()
        task = asyncio.create_task(
            composite_when_ready(render(matrix29, cfg, 400), cfg, token, gens, slow_decoder)
        )
        await asyncio.sleep(0)
        gens.advance()
        gate.set()
        return await task

    assert asyncio.run(scenario()) is None


def test_composite_when_ready_without_usable_logo(matrix29):
    cfg = RenderConfig(logo=b"broken")
    gens = RenderGeneration()
    surface = render(matrix29, cfg, 400)
    result = asyncio.run(composite_when_ready(surface, cfg, gens.advance(), gens))
    assert result is surface
