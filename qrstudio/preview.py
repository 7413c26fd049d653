"""Live preview: one caller-owned slot holding the current config and surface.

Every render request advances a generation counter. A render that was
waiting on its logo decode when a newer request arrived drops its result,
so the last request always wins.
"""

from PIL import Image

from qrstudio.budget import ECCBudget, assess
from qrstudio.config import CANONICAL_SIZE, RenderConfig
from qrstudio.generator import ModuleMatrix
from qrstudio.geometry import resolve
from qrstudio.logging import audit, get_logger
from qrstudio.logo import LogoDecoder, RenderGeneration, composite_when_ready, decode_logo
from qrstudio.raster import render as render_raster

log = get_logger("preview")

PREVIEW_SIZE = CANONICAL_SIZE


class PreviewSession:
    """Holds the published preview surface for one user session."""

    def __init__(self, size: int = PREVIEW_SIZE, decoder: LogoDecoder = decode_logo,
                 config: RenderConfig | None = None):
        self.size = size
        self.config = config or RenderConfig()
        self.surface: Image.Image | None = None
        self.budget: ECCBudget | None = None
        self._decoder = decoder
        self._generations = RenderGeneration()

    @property
    def generation(self) -> int:
        return self._generations.current

    async def render(self, matrix: ModuleMatrix, config: RenderConfig) -> Image.Image | None:
        """Render and publish a preview; returns None if superseded.

        Geometry and config errors propagate before anything is drawn and
        leave the previously published surface in place.
        """
        token = self._generations.advance()
        matrix = ModuleMatrix.from_rows(matrix)
        resolve(matrix.size, self.size)

        surface = render_raster(matrix, config, self.size)
        surface = await composite_when_ready(surface, config, token, self._generations, self._decoder)
        if surface is None or not self._generations.is_current(token):
            log.debug("preview render %d superseded by %d", token, self._generations.current)
            return None

        self.config = config
        self.surface = surface
        self.budget = assess(matrix, config)
        audit("preview.published", logger=log, generation=token, style=config.style.value,
              logo=config.has_logo,
              scan_safe=None if self.budget is None else self.budget.safe)
        return surface

    async def update(self, matrix: ModuleMatrix, **changes) -> Image.Image | None:
        """Apply *changes* to the current config and re-render.

        An invalid change raises ConfigError and leaves config and surface as they were.
        """
        config = self.config.replace(**changes)
        return await self.render(matrix, config)
