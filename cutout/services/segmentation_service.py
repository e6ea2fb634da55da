from __future__ import annotations
from pathlib import Path
import asyncio
import logging

from ..models.pixel_buffer import PixelBuffer
from ..models.segmentation_params import (
    KeyingParams,
    RefinementParams,
    SegmentationStrategy,
    VignetteParams,
)
from ..repositories.edge_repository import EdgeRepository
from ..repositories.image_repository import ImageSource
from ..repositories.mask_repository import MaskRepository
from ..repositories.segmentation_repository import SegmentationRepository
from .image_service import ImageService

logger = logging.getLogger(__name__)


class SegmentationService:
    """
    Runs one image through the selected strategy, start to finish.

    Every call decodes its own PixelBuffer and each stage hands a new buffer to
    the next, so concurrent calls share nothing.  Decode failures propagate as
    ImageDecodeError; there is no retry and no partial result.
    """

    def __init__(
        self,
        repo: SegmentationRepository | None = None,
        mask_repo: MaskRepository | None = None,
        edge_repo: EdgeRepository | None = None,
        image_service: ImageService | None = None,
        keying_params: KeyingParams = KeyingParams(),
        refinement_params: RefinementParams = RefinementParams(),
        vignette_params: VignetteParams = VignetteParams(),
    ) -> None:
        self.repo = repo or SegmentationRepository()
        self.mask_repo = mask_repo or MaskRepository()
        self.edge_repo = edge_repo or EdgeRepository()
        self.image_service = image_service or ImageService()
        self.keying_params = keying_params
        self.refinement_params = refinement_params
        self.vignette_params = vignette_params

    # ---------- strategies ----------
    def _border_color_keying(self, buffer: PixelBuffer) -> PixelBuffer:
        logger.info("Step 1: Color segmentation...")
        segmented = self.repo.key_border_colors(buffer, self.keying_params)

        logger.info("Step 2: Morphological operations...")
        opened = self.mask_repo.open_mask(segmented)

        logger.info("Step 3: Edge refinement...")
        return self.mask_repo.smooth_edges(opened, self.refinement_params)

    def _radial_vignette(self, buffer: PixelBuffer) -> PixelBuffer:
        return self.repo.radial_vignette(buffer, self.vignette_params)

    def _remote(self, source: ImageSource, filename: str | None = None) -> PixelBuffer:
        if isinstance(source, PixelBuffer):
            return self.repo.retrieve_remote(self.image_service.to_png(source), filename=filename or "image.png")

        if isinstance(source, (str, Path)):
            self.image_service.load(source)
            payload, name = Path(source).read_bytes(), Path(source).name
        else:
            if isinstance(source, (bytes, bytearray)):
                payload, name = bytes(source), "image.png"
            else:
                payload, name = source.read(), getattr(source, "name", "image.png")
            # decode locally first so a bad reference fails before any upload
            self.image_service.load(payload)
        return self.repo.retrieve_remote(payload, filename=Path(str(filename or name)).name)

    # ---------- public API ----------
    def remove_background(
        self,
        source: ImageSource,
        strategy: SegmentationStrategy | str = SegmentationStrategy.BORDER_COLOR_KEYING,
        filename: str | None = None,
    ) -> PixelBuffer:
        """
        Image in → same-size RGBA PixelBuffer with the background made transparent.
        *filename* only names the upload sent to the remote service.
        """
        strategy = SegmentationStrategy.parse(strategy)

        if strategy is SegmentationStrategy.REMOTE_SERVICE:
            result = self._remote(source, filename)
        else:
            buffer = self.image_service.load(source)
            logger.info(f"Processing {buffer.width}x{buffer.height} image with {strategy.value}")
            if strategy is SegmentationStrategy.RADIAL_VIGNETTE:
                result = self._radial_vignette(buffer)
            else:
                result = self._border_color_keying(buffer)

        logger.info(f"Background removal complete ({strategy.value})")
        return result

    def remove_background_png(
        self,
        source: ImageSource,
        strategy: SegmentationStrategy | str = SegmentationStrategy.BORDER_COLOR_KEYING,
    ) -> bytes:
        return self.image_service.to_png(self.remove_background(source, strategy))

    async def remove_background_async(
        self,
        source: ImageSource,
        strategy: SegmentationStrategy | str = SegmentationStrategy.BORDER_COLOR_KEYING,
    ) -> PixelBuffer:
        """Same as remove_background, run on a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.remove_background, source, strategy)

    def detect_edges(self, source: ImageSource) -> PixelBuffer:
        """Sobel edge map.  Not part of any removal strategy; exposed for callers that want it."""
        return self.edge_repo.detect_edges(self.image_service.load(source))
