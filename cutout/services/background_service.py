from __future__ import annotations
from typing import Tuple
import os
import re

import numpy as np
from dotenv import load_dotenv

from ..errors import InvalidInputError
from ..models.pixel_buffer import PixelBuffer
from .image_service import ImageService

load_dotenv()

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class BackgroundService:
    """
    Business-level helper for putting a cut-out onto a solid background.

    • preview()  → PNG of the composite, for display.
    • export()   → download bytes; PNG keeps transparency, JPEG is flattened.
    """

    def __init__(self, image_service: ImageService | None = None):
        self.image_service = image_service or ImageService()
        self.default_color = os.getenv("DEFAULT_BG_COLOR", "#ffffff")

    @staticmethod
    def parse_color(color: str) -> Tuple[int, int, int]:
        """'#rgb', '#rrggbb' or 'rrggbb' → (r, g, b)."""
        match = _HEX_COLOR.match((color or "").strip())
        if not match:
            raise InvalidInputError(f"Invalid colour {color!r}. Expected #rrggbb.")
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)

    @staticmethod
    def _compose(fg: np.ndarray, alpha_u8: np.ndarray, bg: np.ndarray) -> np.ndarray:
        """Source-over blend of fg onto bg using alpha_u8."""
        alpha = alpha_u8.astype("float32")[:, :, None] / 255.0
        return (fg.astype("float32") * alpha +
                bg.astype("float32") * (1.0 - alpha) + 0.5).astype("uint8")

    def composite(self, buffer: PixelBuffer, color: str | None = None) -> np.ndarray:
        """(H, W, 3) uint8 RGB of the cut-out over a solid colour."""
        rgb = self.parse_color(color or self.default_color)
        bg = np.empty((buffer.height, buffer.width, 3), dtype=np.uint8)
        bg[:, :] = rgb
        return self._compose(buffer.rgb, buffer.alpha, bg)

    def preview(self, buffer: PixelBuffer, color: str | None = None) -> bytes:
        return self.image_service.encode_export(buffer, "png", self.composite(buffer, color))

    def export(self, buffer: PixelBuffer, fmt: str = "png", color: str | None = None) -> bytes:
        """
        png  → transparent PNG, colour ignored
        jpg  → flattened over `color` (default background colour when None)
        """
        if self.image_service.export_format(fmt) == "PNG":
            return self.image_service.encode_export(buffer, fmt)
        return self.image_service.encode_export(buffer, fmt, self.composite(buffer, color))
