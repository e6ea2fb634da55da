from __future__ import annotations
from pathlib import Path
from typing import Iterable, Iterator, Union
import base64
import os

import numpy as np
from dotenv import load_dotenv

from ..errors import InvalidInputError
from ..models.pixel_buffer import PixelBuffer
from ..repositories.image_repository import ImageRepository, ImageSource

# Load environment variables
load_dotenv()

EXPORT_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}
MIME_TYPES = {"PNG": "image/png", "JPEG": "image/jpeg"}


class ImageService:
    """I/O helpers.  No segmentation logic."""
    def __init__(self):
        self.JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "90"))
        self.image_repository = ImageRepository()

    def load(self, source: ImageSource) -> PixelBuffer:
        """Decode a path, bytes, file object or PixelBuffer into a fresh PixelBuffer."""
        return self.image_repository.decode(source)

    def stream_paths(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Path]:
        return self.image_repository.iter_dir(folder, recursive=recursive, exts=exts)

    def is_allowed(self, filename: str) -> bool:
        return self.image_repository.is_allowed(filename)

    def to_png(self, buffer: PixelBuffer) -> bytes:
        """Lossless, alpha-preserving encoding."""
        return self.image_repository.encode(buffer, "PNG")

    def to_data_url(self, buffer: PixelBuffer) -> str:
        """PNG as a base64 data URL for JSON responses."""
        encoded = base64.b64encode(self.to_png(buffer)).decode("utf-8")
        return f"data:image/png;base64,{encoded}"

    @staticmethod
    def export_format(fmt: str) -> str:
        """'png' / 'jpg' / 'jpeg' → Pillow format name."""
        key = (fmt or "").strip().lower().lstrip(".")
        if key not in EXPORT_FORMATS:
            raise InvalidInputError(f"Unsupported export format {fmt!r}. Use png or jpg.")
        return EXPORT_FORMATS[key]

    def encode_export(self, buffer: PixelBuffer, fmt: str, flattened: np.ndarray | None = None) -> bytes:
        """
        PNG keeps transparency unless a flattened RGB array is supplied.
        JPEG always needs the flattened array.
        """
        pil_format = self.export_format(fmt)
        if pil_format == "JPEG":
            if flattened is None:
                raise InvalidInputError("JPEG export needs a background colour to flatten onto")
            return self.image_repository.encode_rgb(flattened, "JPEG", quality=self.JPEG_QUALITY)
        if flattened is not None:
            return self.image_repository.encode_rgb(flattened, "PNG")
        return self.to_png(buffer)

    def save(self, data: bytes, path: Union[str, Path]) -> Path:
        return self.image_repository.save(data, path)
