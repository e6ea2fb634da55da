from __future__ import annotations
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Union
from io import BytesIO
import logging
import os

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError
from dotenv import load_dotenv

from ..errors import ImageDecodeError, InvalidInputError
from ..models.pixel_buffer import PixelBuffer

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, bytearray, BinaryIO, PixelBuffer]


class ImageRepository:
    """
    Handles decoding / encoding and file I/O for PixelBuffer entities.
    No segmentation logic here.
    """
    def __init__(self):
        exts = os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,bmp,webp")
        self.VALID_EXTS = {f".{ext.strip().lower().lstrip('.')}" for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def decode(source: ImageSource) -> PixelBuffer:
        """
        Decode any loadable image reference into an RGBA PixelBuffer.
        A PixelBuffer is returned as a fresh copy so callers never alias it.
        """
        if isinstance(source, PixelBuffer):
            return source.copy()

        path = None
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.is_file():
                raise ImageDecodeError(f"Image not found or unreadable: {path}")
            stream = path
        elif isinstance(source, (bytes, bytearray)):
            if not source:
                raise ImageDecodeError("Empty image payload")
            stream = BytesIO(source)
        elif hasattr(source, "read"):
            stream = source
        else:
            raise ImageDecodeError(f"Unsupported image reference: {type(source).__name__}")

        try:
            with PILImage.open(stream) as pil_image:
                rgba = np.array(pil_image.convert("RGBA"), dtype=np.uint8)
        except (UnidentifiedImageError, PILImage.DecompressionBombError, OSError, ValueError) as err:
            raise ImageDecodeError(f"Failed to load image: {err}") from err

        try:
            return PixelBuffer.from_array(rgba, path=path)
        except InvalidInputError as err:
            raise ImageDecodeError(f"Failed to load image: {err}") from err

    @staticmethod
    def encode(buffer: PixelBuffer, fmt: str = "PNG", **save_kwargs) -> bytes:
        """Encode to PNG (RGBA) or any Pillow format.  JPEG needs an RGB array, see encode_rgb."""
        out = BytesIO()
        PILImage.fromarray(buffer.samples).save(out, format=fmt, **save_kwargs)
        return out.getvalue()

    @staticmethod
    def encode_rgb(pixels: np.ndarray, fmt: str = "JPEG", **save_kwargs) -> bytes:
        out = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(
            out, format=fmt, **save_kwargs
        )
        return out.getvalue()

    @staticmethod
    def save(data: bytes, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def is_allowed(self, filename: str) -> bool:
        return Path(filename).suffix.lower() in self.VALID_EXTS

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Path]:
        """
        Yield image paths one at a time, sorted for a stable batch order.
        Decoding is left to the caller so a bad file only fails its own call.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if not p.is_file():
                continue
            if p.suffix.lower() not in allowed:
                logger.debug(f"Skipping due to extension: {p}")
                continue
            yield p

    def list_dir(self, folder: Union[str, Path], *, recursive=False, exts=None) -> List[Path]:
        return list(self.iter_dir(folder, recursive=recursive, exts=exts))
