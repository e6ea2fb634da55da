from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple
import numpy as np

from ..errors import InvalidInputError


@dataclass(eq=False)
class PixelBuffer:
    """
    Simple data object: RGBA samples (+ optional source path for bookkeeping).

    `samples` is always a contiguous uint8 array shaped (height, width, 4),
    row-major, channel order R, G, B, A.  A flat byte sequence of length
    width*height*4 is accepted and reshaped on construction.
    """
    width: int
    height: int
    samples: np.ndarray = field(repr=False)
    path: Path | None = None  # Source of the image, if it came from disk.

    def __post_init__(self) -> None:
        if not isinstance(self.width, (int, np.integer)) or self.width <= 0:
            raise InvalidInputError(f"width must be a positive integer, got {self.width!r}")
        if not isinstance(self.height, (int, np.integer)) or self.height <= 0:
            raise InvalidInputError(f"height must be a positive integer, got {self.height!r}")
        self.width, self.height = int(self.width), int(self.height)

        if isinstance(self.samples, (bytes, bytearray, memoryview)):
            arr = np.frombuffer(bytes(self.samples), dtype=np.uint8)
        else:
            arr = np.asarray(self.samples)
        expected = self.width * self.height * 4
        if arr.size != expected:
            raise InvalidInputError(
                f"expected {expected} samples for {self.width}x{self.height} RGBA, got {arr.size}"
            )
        self.samples = np.ascontiguousarray(
            arr.reshape(self.height, self.width, 4), dtype=np.uint8
        )

    # ---------- constructors ----------
    @classmethod
    def from_array(cls, pixels: np.ndarray, path: Path | None = None) -> "PixelBuffer":
        """Build from an (H, W), (H, W, 3) or (H, W, 4) uint8 array.  Missing alpha is opaque."""
        pixels = np.asarray(pixels)
        if pixels.ndim == 2:
            pixels = np.repeat(pixels[:, :, None], 3, axis=2)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise InvalidInputError(f"unsupported pixel array shape {pixels.shape}")

        h, w = pixels.shape[:2]
        if h == 0 or w == 0:
            raise InvalidInputError(f"image must not be empty, got {w}x{h}")
        if pixels.shape[2] == 3:
            alpha = np.full((h, w, 1), 255, dtype=np.uint8)
            pixels = np.concatenate([pixels.astype(np.uint8), alpha], axis=2)
        return cls(width=w, height=h, samples=pixels, path=path)

    @classmethod
    def blank(cls, width: int, height: int) -> "PixelBuffer":
        """All-zero (transparent black) buffer."""
        if width <= 0 or height <= 0:
            raise InvalidInputError(f"image must not be empty, got {width}x{height}")
        return cls(width=width, height=height,
                   samples=np.zeros((height, width, 4), dtype=np.uint8))

    # ---------- views ----------
    @property
    def rgb(self) -> np.ndarray:
        return self.samples[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.samples[:, :, 3]

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    # ---------- copies ----------
    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, self.samples.copy(), self.path)

    def with_alpha(self, alpha: np.ndarray) -> "PixelBuffer":
        """New buffer with this buffer's RGB and the given (H, W) alpha field."""
        alpha = np.asarray(alpha)
        if alpha.shape != (self.height, self.width):
            raise InvalidInputError(
                f"alpha shape {alpha.shape} does not match image {self.height}x{self.width}"
            )
        out = self.samples.copy()
        out[:, :, 3] = np.clip(alpha, 0, 255)
        return PixelBuffer(self.width, self.height, out, self.path)

    # ---------- bounds-checked accessors ----------
    def _check_bounds(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} image")

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        self._check_bounds(x, y)
        r, g, b, a = self.samples[y, x]
        return int(r), int(g), int(b), int(a)

    def set_pixel(self, x: int, y: int, rgba: Tuple[int, int, int, int]) -> None:
        """Mutates in place.  Only use on a buffer obtained from copy()."""
        self._check_bounds(x, y)
        self.samples[y, x] = np.clip(np.asarray(rgba), 0, 255)

    def tobytes(self) -> bytes:
        return self.samples.tobytes()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.samples, other.samples)
