from io import BytesIO

import numpy as np
from PIL import Image as PILImage

WHITE = (255, 255, 255)
GREEN = (0, 255, 0)


def solid(width, height, color=WHITE) -> np.ndarray:
    """(H, W, 3) uint8 image filled with one colour."""
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:, :] = color
    return pixels


def green_square(size=100, square=20) -> np.ndarray:
    """White canvas with a centred green square."""
    pixels = solid(size, size, WHITE)
    start = (size - square) // 2
    pixels[start:start + square, start:start + square] = GREEN
    return pixels


def png_bytes(pixels: np.ndarray) -> bytes:
    out = BytesIO()
    PILImage.fromarray(pixels).save(out, format="PNG")
    return out.getvalue()
