# repositories/edge_repository.py
import cv2
import numpy as np

from ..models.pixel_buffer import PixelBuffer


class EdgeRepository:
    """
    Sobel gradient magnitude over an unweighted RGB mean.

    The result is returned as an image: R = G = B = magnitude, A = 255.
    The outer 1-pixel ring has no full 3x3 window and stays all zero.
    """

    @staticmethod
    def _grayscale(buffer: PixelBuffer) -> np.ndarray:
        # plain channel mean, not the luma-weighted cv2.COLOR_RGB2GRAY
        return buffer.rgb.astype(np.float64).mean(axis=2)

    @staticmethod
    def gradient_magnitude(gray: np.ndarray) -> np.ndarray:
        """
        float64 (H, W) magnitude.  Only interior values are meaningful;
        border values depend on cv2's border extrapolation.
        """
        gx = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
        gy = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
        return np.sqrt(gx * gx + gy * gy)

    def detect_edges(self, buffer: PixelBuffer) -> PixelBuffer:
        h, w = buffer.height, buffer.width
        out = np.zeros((h, w, 4), dtype=np.uint8)
        if h < 3 or w < 3:
            return PixelBuffer(w, h, out)

        magnitude = self.gradient_magnitude(self._grayscale(buffer))
        # byte storage: clamp then round half to even
        interior = np.rint(np.clip(magnitude[1:-1, 1:-1], 0, 255)).astype(np.uint8)

        out[1:-1, 1:-1, 0] = interior
        out[1:-1, 1:-1, 1] = interior
        out[1:-1, 1:-1, 2] = interior
        out[1:-1, 1:-1, 3] = 255
        return PixelBuffer(w, h, out)
