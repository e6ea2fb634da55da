# repositories/segmentation_repository.py
from __future__ import annotations
from collections import Counter
from typing import List
import logging

import numpy as np

from ..models.pixel_buffer import PixelBuffer
from ..models.segmentation_engine import RemoteSegmentationEngine
from ..models.segmentation_params import KeyingParams, VignetteParams
from .image_repository import ImageRepository

logger = logging.getLogger(__name__)


class SegmentationRepository:
    """
    One-image mask generation.

    • Border-colour keying: the dominant border buckets are background.
    • Radial vignette: geometry only, ignores pixel colour.
    • Remote: delegates to the Photoroom engine and decodes its PNG.
    """

    def __init__(self, engine: RemoteSegmentationEngine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> RemoteSegmentationEngine:
        if self._engine is None:
            self._engine = RemoteSegmentationEngine.shared()
        return self._engine

    # ---------- private helpers ----------
    @staticmethod
    def _bucket_keys(rgb: np.ndarray, step: int) -> np.ndarray:
        """Quantise each channel down to a multiple of `step` and pack as 0xRRGGBB."""
        q = (rgb.astype(np.int32) // step) * step
        return (q[:, :, 0] << 16) | (q[:, :, 1] << 8) | q[:, :, 2]

    @staticmethod
    def _unpack(key: int) -> np.ndarray:
        return np.array([(key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF], dtype=np.float64)

    @staticmethod
    def _border_indices(width: int, height: int) -> np.ndarray:
        """
        Flat pixel indices: top/bottom pairs per column, then left/right pairs per row.
        Corners appear twice.
        """
        xs = np.arange(width)
        ys = np.arange(height)
        rows = np.column_stack([xs, (height - 1) * width + xs]).ravel()
        cols = np.column_stack([ys * width, ys * width + (width - 1)]).ravel()
        return np.concatenate([rows, cols])

    def background_buckets(self, buffer: PixelBuffer, params: KeyingParams) -> List[int]:
        """Most frequent border buckets, most common first; ties keep first-seen order."""
        keys = self._bucket_keys(buffer.rgb, params.quantization_step)

        global_keys, global_counts = np.unique(keys, return_counts=True)
        logger.debug(
            f"Global histogram: {len(global_keys)} buckets, "
            f"dominant 0x{int(global_keys[np.argmax(global_counts)]):06x}"
        )

        border = keys.ravel()[self._border_indices(buffer.width, buffer.height)]
        counts = Counter(border.tolist())
        return [key for key, _ in counts.most_common(params.border_color_count)]

    # ---------- public API ----------
    def key_border_colors(self, buffer: PixelBuffer, params: KeyingParams = KeyingParams()) -> PixelBuffer:
        """
        Alpha 0 for background, 255 for everything else.  RGB is untouched.

        A pixel is background when its bucket is one of the dominant border
        buckets, or its raw RGB lies closer than params.distance_threshold to one.
        """
        background = self.background_buckets(buffer, params)
        keys = self._bucket_keys(buffer.rgb, params.quantization_step)
        rgb = buffer.rgb.astype(np.float64)

        is_background = np.isin(keys, background)
        for key in background:
            distance = np.sqrt(((rgb - self._unpack(key)) ** 2).sum(axis=2))
            is_background |= distance < params.distance_threshold

        logger.info(
            f"Border keying: {len(background)} background buckets, "
            f"{int(is_background.sum())}/{is_background.size} pixels removed"
        )
        alpha = np.where(is_background, 0, 255).astype(np.uint8)
        return buffer.with_alpha(alpha)

    @staticmethod
    def radial_vignette(buffer: PixelBuffer, params: VignetteParams = VignetteParams()) -> PixelBuffer:
        """
        Centre-weighted alpha falloff with a capped edge band.
        Demo-quality fallback, not a segmentation of the subject.
        """
        h, w = buffer.height, buffer.width
        cx, cy = w / 2, h / 2
        max_distance = np.sqrt(cx * cx + cy * cy)

        ys, xs = np.mgrid[0:h, 0:w].astype(np.float64)
        d = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / max_distance

        fade = np.maximum(0.0, 255.0 * (1.0 - (d - params.inner_radius) / params.falloff))
        alpha = np.where(d <= params.inner_radius, 255.0, fade)

        band = params.edge_band
        near_edge = (xs < band) | (xs > w - band) | (ys < band) | (ys > h - band)
        alpha = np.where(near_edge, np.minimum(alpha, params.edge_alpha_cap), alpha)

        return buffer.with_alpha(np.rint(np.clip(alpha, 0, 255)).astype(np.uint8))

    def retrieve_remote(self, image_bytes: bytes, filename: str = "image.png") -> PixelBuffer:
        """Cut-out from the remote service, decoded to RGBA."""
        png = self.engine.predict(image_bytes, filename=filename)
        return ImageRepository.decode(png)
