# repositories/mask_repository.py
import cv2
import numpy as np

from ..models.pixel_buffer import PixelBuffer
from ..models.segmentation_params import RefinementParams


class MaskRepository:
    """
    Alpha clean-up after segmentation.

    1) Opening (3x3 erode → 3x3 dilate) drops isolated specks
    2) Circular Gaussian average of alpha → soft edge ramp
    Both leave RGB untouched and skip the outer margin their window needs.
    """

    _KERNEL_3x3 = np.ones((3, 3), np.uint8)

    @staticmethod
    def gaussian_disc(radius: int) -> np.ndarray:
        """
        Weights exp(-d²/2r²) for every offset with d <= r, zero outside the disc,
        normalised to sum 1.
        """
        offsets = np.arange(-radius, radius + 1, dtype=np.float64)
        dy, dx = np.meshgrid(offsets, offsets, indexing="ij")
        d2 = dx * dx + dy * dy
        kernel = np.where(d2 <= radius * radius, np.exp(-d2 / (2.0 * radius * radius)), 0.0)
        return kernel / kernel.sum()

    def open_mask(self, buffer: PixelBuffer) -> PixelBuffer:
        h, w = buffer.height, buffer.width
        if h < 3 or w < 3:
            return buffer.copy()

        alpha = np.ascontiguousarray(buffer.alpha)

        # interior windows never reach past the image, so cv2's border mode is irrelevant
        eroded = alpha.copy()
        eroded[1:-1, 1:-1] = cv2.erode(alpha, self._KERNEL_3x3)[1:-1, 1:-1]

        opened = eroded.copy()
        opened[1:-1, 1:-1] = cv2.dilate(eroded, self._KERNEL_3x3)[1:-1, 1:-1]

        return buffer.with_alpha(opened)

    def smooth_edges(self, buffer: PixelBuffer, params: RefinementParams = RefinementParams()) -> PixelBuffer:
        r = params.blur_radius
        h, w = buffer.height, buffer.width
        if r == 0 or h <= 2 * r or w <= 2 * r:
            return buffer.copy()

        field = buffer.alpha.astype(np.float64)
        blurred = cv2.filter2D(field, cv2.CV_64F, self.gaussian_disc(r))

        smoothed = buffer.alpha.copy()
        # round half up
        smoothed[r:-r, r:-r] = np.clip(np.floor(blurred[r:-r, r:-r] + 0.5), 0, 255).astype(np.uint8)
        return buffer.with_alpha(smoothed)
