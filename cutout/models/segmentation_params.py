from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from ..errors import InvalidInputError


class SegmentationStrategy(str, Enum):
    """Alternative implementations of "image in, image with transparency out"."""
    BORDER_COLOR_KEYING = "border_color_keying"
    RADIAL_VIGNETTE = "radial_vignette"
    REMOTE_SERVICE = "remote_service"

    @classmethod
    def parse(cls, name: "str | SegmentationStrategy") -> "SegmentationStrategy":
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace("-", "_")
        for strategy in cls:
            if strategy.value == key:
                return strategy
        choices = ", ".join(s.value for s in cls)
        raise InvalidInputError(f"Unknown strategy {name!r}. Expected one of: {choices}")


@dataclass(frozen=True)
class KeyingParams:
    """
    Value-object for border-color keying.

    quantization_step   : bucket width per channel (32 → 8 levels)
    distance_threshold  : raw-RGB distance below which a pixel joins a background bucket
    border_color_count  : how many of the most frequent border buckets count as background
    """
    quantization_step: int = 32
    distance_threshold: float = 80.0
    border_color_count: int = 3

    def __post_init__(self) -> None:
        if not 1 <= self.quantization_step <= 256:
            raise InvalidInputError(f"quantization_step must be in [1, 256], got {self.quantization_step}")
        if self.distance_threshold < 0:
            raise InvalidInputError(f"distance_threshold must be >= 0, got {self.distance_threshold}")
        if self.border_color_count < 1:
            raise InvalidInputError(f"border_color_count must be >= 1, got {self.border_color_count}")


@dataclass(frozen=True)
class RefinementParams:
    blur_radius: int = 2  # circular Gaussian footprint, in pixels

    def __post_init__(self) -> None:
        if self.blur_radius < 0:
            raise InvalidInputError(f"blur_radius must be >= 0, got {self.blur_radius}")


@dataclass(frozen=True)
class VignetteParams:
    """
    Radial fallback geometry, distances normalised by the corner-to-center distance.
    Alpha is 255 up to inner_radius and fades to 0 over the next `falloff`.
    Pixels inside the edge_band are capped at edge_alpha_cap.
    """
    inner_radius: float = 0.6
    falloff: float = 0.4
    edge_band: int = 10
    edge_alpha_cap: int = 50

    def __post_init__(self) -> None:
        if self.inner_radius < 0:
            raise InvalidInputError(f"inner_radius must be >= 0, got {self.inner_radius}")
        if self.falloff <= 0:
            raise InvalidInputError(f"falloff must be > 0, got {self.falloff}")
        if self.edge_band < 0:
            raise InvalidInputError(f"edge_band must be >= 0, got {self.edge_band}")
        if not 0 <= self.edge_alpha_cap <= 255:
            raise InvalidInputError(f"edge_alpha_cap must be in [0, 255], got {self.edge_alpha_cap}")
