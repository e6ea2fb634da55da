# pipeline/background_remover.py
from __future__ import annotations
from pathlib import Path
from typing import Iterable, List
import logging
import os

from dotenv import load_dotenv

from ..errors import CutoutError
from ..models.segmentation_params import SegmentationStrategy
from ..services.background_service import BackgroundService
from ..services.image_service import ImageService
from ..services.segmentation_service import SegmentationService

# ------------------------------------------------------------------
# env-vars
load_dotenv()
OUTPUT_FORMAT = os.getenv("OUTPUT_FORMAT", "png")
DEFAULT_BG = os.getenv("DEFAULT_BG_COLOR", "#ffffff")
DEFAULT_STRATEGY = os.getenv(
    "DEFAULT_STRATEGY",
    SegmentationStrategy.REMOTE_SERVICE.value if os.getenv("PHOTOROOM_API_KEY")
    else SegmentationStrategy.BORDER_COLOR_KEYING.value,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
def remove_backgrounds(
    sources: Iterable[Path],
    output_dir: str | Path,
    *,
    strategy: SegmentationStrategy | str = DEFAULT_STRATEGY,
    segmentation_service: SegmentationService = SegmentationService(),
    background_service: BackgroundService = BackgroundService(),
    fmt: str = OUTPUT_FORMAT,
    color: str = DEFAULT_BG,
) -> List[Path]:
    """
    For every image path in *sources*, one independent call each:
        • remove the background with *strategy*
        • export as *fmt* (jpg is flattened onto *color*)
        • write <stem>.<fmt> into *output_dir*
    Unreadable or failing images are logged and skipped.
    Returns the written paths, in input order.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    ext = "jpg" if ImageService.export_format(fmt) == "JPEG" else "png"

    written = []
    for src in sources:
        src = Path(src)
        try:
            result = segmentation_service.remove_background(src, strategy)
            data = background_service.export(result, fmt, color)
        except CutoutError as err:
            logger.error(f"Skipping {src.name}: {err}")
            continue

        out_path = background_service.image_service.save(data, output_dir / f"{src.stem}.{ext}")
        logger.info(f"Wrote {out_path}")
        written.append(out_path)

    return written
