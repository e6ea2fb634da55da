import argparse
import logging
import sys

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from ..errors import InvalidInputError
from ..models.segmentation_params import SegmentationStrategy
from ..pipeline.background_remover import DEFAULT_BG, DEFAULT_STRATEGY, OUTPUT_FORMAT, remove_backgrounds
from ..services.background_service import BackgroundService
from ..services.image_service import ImageService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cutout-batch",
        description="Remove backgrounds from every image in a folder.",
    )
    parser.add_argument("input_dir")
    parser.add_argument("output_dir")
    parser.add_argument("--strategy", default=DEFAULT_STRATEGY,
                        choices=[s.value for s in SegmentationStrategy])
    parser.add_argument("--format", dest="fmt", default=OUTPUT_FORMAT, choices=["png", "jpg", "jpeg"])
    parser.add_argument("--background", default=DEFAULT_BG, help="hex colour used for jpg output")
    parser.add_argument("--recursive", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    image_service = ImageService()

    try:
        BackgroundService.parse_color(args.background)
    except InvalidInputError as err:
        logger.error(str(err))
        return 2

    try:
        sources = list(image_service.stream_paths(args.input_dir, recursive=args.recursive))
    except NotADirectoryError:
        logger.error(f"Not a directory: {args.input_dir}")
        return 2

    logger.info(f"Found {len(sources)} images in {args.input_dir}")
    written = remove_backgrounds(
        sources,
        args.output_dir,
        strategy=args.strategy,
        fmt=args.fmt,
        color=args.background,
    )
    logger.info(f"Pipeline complete: {len(written)}/{len(sources)} images written to {args.output_dir}")
    return 0 if len(written) == len(sources) else 1


if __name__ == "__main__":
    sys.exit(main())
