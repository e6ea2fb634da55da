import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from PIL import Image as PILImage

from cutout.cli import batch_process
from cutout.cli.batch_process import build_parser, main
from cutout.pipeline.background_remover import remove_backgrounds
from cutout.repositories.segmentation_repository import SegmentationRepository
from cutout.services.segmentation_service import SegmentationService

from .helpers import green_square, png_bytes


class TestBatchPipeline(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.input_dir = self.tmp / "in"
        self.input_dir.mkdir()
        (self.input_dir / "a.png").write_bytes(png_bytes(green_square(40, 10)))
        (self.input_dir / "b.png").write_bytes(png_bytes(green_square(30, 10)))
        (self.input_dir / "broken.png").write_bytes(b"not an image")
        (self.input_dir / "notes.txt").write_text("ignored")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_remove_backgrounds_skips_failures(self) -> None:
        service = SegmentationService(repo=SegmentationRepository(engine=Mock()))
        sources = sorted(self.input_dir.glob("*.png"))
        written = remove_backgrounds(sources, self.tmp / "out", segmentation_service=service, fmt="png",
                                     strategy="border_color_keying")

        self.assertEqual([p.name for p in written], ["a.png", "b.png"])
        with PILImage.open(written[0]) as img:
            self.assertEqual(img.mode, "RGBA")
            self.assertEqual(img.size, (40, 40))

    def test_cli_writes_jpegs_and_reports_failures(self) -> None:
        out_dir = self.tmp / "out"
        code = main([str(self.input_dir), str(out_dir), "--format", "jpg", "--background", "#123456",
                     "--strategy", "border_color_keying"])

        self.assertEqual(code, 1)
        self.assertEqual(sorted(p.name for p in out_dir.iterdir()), ["a.jpg", "b.jpg"])

    def test_cli_strategy_defaults_to_configured_value(self) -> None:
        with patch.object(batch_process, "DEFAULT_STRATEGY", "radial_vignette"):
            args = build_parser().parse_args([str(self.input_dir), str(self.tmp / "out")])
        self.assertEqual(args.strategy, "radial_vignette")

    def test_cli_rejects_bad_arguments(self) -> None:
        self.assertEqual(main([str(self.tmp / "missing"), str(self.tmp / "out")]), 2)
        self.assertEqual(main([str(self.input_dir), str(self.tmp / "out"), "--background", "blue"]), 2)


if __name__ == "__main__":
    unittest.main()
