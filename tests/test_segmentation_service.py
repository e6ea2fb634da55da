import asyncio
import tempfile
import unittest
from io import BytesIO
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
from PIL import Image as PILImage

from cutout.errors import ImageDecodeError, InvalidInputError, RemoteServiceError
from cutout.models.pixel_buffer import PixelBuffer
from cutout.models.segmentation_params import KeyingParams, SegmentationStrategy
from cutout.repositories.segmentation_repository import SegmentationRepository
from cutout.services.segmentation_service import SegmentationService

from .helpers import WHITE, green_square, png_bytes, solid


class TestBorderColorKeyingPipeline(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = Mock()
        self.service = SegmentationService(repo=SegmentationRepository(engine=self.engine))
        self.source = png_bytes(green_square(100, 20))

    def test_green_square_end_to_end(self) -> None:
        out = self.service.remove_background(self.source)

        self.assertEqual(out.size, (100, 100))
        self.assertEqual(out.pixel(50, 50), (0, 255, 0, 255))
        self.assertEqual(out.pixel(45, 45)[3], 255)
        self.assertEqual(out.pixel(5, 5)[3], 0)
        self.assertEqual(out.pixel(30, 50)[3], 0)
        # feathered edge of the square
        self.assertTrue(0 < out.pixel(40, 50)[3] < 255)
        self.engine.predict.assert_not_called()

    def test_png_output_is_lossless_rgba(self) -> None:
        data = self.service.remove_background_png(self.source)
        self.assertTrue(data.startswith(b"\x89PNG"))
        with PILImage.open(BytesIO(data)) as img:
            self.assertEqual(img.mode, "RGBA")
            self.assertEqual(img.size, (100, 100))
            decoded = np.array(img)
        np.testing.assert_array_equal(decoded, self.service.remove_background(self.source).samples)

    def test_accepts_path_file_object_and_buffer(self) -> None:
        expected = self.service.remove_background(self.source)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "square.png"
            path.write_bytes(self.source)
            self.assertEqual(self.service.remove_background(path), expected)
            self.assertEqual(self.service.remove_background(str(path)), expected)
        self.assertEqual(self.service.remove_background(BytesIO(self.source)), expected)

        buf = PixelBuffer.from_array(green_square(100, 20))
        self.assertEqual(self.service.remove_background(buf), expected)
        self.assertTrue((buf.alpha == 255).all())

    def test_custom_keying_params(self) -> None:
        strict = SegmentationService(
            repo=SegmentationRepository(engine=self.engine),
            keying_params=KeyingParams(distance_threshold=0),
        )
        pixels = solid(20, 20, WHITE)
        pixels[5:15, 5:15] = (200, 200, 200)
        self.assertEqual(strict.remove_background(png_bytes(pixels)).pixel(10, 10)[3], 255)
        self.assertEqual(self.service.remove_background(png_bytes(pixels)).pixel(10, 10)[3], 0)

    def test_decode_failures_are_terminal(self) -> None:
        with self.assertRaises(ImageDecodeError):
            self.service.remove_background(b"definitely not an image")
        with self.assertRaises(ImageDecodeError):
            self.service.remove_background(b"")
        with self.assertRaises(ImageDecodeError):
            self.service.remove_background("/no/such/image.png")

    def test_oversized_image_is_a_decode_error(self) -> None:
        with patch.object(PILImage, "MAX_IMAGE_PIXELS", 100):
            with self.assertRaises(ImageDecodeError):
                self.service.remove_background(self.source)
            with self.assertRaises(ImageDecodeError):
                self.service.remove_background(self.source, SegmentationStrategy.REMOTE_SERVICE)
        self.engine.predict.assert_not_called()

    def test_unknown_strategy(self) -> None:
        with self.assertRaises(InvalidInputError):
            self.service.remove_background(self.source, "magic")

    def test_async_matches_sync(self) -> None:
        expected = self.service.remove_background(self.source)
        result = asyncio.run(self.service.remove_background_async(self.source))
        self.assertEqual(result, expected)

    def test_async_propagates_decode_error(self) -> None:
        with self.assertRaises(ImageDecodeError):
            asyncio.run(self.service.remove_background_async(b"junk"))

    def test_detect_edges_is_separate_from_removal(self) -> None:
        edges = self.service.detect_edges(self.source)
        self.assertEqual(edges.size, (100, 100))
        self.assertEqual(edges.pixel(0, 0), (0, 0, 0, 0))
        self.assertEqual(edges.pixel(50, 50), (0, 0, 0, 255))
        self.assertGreater(edges.pixel(40, 50)[0], 0)


class TestOtherStrategies(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = Mock()
        self.service = SegmentationService(repo=SegmentationRepository(engine=self.engine))
        self.source = png_bytes(solid(200, 200, WHITE))

    def test_radial_vignette(self) -> None:
        out = self.service.remove_background(self.source, SegmentationStrategy.RADIAL_VIGNETTE)
        self.assertEqual(out.pixel(100, 100)[3], 255)
        self.assertEqual(out.pixel(5, 100)[3], 50)

    def test_remote_service(self) -> None:
        cutout = np.zeros((200, 200, 4), dtype=np.uint8)
        cutout[50:150, 50:150] = (255, 255, 255, 255)
        self.engine.predict.return_value = png_bytes(cutout)

        out = self.service.remove_background(self.source, "remote_service")

        self.engine.predict.assert_called_once()
        self.assertEqual(self.engine.predict.call_args.args[0], self.source)
        self.assertEqual(out.pixel(100, 100)[3], 255)
        self.assertEqual(out.pixel(10, 10)[3], 0)

    def test_remote_upload_uses_given_filename(self) -> None:
        self.engine.predict.return_value = png_bytes(np.zeros((200, 200, 4), dtype=np.uint8))
        self.service.remove_background(self.source, SegmentationStrategy.REMOTE_SERVICE, filename="portrait.jpg")
        self.assertEqual(self.engine.predict.call_args.kwargs["filename"], "portrait.jpg")

    def test_remote_rejects_undecodable_input_before_upload(self) -> None:
        with self.assertRaises(ImageDecodeError):
            self.service.remove_background(b"junk", SegmentationStrategy.REMOTE_SERVICE)
        self.engine.predict.assert_not_called()

    def test_remote_errors_propagate(self) -> None:
        self.engine.predict.side_effect = RemoteServiceError("Photoroom API error: 402 - no credits")
        with self.assertRaises(RemoteServiceError):
            self.service.remove_background(self.source, SegmentationStrategy.REMOTE_SERVICE)


if __name__ == "__main__":
    unittest.main()
