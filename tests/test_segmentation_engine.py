import unittest
from unittest.mock import Mock

import requests

from cutout.errors import RemoteServiceError
from cutout.models.segmentation_engine import RemoteSegmentationEngine


class TestRemoteSegmentationEngine(unittest.TestCase):
    def setUp(self) -> None:
        self.session = Mock()
        self.engine = RemoteSegmentationEngine(
            api_key="sk_test", base_url="https://example.test/v1/segment", timeout=5, session=self.session
        )

    def test_posts_multipart_with_api_key(self) -> None:
        self.session.post.return_value = Mock(ok=True, status_code=200, content=b"PNGDATA")

        self.assertEqual(self.engine.predict(b"jpegbytes", filename="cat.jpg"), b"PNGDATA")

        self.session.post.assert_called_once_with(
            "https://example.test/v1/segment",
            files={"image_file": ("cat.jpg", b"jpegbytes")},
            data={"format": "PNG"},
            headers={"X-Api-Key": "sk_test"},
            timeout=5,
        )

    def test_error_status_raises_with_body(self) -> None:
        self.session.post.return_value = Mock(ok=False, status_code=402, text="no credits left")
        with self.assertRaises(RemoteServiceError) as ctx:
            self.engine.predict(b"img")
        self.assertIn("402", str(ctx.exception))
        self.assertIn("no credits left", str(ctx.exception))

    def test_transport_error_is_wrapped(self) -> None:
        self.session.post.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(RemoteServiceError) as ctx:
            self.engine.predict(b"img")
        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)

    def test_missing_key_fails_before_request(self) -> None:
        engine = RemoteSegmentationEngine(api_key="", session=self.session)
        self.assertFalse(engine.is_configured)
        with self.assertRaises(RemoteServiceError):
            engine.predict(b"img")
        self.session.post.assert_not_called()


if __name__ == "__main__":
    unittest.main()
