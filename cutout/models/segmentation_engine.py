# models/segmentation_engine.py
"""
Thin client around the Photoroom segmentation endpoint.

• One requests.Session per engine, shared process-wide through .shared().
• Exposes .predict(image_bytes)  →  PNG bytes with a transparent background.
"""
from __future__ import annotations
import logging
import os
from typing import Optional

import requests
from dotenv import load_dotenv

from ..errors import RemoteServiceError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://sdk.photoroom.com/v1/segment"


class RemoteSegmentationEngine:
    _instance: Optional["RemoteSegmentationEngine"] = None

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("PHOTOROOM_API_KEY", "")
        self.base_url = base_url or os.getenv("PHOTOROOM_API_URL", DEFAULT_API_URL)
        self.timeout = timeout if timeout is not None else float(os.getenv("REMOTE_TIMEOUT_S", "60"))
        self.session = session or requests.Session()

    @classmethod
    def shared(cls) -> "RemoteSegmentationEngine":
        """Process-wide engine configured from the environment."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    # --------------------------------------------------
    def predict(self, image_bytes: bytes, filename: str = "image.png") -> bytes:
        """
        Args
        ----
        image_bytes : encoded source image (any format the service accepts)

        Returns
        -------
        PNG bytes, same dimensions, background made transparent.
        """
        if not self.is_configured:
            raise RemoteServiceError("Photoroom API key is not configured (set PHOTOROOM_API_KEY)")

        logger.info(f"Uploading {len(image_bytes)} bytes to {self.base_url}")
        try:
            response = self.session.post(
                self.base_url,
                files={"image_file": (filename, image_bytes)},
                data={"format": "PNG"},
                headers={"X-Api-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as err:
            logger.error(f"Photoroom API request failed: {err}")
            raise RemoteServiceError("Failed to process image with Photoroom API") from err

        if not response.ok:
            raise RemoteServiceError(f"Photoroom API error: {response.status_code} - {response.text}")

        return response.content
