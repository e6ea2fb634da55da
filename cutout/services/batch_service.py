from __future__ import annotations
from typing import Dict, Iterable, Tuple
import logging
import os

from dotenv import load_dotenv

from ..errors import CutoutError, InvalidInputError
from ..models.batch_item import DONE, FAILED, PENDING, PROCESSING, BatchItem, BatchSession
from ..models.segmentation_params import SegmentationStrategy
from .background_service import BackgroundService
from .segmentation_service import SegmentationService

load_dotenv()

logger = logging.getLogger(__name__)


class BatchService:
    """
    In-memory batch sessions: up to MAX_BATCH_SIZE images per session, each
    with its own background colour and its own download.
    """

    def __init__(
        self,
        segmentation_service: SegmentationService | None = None,
        background_service: BackgroundService | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        self.segmentation_service = segmentation_service or SegmentationService()
        self.background_service = background_service or BackgroundService()
        self.max_batch_size = max_batch_size or int(os.getenv("MAX_BATCH_SIZE", "10"))
        self.sessions: Dict[str, BatchSession] = {}

    # ---------- sessions ----------
    def get_or_create_session(self, session_id: str | None = None) -> BatchSession:
        if session_id and session_id in self.sessions:
            return self.sessions[session_id]
        session = BatchSession(id=session_id) if session_id else BatchSession()
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> BatchSession:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown batch session {session_id}") from None

    def clear_session(self, session_id: str) -> None:
        self.get_session(session_id)
        del self.sessions[session_id]

    # ---------- items ----------
    def add_images(self, session: BatchSession, files: Iterable[Tuple[str, bytes]]) -> list[BatchItem]:
        """Append (filename, bytes) pairs.  All-or-nothing when the batch would overflow."""
        files = list(files)
        if len(session.items) + len(files) > self.max_batch_size:
            raise InvalidInputError(
                f"Batch is limited to {self.max_batch_size} images "
                f"({len(session.items)} already selected, {len(files)} added)"
            )
        added = [
            BatchItem(filename=name, source=data, background_color=self.background_service.default_color)
            for name, data in files
        ]
        session.items.extend(added)
        logger.info(f"Session {session.id}: added {len(added)} images ({len(session.items)} total)")
        return added

    def get_item(self, session_id: str, item_id: str) -> BatchItem:
        for item in self.get_session(session_id).items:
            if item.id == item_id:
                return item
        raise KeyError(f"Unknown batch item {item_id}")

    def remove_item(self, session_id: str, item_id: str) -> None:
        session = self.get_session(session_id)
        session.items.remove(self.get_item(session_id, item_id))

    def set_background(self, session_id: str, item_id: str, color: str) -> BatchItem:
        self.background_service.parse_color(color)
        item = self.get_item(session_id, item_id)
        item.background_color = color
        return item

    # ---------- processing ----------
    def process(
        self,
        session_id: str,
        strategy: SegmentationStrategy | str = SegmentationStrategy.BORDER_COLOR_KEYING,
    ) -> BatchSession:
        """
        Process pending and failed items one after another, in list order.
        A failure is recorded on its item and does not stop the others.
        """
        strategy = SegmentationStrategy.parse(strategy)
        session = self.get_session(session_id)
        todo = [item for item in session.items if item.status in (PENDING, FAILED)]

        for i, item in enumerate(todo, 1):
            logger.info(f"Session {session_id}: processing {i}/{len(todo)} ({item.filename})")
            item.status, item.error = PROCESSING, None
            try:
                item.result = self.segmentation_service.remove_background(
                    item.source, strategy, filename=item.filename
                )
                item.status = DONE
            except CutoutError as err:
                logger.error(f"Session {session_id}: {item.filename} failed: {err}")
                item.status, item.error = FAILED, str(err)
            except Exception as err:
                logger.exception(f"Session {session_id}: unexpected error on {item.filename}")
                item.status, item.error = FAILED, f"{type(err).__name__}: {err}"
        return session

    def export_item(self, session_id: str, item_id: str, fmt: str = "png") -> bytes:
        item = self.get_item(session_id, item_id)
        if item.result is None:
            raise InvalidInputError(f"Image {item.filename} has not been processed yet")
        return self.background_service.export(item.result, fmt, item.background_color)
