from __future__ import annotations
from dataclasses import dataclass, field
from typing import List
import uuid

from .pixel_buffer import PixelBuffer

PENDING = "pending"
PROCESSING = "processing"
DONE = "done"
FAILED = "failed"


@dataclass
class BatchItem:
    """
    One uploaded image inside a batch, with its own background colour.
    `result` stays None until the item has been processed successfully.
    """
    filename: str
    source: bytes = field(repr=False)
    background_color: str = "#ffffff"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    result: PixelBuffer | None = field(default=None, repr=False)
    status: str = PENDING
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "background_color": self.background_color,
            "status": self.status,
            "error": self.error,
            "width": self.result.width if self.result else None,
            "height": self.result.height if self.result else None,
        }


@dataclass
class BatchSession:
    """Ordered list of batch items owned by one client."""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    items: List[BatchItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session_id": self.id,
            "count": len(self.items),
            "completed": sum(1 for item in self.items if item.status == DONE),
            "items": [item.to_dict() for item in self.items],
        }
