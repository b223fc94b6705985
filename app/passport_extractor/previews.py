from __future__ import annotations

import logging
import uuid
from typing import Dict, Optional

from .config import CONFIG
from .pipeline.ingest import DecodedDocument, render_preview_png

LOGGER = logging.getLogger(__name__)


class PreviewRegistry:
    """Hands out preview ids for uploaded files until they are released.

    Every id returned by `register` must eventually be passed to `release`;
    the session does this on reset, on a new upload and on upload errors.
    """

    def __init__(self, max_size: Optional[int] = None):
        self.max_size = max_size or CONFIG.preview.max_size
        self._items: Dict[str, DecodedDocument] = {}

    def register(self, content: bytes, mime_type: Optional[str]) -> str:
        preview_id = uuid.uuid4().hex
        self._items[preview_id] = DecodedDocument(mime_type=(mime_type or "application/octet-stream"), content=content)
        LOGGER.debug("Registered preview %s (%s)", preview_id, mime_type)
        return preview_id

    def release(self, preview_id: Optional[str]) -> None:
        if preview_id and self._items.pop(preview_id, None) is not None:
            LOGGER.debug("Released preview %s", preview_id)

    def render(self, preview_id: str) -> bytes:
        document = self._items[preview_id]
        return render_preview_png(document, self.max_size)

    def __contains__(self, preview_id: object) -> bool:
        return preview_id in self._items

    def __len__(self) -> int:
        return len(self._items)
