from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from pdf2image import convert_from_bytes
from PIL import Image, ImageOps

from ..errors import DocumentError

LOGGER = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
RE_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)
EXTENSION_MIME = {
    ".pdf": PDF_MIME,
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".bmp": "image/bmp",
}


@dataclass(frozen=True)
class DecodedDocument:
    mime_type: str
    content: bytes

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME


def is_supported_mime(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return False
    mime_type = mime_type.lower()
    return mime_type == PDF_MIME or mime_type.startswith("image/")


def guess_mime_type(filename: Optional[str], declared: Optional[str] = None) -> Optional[str]:
    if declared and declared.lower() != "application/octet-stream":
        return declared.lower()
    if not filename or "." not in filename:
        return None
    suffix = "." + filename.rsplit(".", 1)[1].lower()
    return EXTENSION_MIME.get(suffix)


def file_to_data_uri(content: bytes, mime_type: Optional[str]) -> str:
    """Encode an uploaded file as `data:<mimetype>;base64,<payload>`."""
    if not content:
        raise DocumentError("Uploaded file is empty")
    if not is_supported_mime(mime_type):
        raise DocumentError(f"Unsupported file type: {mime_type or 'unknown'}")
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type.lower()};base64,{encoded}"


def parse_data_uri(data_uri: str) -> DecodedDocument:
    if not isinstance(data_uri, str):
        raise DocumentError("Document must be a data URI string")
    match = RE_DATA_URI.match(data_uri.strip())
    if not match:
        raise DocumentError("Document is not a base64 data URI")
    mime_type = match.group("mime").lower()
    if not is_supported_mime(mime_type):
        raise DocumentError(f"Unsupported file type: {mime_type}")
    try:
        content = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DocumentError(f"Document payload is not valid base64: {exc}") from exc
    if not content:
        raise DocumentError("Document payload is empty")
    return DecodedDocument(mime_type=mime_type, content=content)


def load_first_page(document: DecodedDocument) -> Image.Image:
    """Render the first page of a PDF, or open an image, as a PIL image."""
    if document.is_pdf:
        LOGGER.info("Rendering PDF preview (%d bytes)", len(document.content))
        pages = convert_from_bytes(document.content, dpi=100, first_page=1, last_page=1)
        if not pages:
            raise DocumentError("PDF has no pages")
        return pages[0]
    image = Image.open(BytesIO(document.content))
    # Normalize orientation/mode so the preview matches what the user sees.
    image = ImageOps.exif_transpose(image)
    if image.mode not in {"RGB", "L"}:
        image = image.convert("RGB")
    return image


def render_preview_png(document: DecodedDocument, max_size: int) -> bytes:
    image = load_first_page(document)
    image.thumbnail((max_size, max_size))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
