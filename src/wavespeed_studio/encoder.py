from __future__ import annotations

import base64
import io
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import RequestValidationError
from .types import InputImage


def encode_bytes(data: bytes, mime_type: str) -> str:
    """Return ``data`` as an inline ``data:`` URI."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


ISO_IMAGE_BRANDS = {
    b"avif": "image/avif",
    b"avis": "image/avif",
    b"heic": "image/heic",
    b"heix": "image/heic",
    b"mif1": "image/heif",
    b"msf1": "image/heif",
}


def detect_mime_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data.startswith(b"GIF8"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:2] == b"BM":
        return "image/bmp"
    if data[4:8] == b"ftyp":
        # ISO base media: the major brand separates still images from video.
        return ISO_IMAGE_BRANDS.get(data[8:12], "video/mp4")
    try:
        with Image.open(io.BytesIO(data)) as image:
            mime = Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, OSError):
        mime = None
    return mime or "application/octet-stream"


def load_input_image(path: str | Path) -> InputImage:
    """Read an image file for upload, rejecting anything Pillow cannot identify."""
    file_path = Path(path)
    if not file_path.is_file():
        raise RequestValidationError(f"Image file not found: {file_path}")

    data = file_path.read_bytes()
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError) as exc:
        raise RequestValidationError(f"Please upload a valid image file: {file_path.name}") from exc

    mime_type = Image.MIME.get(image_format or "") or detect_mime_type(data)
    return InputImage(data=data, mime_type=mime_type, name=file_path.name)


def encode_file(path: str | Path) -> str:
    return load_input_image(path).data_uri
