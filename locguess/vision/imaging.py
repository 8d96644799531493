"""
Photo payloads.

A capture keeps two encodings of the same frame:
- the full-resolution photo, shown back to the photographer
- a heavily downscaled thumbnail, small enough to ride inside a share URL

Both are JPEG data URLs.
"""

from __future__ import annotations
import base64
import io

from PIL import Image


DATA_URL_PREFIX = "data:image/jpeg;base64,"


def load_frame(image_data: bytes) -> Image.Image:
    """
    Decode uploaded image bytes into a frame.

    Raises PIL.UnidentifiedImageError (an OSError) for unreadable data.
    """
    image = Image.open(io.BytesIO(image_data))
    image.load()
    return image


def _to_data_url(image: Image.Image, quality: int) -> str:
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def encode_photo(frame: Image.Image, quality: int = 90) -> str:
    """Full-resolution JPEG data URL of the frame."""
    return _to_data_url(frame, quality)


def make_thumbnail(frame: Image.Image, max_size: int = 160, quality: int = 50) -> str:
    """Downscaled JPEG data URL fitting inside a max_size square."""
    thumb = frame.copy()
    thumb.thumbnail((max_size, max_size))
    return _to_data_url(thumb, quality)


def decode_data_url(data_url: str) -> Image.Image:
    """Inverse of encode_photo, used to inspect a shared thumbnail."""
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    return load_frame(base64.b64decode(payload))
