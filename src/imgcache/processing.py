"""Image decoding and the downsampling transform applied before caching."""

from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

from imgcache.config.defaults import DEFAULT_DOWNSAMPLE_HEIGHT, DEFAULT_DOWNSAMPLE_WIDTH
from imgcache.errors.exceptions import DecodeError

logger = logging.getLogger(__name__)

# Formats Pillow can write back losslessly enough for the disk tier
_REENCODABLE = {"PNG", "JPEG", "WEBP", "GIF"}

# Modes the PNG writer accepts as-is
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


class DownsamplingProcessor:
    """Shrinks a decoded image to fit within a target box, keeping aspect ratio.

    Images already inside the box are left untouched. The identifier feeds
    into the cache key, so each target size gets its own entries.
    """

    def __init__(
        self,
        width: int = DEFAULT_DOWNSAMPLE_WIDTH,
        height: int = DEFAULT_DOWNSAMPLE_HEIGHT,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Downsampling target must be positive, got {width}x{height}")
        self.width = width
        self.height = height

    @property
    def identifier(self) -> str:
        return f"downsampling({self.width}x{self.height})"

    def process(self, image: Image.Image) -> Image.Image:
        if image.width <= self.width and image.height <= self.height:
            return image
        result = image.copy()
        result.thumbnail((self.width, self.height), Image.Resampling.LANCZOS)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DownsamplingProcessor):
            return NotImplemented
        return (self.width, self.height) == (other.width, other.height)

    def __hash__(self) -> int:
        return hash((self.width, self.height))

    def __repr__(self) -> str:
        return f"DownsamplingProcessor({self.width}, {self.height})"


def avatar_processor(size: float, scale: float = 1.0) -> DownsamplingProcessor:
    """Target used by avatar views: twice the rendered size, times screen scale."""
    side = max(1, round(size * 2 * scale))
    return DownsamplingProcessor(side, side)


def decode_image(data: bytes, locator: str | None = None) -> Image.Image:
    """Decode raw bytes into a fully loaded Pillow image."""
    if not data:
        raise DecodeError("Empty image payload", locator=locator)
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Cannot decode image: {e}", locator=locator, original=e) from e
    return image


def encode_image(image: Image.Image, format_hint: str | None = None) -> bytes:
    """Serialize an image for the disk tier, in its source format when possible."""
    fmt = (format_hint or image.format or "PNG").upper()
    if fmt not in _REENCODABLE:
        fmt = "PNG"
    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    elif fmt == "PNG" and image.mode not in _PNG_MODES:
        has_alpha = "A" in image.getbands() or "transparency" in image.info
        image = image.convert("RGBA" if has_alpha else "RGB")
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()
