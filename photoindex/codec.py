"""
Image codec - decode, resize and WebP-encode originals.

ImageCodec is the interface the optimizer depends on; PillowCodec is the
default implementation.
"""

import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from PIL import Image

from .errors import CodecError


RESAMPLE_FILTERS = {
    'lanczos': Image.Resampling.LANCZOS,
    'bicubic': Image.Resampling.BICUBIC,
    'bilinear': Image.Resampling.BILINEAR,
    'nearest': Image.Resampling.NEAREST,
}


@dataclass
class DecodedImage:
    """A decoded original and its pixel dimensions."""
    width: int
    height: int
    image: Any


class ImageCodec(ABC):
    """Interface for image codecs used by the optimizer."""

    @abstractmethod
    def decode(self, data: bytes) -> DecodedImage:
        """Decode image bytes."""

    @abstractmethod
    def resize(self, image: Any, width: int, height: int, filter: str = 'lanczos') -> Any:
        """Return a resized copy of a decoded image."""

    @abstractmethod
    def encode_webp(self, image: Any, quality: int) -> bytes:
        """Encode a decoded image as WebP."""

    def free(self, image: Any) -> None:
        """Release resources held by an image (no-op by default)."""


class PillowCodec(ImageCodec):
    """
    Image codec backed by Pillow.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def decode(self, data: bytes) -> DecodedImage:
        """
        Decode image bytes.

        Args:
            data: Encoded original (JPEG, PNG, WebP, GIF)

        Returns:
            DecodedImage with the image in a WebP-compatible color mode

        Raises:
            CodecError: if the data is not a readable image
        """
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except Exception as e:
            raise CodecError(f"Cannot decode image: {e}") from e
        img = self._convert_color_mode(img)
        return DecodedImage(width=img.width, height=img.height, image=img)

    def resize(self, image: Image.Image, width: int, height: int, filter: str = 'lanczos') -> Image.Image:
        try:
            resample = RESAMPLE_FILTERS[filter]
        except KeyError:
            raise CodecError(f"Unknown resize filter: {filter}") from None
        try:
            return image.resize((width, height), resample)
        except Exception as e:
            raise CodecError(f"Cannot resize image to {width}x{height}: {e}") from e

    def encode_webp(self, image: Image.Image, quality: int) -> bytes:
        output = io.BytesIO()
        try:
            image.save(output, format='WEBP', quality=quality, method=4)
        except Exception as e:
            raise CodecError(f"Cannot encode WebP: {e}") from e
        return output.getvalue()

    def free(self, image: Image.Image) -> None:
        if image is not None:
            image.close()

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Convert to RGB or RGBA, the modes WebP can store."""
        if img.mode in ('RGB', 'RGBA'):
            return img
        if img.mode in ('P', 'LA', 'PA') or 'transparency' in img.info:
            converted = img.convert('RGBA')
        else:
            converted = img.convert('RGB')
        img.close()
        return converted
