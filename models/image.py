"""Image containers passed between the validator, preprocessor and OCR adapter."""

import io
import logging
from dataclasses import dataclass, field
from typing import List

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class ImageDecodeError(ValueError):
    """Raised when a byte buffer cannot be decoded as an image."""


@dataclass(frozen=True)
class ImageSize:
    """Width and height in pixels."""
    width: int
    height: int

    def to_dict(self) -> dict:
        return {'width': self.width, 'height': self.height}


@dataclass(frozen=True)
class RawImage:
    """
    Encoded image bytes as received from the caller.

    The buffer is never modified; the preprocessor always produces a new one.
    """
    data: bytes
    width: int
    height: int
    format: str

    @property
    def size(self) -> ImageSize:
        return ImageSize(self.width, self.height)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'RawImage':
        """
        Read the image header and build a RawImage.

        Args:
            data: Encoded image bytes (JPEG, PNG, WebP, ...)

        Returns:
            RawImage with the declared dimensions and format

        Raises:
            ImageDecodeError: If the bytes are not a readable image
        """
        if not data:
            raise ImageDecodeError("Image data is empty")

        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                fmt = (img.format or 'unknown').lower()
        except (UnidentifiedImageError, OSError) as e:
            logger.debug(f"Could not decode image header: {str(e)}")
            raise ImageDecodeError(f"Unsupported or corrupt image data: {str(e)}") from e

        return cls(data=bytes(data), width=width, height=height, format=fmt)


@dataclass(frozen=True)
class PreprocessedImage:
    """Enhanced image ready for recognition, with an audit trail of what ran."""
    data: bytes
    original_size: ImageSize
    processed_size: ImageSize
    operations_applied: List[str] = field(default_factory=list)
    format: str = 'png'

    @classmethod
    def unprocessed(cls, image: RawImage) -> 'PreprocessedImage':
        """Wrap a raw image that skips preprocessing entirely."""
        return cls(
            data=image.data,
            original_size=image.size,
            processed_size=image.size,
            operations_applied=[],
            format=image.format
        )
