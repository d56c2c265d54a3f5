"""Image preprocessing module for OCR optimization."""

import os
import cv2
import numpy as np
import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, Mapping, Optional, Union

from config.thresholds import PreprocessingSettings, DEFAULT_PREPROCESSING_SETTINGS
from models.image import ImageSize, PreprocessedImage, RawImage
from utils.image_utils import (
    decode_image,
    encode_png,
    to_grayscale,
    resize_to_width,
    get_skew_angle,
    deskew,
    image_size,
)

logger = logging.getLogger(__name__)


class PreprocessingLevel(str, Enum):
    """How much enhancement to apply before OCR."""
    QUICK = "quick"
    STANDARD = "standard"
    FULL = "full"


# Fixed execution order
OPERATION_ORDER = ('grayscale', 'resize', 'denoise', 'clahe', 'normalize', 'sharpen', 'deskew')

LEVEL_OPERATIONS: Dict[PreprocessingLevel, FrozenSet[str]] = {
    PreprocessingLevel.QUICK: frozenset({'grayscale', 'normalize'}),
    PreprocessingLevel.STANDARD: frozenset({'grayscale', 'resize', 'denoise', 'clahe',
                                            'normalize', 'sharpen'}),
    PreprocessingLevel.FULL: frozenset(OPERATION_ORDER),
}

SHARPEN_KERNEL = np.array([[0, -1, 0],
                           [-1, 5, -1],
                           [0, -1, 0]], dtype=np.float32)


class PreprocessError(Exception):
    """A single enhancement operation failed."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class ImagePreprocessor:
    """Class for preprocessing images before OCR."""

    def __init__(self, settings: Optional[PreprocessingSettings] = None,
                 debug_mode: bool = False, debug_output_dir: str = 'debug_output'):
        """
        Initialize the image preprocessor.

        Args:
            settings: Operation parameters
            debug_mode: Whether to save intermediate processing steps
            debug_output_dir: Directory to save debug output
        """
        self.settings = settings or DEFAULT_PREPROCESSING_SETTINGS
        self.debug_mode = debug_mode
        self.debug_output_dir = debug_output_dir

        self._operations: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
            'grayscale': self.grayscale,
            'resize': self.resize,
            'denoise': self.denoise,
            'clahe': self.enhance_contrast,
            'normalize': self.normalize,
            'sharpen': self.sharpen,
            'deskew': self.deskew,
        }

        if debug_mode:
            os.makedirs(debug_output_dir, exist_ok=True)

    @staticmethod
    def operations_for(level: Union[str, PreprocessingLevel],
                       overrides: Optional[Mapping[str, bool]] = None) -> FrozenSet[str]:
        """
        Resolve which operations run for a level after applying overrides.

        Raises:
            ValueError: For an unknown level or operation name
        """
        enabled = set(LEVEL_OPERATIONS[PreprocessingLevel(level)])
        for name, flag in (overrides or {}).items():
            if name not in OPERATION_ORDER:
                raise ValueError(f"Unknown preprocessing operation: {name}")
            if flag:
                enabled.add(name)
            else:
                enabled.discard(name)
        return frozenset(enabled)

    def preprocess(self, image: RawImage,
                   level: Union[str, PreprocessingLevel] = PreprocessingLevel.STANDARD,
                   overrides: Optional[Mapping[str, bool]] = None) -> PreprocessedImage:
        """
        Preprocess an image for better OCR results.

        A failing operation is skipped and left out of ``operations_applied``;
        this method never raises because of image content.

        Args:
            image: Raw image to enhance
            level: quick, standard or full
            overrides: Operation name -> enabled flag

        Returns:
            PreprocessedImage with a new PNG buffer and the audit trail
        """
        enabled = self.operations_for(level, overrides)

        try:
            img = decode_image(image.data)
        except Exception as e:
            logger.error(f"Cannot decode image for preprocessing, using original: {str(e)}")
            return PreprocessedImage.unprocessed(image)

        original_size = ImageSize(*image_size(img))
        applied = []

        if self.debug_mode:
            self._save_debug_image(img, '00_original.png')

        for name in OPERATION_ORDER:
            if name not in enabled:
                continue
            try:
                img = self._apply(name, img)
            except PreprocessError as e:
                logger.warning(f"Skipping preprocessing step: {str(e)}")
                continue

            applied.append(name)
            if self.debug_mode:
                self._save_debug_image(img, f'{len(applied):02d}_{name}.png')

        try:
            data = encode_png(img)
        except Exception as e:
            logger.error(f"Cannot encode preprocessed image, using original: {str(e)}")
            return PreprocessedImage.unprocessed(image)

        logger.debug(f"Preprocessing ({PreprocessingLevel(level).value}) applied: {', '.join(applied)}")

        return PreprocessedImage(
            data=data,
            original_size=original_size,
            processed_size=ImageSize(*image_size(img)),
            operations_applied=applied,
            format='png'
        )

    def _apply(self, name: str, img: np.ndarray) -> np.ndarray:
        """Run one operation, converting any failure into PreprocessError."""
        try:
            result = self._operations[name](img)
        except PreprocessError:
            raise
        except Exception as e:
            raise PreprocessError(name, str(e)) from e

        if result is None or result.size == 0:
            raise PreprocessError(name, "operation produced an empty image")
        return result

    def grayscale(self, img: np.ndarray) -> np.ndarray:
        """Convert to a single channel."""
        return to_grayscale(img)

    def resize(self, img: np.ndarray) -> np.ndarray:
        """
        Bring the width into the range Tesseract reads best.

        Very wide photos are scaled down to the target width, narrow ones
        scaled up to the minimum width. Aspect ratio is preserved.
        """
        width, _ = image_size(img)
        if width > self.settings.max_width:
            return resize_to_width(img, self.settings.target_width)
        if width < self.settings.min_width:
            return resize_to_width(img, self.settings.min_width)
        return img

    def denoise(self, img: np.ndarray) -> np.ndarray:
        """Median filter to remove speckle noise."""
        return cv2.medianBlur(img, self.settings.median_kernel)

    def enhance_contrast(self, img: np.ndarray) -> np.ndarray:
        """
        Enhance image contrast using CLAHE.

        Color images are equalized on the L channel of LAB space.
        """
        clahe = cv2.createCLAHE(clipLimit=self.settings.clahe_clip_limit,
                                tileGridSize=self.settings.clahe_tile_grid)
        if img.ndim == 2:
            return clahe.apply(img)

        # Convert to LAB color space
        lab = cv2.cvtColor(img, cv2.COLOR_BGR2LAB)

        # Apply CLAHE to L channel
        l, a, b = cv2.split(lab)
        cl = clahe.apply(l)

        return cv2.cvtColor(cv2.merge((cl, a, b)), cv2.COLOR_LAB2BGR)

    def normalize(self, img: np.ndarray) -> np.ndarray:
        """Stretch intensities to the full 0-255 range."""
        low, high = int(img.min()), int(img.max())
        if low == high or (low == 0 and high == 255):
            return img
        return cv2.normalize(img, None, 0, 255, cv2.NORM_MINMAX)

    def sharpen(self, img: np.ndarray) -> np.ndarray:
        """Edge enhancement for glyph outlines."""
        return cv2.filter2D(img, -1, SHARPEN_KERNEL)

    def deskew(self, img: np.ndarray) -> np.ndarray:
        """Estimate the text rotation and counter-rotate."""
        angle = get_skew_angle(img, max_angle=self.settings.deskew_max_angle)
        if angle is None or abs(angle) < self.settings.deskew_min_angle:
            return img

        logger.debug(f"Deskewing image by {angle:.2f} degrees")
        return deskew(img, angle)

    def _save_debug_image(self, image: np.ndarray, filename: str):
        """Save an intermediate processing step image for debugging."""
        try:
            path = os.path.join(self.debug_output_dir, filename)
            cv2.imwrite(path, image)
            logger.debug(f"Saved debug image: {path}")
        except Exception as e:
            logger.error(f"Error saving debug image: {str(e)}")
