"""
Image quality validation for OCR.

Checks resolution, file size, sharpness, contrast and brightness. Every check
runs regardless of earlier failures so a caller sees all problems at once.
"""

import logging
from typing import Optional

from config.thresholds import ValidationThresholds, DEFAULT_VALIDATION_THRESHOLDS
from models.image import ImageDecodeError, RawImage
from models.quality import QualityMetrics, QualityReport
from utils.image_utils import (
    decode_image,
    to_grayscale,
    calculate_sharpness,
    calculate_contrast,
    calculate_brightness,
)

logger = logging.getLogger(__name__)

RETAKE_SUGGESTIONS = [
    'Use a resolution of at least 900x600 pixels',
    'Ensure good lighting without glare',
    'Hold the camera steady and focus on the receipt',
    'Flatten the receipt to avoid distortion',
]


class ValidationError(Exception):
    """Raised when an image fails the minimum quality bar."""

    def __init__(self, report: QualityReport):
        self.report = report
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        parts = ['Image validation failed:']
        parts.extend(self.report.errors)
        if self.report.warnings:
            parts.append('Warnings:')
            parts.extend(self.report.warnings)
        parts.append('Suggestions for better results:')
        parts.extend(f'- {tip}' for tip in RETAKE_SUGGESTIONS)
        return '\n'.join(parts)

    @property
    def suggestions(self):
        return list(RETAKE_SUGGESTIONS)


class ImageValidator:
    """Decides whether an image is fit for text recognition."""

    def __init__(self, thresholds: Optional[ValidationThresholds] = None):
        self.thresholds = thresholds or DEFAULT_VALIDATION_THRESHOLDS

    def validate(self, image: RawImage) -> QualityReport:
        """
        Validate a decoded image.

        Args:
            image: Image to inspect

        Returns:
            QualityReport with errors, warnings and raw metrics
        """
        cfg = self.thresholds
        errors = []
        warnings = []
        metrics = QualityMetrics(
            width=image.width,
            height=image.height,
            size_bytes=image.size_bytes,
            format=image.format
        )

        # Resolution
        if image.width < cfg.min_width or image.height < cfg.min_height:
            errors.append(
                f"Image resolution too low: {image.width}x{image.height}. "
                f"Minimum: {cfg.min_width}x{cfg.min_height}"
            )
        elif (image.width < cfg.min_width * cfg.marginal_factor
              or image.height < cfg.min_height * cfg.marginal_factor):
            warnings.append(
                f"Image resolution is marginal: {image.width}x{image.height}. "
                f"Recommended: {int(cfg.min_width * cfg.marginal_factor)}x"
                f"{int(cfg.min_height * cfg.marginal_factor)} or higher"
            )

        # File size
        size = image.size_bytes
        if size < cfg.min_file_size:
            errors.append(
                f"File size too small: {size / 1024:.2f}KB. "
                f"Minimum: {cfg.min_file_size / 1024:.2f}KB"
            )
        elif size > cfg.max_file_size:
            errors.append(
                f"File size too large: {size / 1024 / 1024:.2f}MB. "
                f"Maximum: {cfg.max_file_size / 1024 / 1024:.2f}MB"
            )

        # Pixel statistics
        try:
            gray = to_grayscale(decode_image(image.data))
        except Exception as e:
            logger.warning(f"Could not analyze image pixels: {str(e)}")
            errors.append(f"Failed to analyze image: {str(e)}")
            return QualityReport(errors=errors, warnings=warnings, metrics=metrics)

        metrics.sharpness = calculate_sharpness(gray)
        if metrics.sharpness < cfg.min_sharpness:
            errors.append(
                f"Image is too blurry (sharpness: {metrics.sharpness:.2f}). "
                f"Please use a clearer image with better focus."
            )
        elif metrics.sharpness < cfg.min_sharpness * cfg.marginal_factor:
            warnings.append(
                f"Image sharpness is marginal ({metrics.sharpness:.2f}). "
                f"Consider using a clearer image."
            )

        metrics.contrast = calculate_contrast(gray)
        if metrics.contrast < cfg.min_contrast:
            warnings.append(
                f"Image has low contrast ({metrics.contrast:.2f}). "
                f"Better lighting may improve results."
            )

        metrics.brightness = calculate_brightness(gray)
        if metrics.brightness < cfg.min_brightness:
            warnings.append(
                f"Image is too dark, under exposed (brightness: {metrics.brightness:.2f}). "
                f"Better lighting may improve results."
            )
        elif metrics.brightness > cfg.max_brightness:
            warnings.append(
                f"Image is overexposed (brightness: {metrics.brightness:.2f}). "
                f"Reduce lighting or exposure."
            )

        report = QualityReport(errors=errors, warnings=warnings, metrics=metrics)
        if report.is_valid:
            logger.debug(f"Image passed validation with {len(warnings)} warning(s)")
        else:
            logger.info(f"Image failed validation: {'; '.join(errors)}")
        return report

    def validate_bytes(self, data: bytes) -> QualityReport:
        """Decode then validate; undecodable data yields an invalid report."""
        try:
            image = RawImage.from_bytes(data)
        except ImageDecodeError as e:
            return QualityReport(
                errors=[f"Failed to validate image: {str(e)}"],
                metrics=QualityMetrics(size_bytes=len(data or b''))
            )
        return self.validate(image)

    def validate_or_fail(self, image: RawImage) -> QualityReport:
        """
        Validate and raise if the image is unusable.

        Raises:
            ValidationError: Carrying the full report when the image is invalid
        """
        report = self.validate(image)
        if not report.is_valid:
            raise ValidationError(report)

        if report.warnings:
            logger.warning(f"Image validation warnings: {'; '.join(report.warnings)}")
        return report

    def validate_image_type(self, mime_type: str) -> bool:
        """Check the upload MIME type against the supported formats."""
        return (mime_type or '').lower() in self.thresholds.supported_types
