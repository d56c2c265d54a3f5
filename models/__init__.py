"""Data models shared by the pipeline stages."""

from .ocr_line import OcrLine
from .image import ImageDecodeError, ImageSize, RawImage, PreprocessedImage
from .quality import QualityMetrics, QualityReport
from .receipt import LineItem, ParsedReceipt
from .confidence import (
    FieldName,
    FieldStatus,
    OverallStatus,
    FieldConfidence,
    OcrQuality,
    ParsingQuality,
    Completeness,
    ConfidenceReport,
)

__all__ = [
    'OcrLine',
    'ImageDecodeError',
    'ImageSize',
    'RawImage',
    'PreprocessedImage',
    'QualityMetrics',
    'QualityReport',
    'LineItem',
    'ParsedReceipt',
    'FieldName',
    'FieldStatus',
    'OverallStatus',
    'FieldConfidence',
    'OcrQuality',
    'ParsingQuality',
    'Completeness',
    'ConfidenceReport',
]
