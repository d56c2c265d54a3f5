"""Receipt parsing, scoring and orchestration services."""

from .receipt_parser import ReceiptParser, parse_price
from .confidence_scorer import ConfidenceScorer, meets_quality_threshold
from .receipt_service import (
    ReceiptService,
    ProcessingOptions,
    ProcessingMetadata,
    OcrProcessingResult,
    ReceiptProcessingResult,
)

__all__ = [
    'ReceiptParser',
    'parse_price',
    'ConfidenceScorer',
    'meets_quality_threshold',
    'ReceiptService',
    'ProcessingOptions',
    'ProcessingMetadata',
    'OcrProcessingResult',
    'ReceiptProcessingResult',
]
