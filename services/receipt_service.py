"""
Receipt processing service.

Composes validation, preprocessing, OCR, parsing and confidence scoring for
a single receipt image.
"""

import asyncio
import dataclasses
import datetime
import functools
import logging
import time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.ocr_config import OCRConfig
from models.confidence import ConfidenceReport
from models.image import ImageDecodeError, ImageSize, PreprocessedImage, RawImage
from models.ocr_line import OcrLine
from models.quality import QualityMetrics, QualityReport
from models.receipt import ParsedReceipt
from ocr.base_ocr import OcrOptions, calculate_overall_confidence
from ocr.ocr_adapter import OcrAdapter
from services.confidence_scorer import ConfidenceScorer
from services.receipt_parser import ReceiptParser
from utils.image_preprocessor import OPERATION_ORDER, ImagePreprocessor, PreprocessingLevel
from utils.image_validator import ImageValidator, ValidationError
from utils.logging_config import log_with_context

logger = logging.getLogger(__name__)


class ProcessingOptions(BaseModel):
    """Caller options for one processing request."""

    model_config = ConfigDict(populate_by_name=True)

    preprocess: bool = True
    validate_quality: bool = Field(default=True, alias='validate')
    preprocessing_level: PreprocessingLevel = PreprocessingLevel.STANDARD
    preprocessing_overrides: Dict[str, bool] = Field(default_factory=dict)
    ocr_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator('preprocessing_overrides')
    @classmethod
    def known_operations(cls, v):
        unknown = sorted(set(v) - set(OPERATION_ORDER))
        if unknown:
            raise ValueError(f"Unknown preprocessing operation(s): {', '.join(unknown)}")
        return v

    @classmethod
    def from_config(cls, config: OCRConfig) -> 'ProcessingOptions':
        return cls(preprocessing_level=config.preprocessing_level)


class ProcessingMetadata(BaseModel):
    original_size: ImageSize
    processed_size: ImageSize
    quality: Optional[QualityReport] = None
    extraction_strategy: Optional[str] = None
    processing_time: float = 0.0


class OcrProcessingResult(BaseModel):
    """Output of the image to text stage."""

    lines: List[OcrLine] = Field(default_factory=list)
    processing_applied: List[str] = Field(default_factory=list)
    metadata: ProcessingMetadata

    @property
    def text(self) -> str:
        return '\n'.join(line.text for line in self.lines)


class ReceiptProcessingResult(BaseModel):
    """Full pipeline output."""

    ocr: OcrProcessingResult
    receipt: ParsedReceipt
    confidence: ConfidenceReport
    # Mean line confidence on a 0-100 scale
    ocr_confidence: float = Field(ge=0.0, le=100.0)


class ReceiptService:
    """
    Service for processing receipts using OCR and analysis.
    """

    def __init__(self,
                 ocr_adapter: OcrAdapter,
                 validator: Optional[ImageValidator] = None,
                 preprocessor: Optional[ImagePreprocessor] = None,
                 parser: Optional[ReceiptParser] = None,
                 scorer: Optional[ConfidenceScorer] = None,
                 default_options: Optional[ProcessingOptions] = None):
        """
        Initialize the receipt service.

        Args:
            ocr_adapter: Adapter owning the OCR worker pool
            validator: Image quality validator
            preprocessor: Image preprocessor
            parser: Receipt text parser
            scorer: Confidence scorer
            default_options: Options used when a request passes none
        """
        self.ocr_adapter = ocr_adapter
        self.validator = validator or ImageValidator()
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.parser = parser or ReceiptParser()
        self.scorer = scorer or ConfidenceScorer()
        self.default_options = default_options or ProcessingOptions()

    def process_image(self, data: bytes,
                      options: Optional[ProcessingOptions] = None) -> OcrProcessingResult:
        """
        Validate, enhance and recognize a receipt image.

        Raises:
            ValidationError: If the image cannot be decoded or fails validation
            OcrError: If recognition fails or times out
        """
        options = options or self.default_options
        start_time = time.time()
        applied = []

        try:
            image = RawImage.from_bytes(data)
        except ImageDecodeError as e:
            logger.error(f"Rejected undecodable image: {str(e)}")
            raise ValidationError(QualityReport(
                errors=[f"Failed to validate image: {str(e)}"],
                metrics=QualityMetrics(size_bytes=len(data or b''))
            )) from e

        quality = None
        if options.validate_quality:
            quality = self.validator.validate_or_fail(image)
            applied.append('validation')

        if options.preprocess:
            processed = self.preprocessor.preprocess(
                image,
                level=options.preprocessing_level,
                overrides=options.preprocessing_overrides
            )
            applied.extend(processed.operations_applied)
        else:
            processed = PreprocessedImage.unprocessed(image)

        ocr_options = self.ocr_adapter.default_options
        if options.ocr_timeout:
            ocr_options = dataclasses.replace(ocr_options, timeout=options.ocr_timeout)

        lines, strategy = self.ocr_adapter.recognize_with_details(processed, ocr_options)
        if strategy:
            applied.append(f'ocr-{strategy}')

        elapsed = time.time() - start_time
        log_with_context(logger, logging.INFO, 'Processed receipt image', {
            'lines': len(lines),
            'processing_applied': applied,
            'processing_time': round(elapsed, 3),
        })

        return OcrProcessingResult(
            lines=lines,
            processing_applied=applied,
            metadata=ProcessingMetadata(
                original_size=processed.original_size,
                processed_size=processed.processed_size,
                quality=quality,
                extraction_strategy=strategy,
                processing_time=elapsed
            )
        )

    def process_receipt(self, data: bytes,
                        options: Optional[ProcessingOptions] = None,
                        reference_date: Optional[datetime.date] = None) -> ReceiptProcessingResult:
        """
        Run the whole pipeline on one image.

        Args:
            data: Encoded image bytes
            options: Processing options
            reference_date: "Today" for the date plausibility window

        Returns:
            ReceiptProcessingResult with OCR lines, parsed receipt and confidence report
        """
        ocr_result = self.process_image(data, options)
        receipt = self.parser.parse(ocr_result.lines, reference_date=reference_date)
        report = self.scorer.score(receipt, ocr_result.lines)

        if report.recommendations:
            logger.info(f"Receipt scored {report.status.value}: {'; '.join(report.recommendations)}")

        return ReceiptProcessingResult(
            ocr=ocr_result,
            receipt=receipt,
            confidence=report,
            ocr_confidence=calculate_overall_confidence(ocr_result.lines)
        )

    async def process_receipt_async(self, data: bytes,
                                    options: Optional[ProcessingOptions] = None,
                                    reference_date: Optional[datetime.date] = None
                                    ) -> ReceiptProcessingResult:
        """Run ``process_receipt`` in the event loop's default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.process_receipt, data, options, reference_date)
        )

    def close(self):
        self.ocr_adapter.close()

    def __enter__(self) -> 'ReceiptService':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
