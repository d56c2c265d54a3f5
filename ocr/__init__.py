"""OCR engine package."""

from typing import Optional

from config.ocr_config import OCRConfig
from .base_ocr import (
    BaseOCR,
    EngineLine,
    EngineOutput,
    EngineWord,
    OcrError,
    OcrLine,
    OcrOptions,
    OCREngineType,
    calculate_overall_confidence,
)
from .extraction import (
    ExtractionStrategy,
    NativeLineStrategy,
    WordGroupingStrategy,
    RawTextStrategy,
    DEFAULT_STRATEGIES,
)
from .tesseract_ocr import TesseractOCR
from .ocr_adapter import OcrAdapter


def create_ocr_engine(
    engine_type: OCREngineType = OCREngineType.TESSERACT,
    config: Optional[OCRConfig] = None
) -> BaseOCR:
    """
    Create an OCR engine instance.

    Args:
        engine_type: Type of OCR engine to create
        config: Engine configuration, read from the environment when omitted

    Returns:
        OCR engine instance

    Raises:
        ValueError: If engine type is not supported
    """
    config = config or OCRConfig()

    if engine_type == OCREngineType.TESSERACT:
        return TesseractOCR(tesseract_cmd=config.tesseract_cmd)

    raise ValueError(f"Unsupported OCR engine type: {engine_type}")


def create_ocr_adapter(config: Optional[OCRConfig] = None,
                       engine: Optional[BaseOCR] = None) -> OcrAdapter:
    """Build an adapter with a worker pool sized from the configuration."""
    config = config or OCRConfig()
    return OcrAdapter(
        engine or create_ocr_engine(config=config),
        max_workers=config.max_workers,
        default_options=OcrOptions.from_config(config)
    )


__all__ = [
    'BaseOCR',
    'EngineLine',
    'EngineOutput',
    'EngineWord',
    'OcrError',
    'OcrLine',
    'OcrOptions',
    'OCREngineType',
    'calculate_overall_confidence',
    'ExtractionStrategy',
    'NativeLineStrategy',
    'WordGroupingStrategy',
    'RawTextStrategy',
    'DEFAULT_STRATEGIES',
    'TesseractOCR',
    'OcrAdapter',
    'create_ocr_engine',
    'create_ocr_adapter',
]
