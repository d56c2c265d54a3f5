"""Base OCR engine interface."""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from dataclasses import dataclass
from enum import Enum

from models.ocr_line import OcrLine


class OCREngineType(Enum):
    """Supported OCR engine types."""
    TESSERACT = "tesseract"


class OcrError(Exception):
    """Base exception for OCR errors."""
    def __init__(self, message: str, engine: Optional[OCREngineType] = None,
                 details: Dict[str, Any] = None):
        super().__init__(message)
        self.engine = engine
        self.details = details or {}


@dataclass(frozen=True)
class OcrOptions:
    """Per-call recognition settings."""
    language: str = 'eng'
    psm: int = 6  # Assume a single uniform block of text
    oem: int = 3  # Legacy + LSTM engines
    timeout: float = 60.0

    @property
    def tesseract_args(self) -> str:
        return f'--psm {self.psm} --oem {self.oem}'

    @classmethod
    def from_config(cls, config) -> 'OcrOptions':
        """Build options from an OCRConfig."""
        return cls(
            language=config.language,
            psm=config.psm,
            oem=config.oem,
            timeout=config.timeout
        )


@dataclass(frozen=True)
class EngineWord:
    """A recognized word with its bounding box in pixels."""
    text: str
    confidence: Optional[float]
    left: int
    top: int
    width: int
    height: int

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2.0


@dataclass(frozen=True)
class EngineLine:
    """A line as reported by the engine, confidence on the engine's own scale."""
    text: str
    confidence: Optional[float] = None


@dataclass
class EngineOutput:
    """
    Raw output of one engine call.

    Engines fill whatever granularity they support; the extraction strategies
    decide which part is usable.
    """
    text: str = ''
    confidence: Optional[float] = None
    lines: Optional[List[EngineLine]] = None
    words: Optional[List[EngineWord]] = None


def normalize_confidence(value: Optional[float]) -> Optional[float]:
    """
    Bring an engine confidence onto the 0..1 scale.

    Values above 1 are treated as percentages. Negative values (Tesseract
    uses -1 for non-text boxes) become 0.
    """
    if value is None:
        return None
    value = float(value)
    if value > 1.0:
        value = value / 100.0
    return min(max(value, 0.0), 1.0)


def calculate_overall_confidence(lines: List[OcrLine]) -> float:
    """
    Mean line confidence as a percentage.

    Returns:
        0 for an empty list, otherwise a value in [0, 100] rounded to 2 places
    """
    if not lines:
        return 0.0
    mean = sum(line.confidence for line in lines) / len(lines)
    return round(mean * 100, 2)


class BaseOCR(ABC):
    """Abstract base class for OCR engines."""

    engine_type: OCREngineType

    @abstractmethod
    def run(self, image_data: bytes, options: OcrOptions) -> EngineOutput:
        """
        Recognize text in an encoded image.

        Implementations must keep no per-call state so a single instance can
        be used from several worker threads.

        Args:
            image_data: Encoded image bytes
            options: Recognition settings

        Returns:
            EngineOutput with as much structure as the engine provides

        Raises:
            OcrError: If the engine is missing or fails
        """
        pass

    def is_available(self) -> bool:
        """Whether the engine can be invoked in this environment."""
        return True


__all__ = [
    'OCREngineType',
    'OcrError',
    'OcrOptions',
    'OcrLine',
    'EngineWord',
    'EngineLine',
    'EngineOutput',
    'normalize_confidence',
    'calculate_overall_confidence',
    'BaseOCR',
]
