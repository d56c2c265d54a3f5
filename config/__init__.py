"""Configuration for the receipt scanning pipeline."""

from .ocr_config import OCRConfig
from .thresholds import (
    ValidationThresholds,
    PreprocessingSettings,
    ParserThresholds,
    ScoringThresholds,
    DEFAULT_VALIDATION_THRESHOLDS,
    DEFAULT_PREPROCESSING_SETTINGS,
    DEFAULT_PARSER_THRESHOLDS,
    DEFAULT_SCORING_THRESHOLDS,
)

__all__ = [
    'OCRConfig',
    'ValidationThresholds',
    'PreprocessingSettings',
    'ParserThresholds',
    'ScoringThresholds',
    'DEFAULT_VALIDATION_THRESHOLDS',
    'DEFAULT_PREPROCESSING_SETTINGS',
    'DEFAULT_PARSER_THRESHOLDS',
    'DEFAULT_SCORING_THRESHOLDS',
]
