"""
Tunable thresholds and weights for every pipeline stage.

Each stage takes one of these frozen dataclasses in its constructor. Tests
override single values with ``dataclasses.replace(DEFAULT_..., field=value)``.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Tuple


@dataclass(frozen=True)
class ValidationThresholds:
    """Minimum image quality accepted by the validator."""
    min_width: int = 600
    min_height: int = 400
    min_file_size: int = 50 * 1024  # 50KB
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    min_sharpness: float = 10.0  # Laplacian variance
    min_contrast: float = 30.0  # Intensity standard deviation
    min_brightness: float = 50.0
    max_brightness: float = 200.0
    marginal_factor: float = 1.5
    supported_types: Tuple[str, ...] = ('image/jpeg', 'image/png', 'image/webp')


@dataclass(frozen=True)
class PreprocessingSettings:
    """Parameters of the individual enhancement operations."""
    max_width: int = 2000
    target_width: int = 1200
    min_width: int = 800
    median_kernel: int = 3
    clahe_clip_limit: float = 2.0
    clahe_tile_grid: Tuple[int, int] = (8, 8)
    deskew_min_angle: float = 0.5
    deskew_max_angle: float = 20.0


@dataclass(frozen=True)
class ParserThresholds:
    """Heuristic limits used by the receipt parser."""
    min_price: Decimal = Decimal('0')
    max_price: Decimal = Decimal('10000')
    min_item_confidence: float = 0.5
    min_merchant_confidence: float = 0.6
    date_search_lines: int = 10
    merchant_search_lines: int = 8
    date_years_back: int = 5
    date_years_ahead: int = 1


@dataclass(frozen=True)
class ScoringThresholds:
    """Weights and cut-offs of the confidence scorer."""
    # Field status buckets
    field_high: float = 0.75
    field_medium: float = 0.5
    field_low: float = 0.25

    # Overall status buckets
    excellent: float = 0.9
    good: float = 0.75
    fair: float = 0.6

    # OCR line quality
    low_confidence_line: float = 0.6
    high_confidence_line: float = 0.8
    neighbour_window: int = 2
    low_line_ratio: float = 0.3

    # Weights
    ocr_weight: float = 0.3
    parsing_weight: float = 0.3
    completeness_weight: float = 0.4
    source_line_weight: float = 0.7
    neighbour_weight: float = 0.3
    completeness_weights: Tuple[Tuple[str, float], ...] = field(default=(
        ('total', 0.3),
        ('date', 0.2),
        ('merchant', 0.2),
        ('items', 0.3),
    ))

    # Recommendation triggers
    min_avg_ocr_confidence: float = 0.6
    min_priced_item_ratio: float = 0.7


DEFAULT_VALIDATION_THRESHOLDS = ValidationThresholds()
DEFAULT_PREPROCESSING_SETTINGS = PreprocessingSettings()
DEFAULT_PARSER_THRESHOLDS = ParserThresholds()
DEFAULT_SCORING_THRESHOLDS = ScoringThresholds()
