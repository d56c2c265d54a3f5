"""Confidence report models."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class FieldName(str, Enum):
    """Receipt fields that receive an individual confidence."""
    TOTAL = "total"
    DATE = "date"
    MERCHANT = "merchant"
    ITEMS = "items"


class FieldStatus(str, Enum):
    """Confidence bucket of a single field."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very-low"


class OverallStatus(str, Enum):
    """Verdict for the whole extraction."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class FieldConfidence(BaseModel):
    field: FieldName
    confidence: float = Field(ge=0.0, le=1.0)
    status: FieldStatus
    has_value: bool


class OcrQuality(BaseModel):
    avg_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    low_confidence_line_count: int = Field(default=0, ge=0)
    total_lines: int = Field(default=0, ge=0)


class ParsingQuality(BaseModel):
    items_extracted: int = Field(default=0, ge=0)
    items_with_price: int = Field(default=0, ge=0)
    avg_item_confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def priced_ratio(self) -> float:
        if not self.items_extracted:
            return 0.0
        return self.items_with_price / self.items_extracted


class Completeness(BaseModel):
    has_total: bool = False
    has_date: bool = False
    has_merchant: bool = False
    has_items: bool = False
    score: float = Field(default=0.0, ge=0.0, le=1.0)


class ConfidenceReport(BaseModel):
    """Aggregated verdict on how trustworthy an extraction is."""

    overall: float = Field(ge=0.0, le=1.0)
    status: OverallStatus
    fields: List[FieldConfidence] = Field(default_factory=list)
    ocr_quality: OcrQuality = Field(default_factory=OcrQuality)
    parsing_quality: ParsingQuality = Field(default_factory=ParsingQuality)
    completeness: Completeness = Field(default_factory=Completeness)
    recommendations: List[str] = Field(default_factory=list)

    def get_field(self, name: FieldName) -> FieldConfidence:
        """Look up the confidence entry of one field."""
        for entry in self.fields:
            if entry.field == name:
                return entry
        raise KeyError(name)
