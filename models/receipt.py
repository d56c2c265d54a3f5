"""Parsed receipt model implementation."""

import datetime
import logging
import re
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from .ocr_line import OcrLine

logger = logging.getLogger(__name__)

MAX_LINE_TOTAL = Decimal('10000')
MAX_NAME_LENGTH = 200


class LineItem(BaseModel):
    """One purchased product extracted from a receipt line."""

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    quantity: int = Field(default=1, ge=1)
    unit_price: Optional[Decimal] = None
    line_total: Optional[Decimal] = None
    source_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    line_number: Optional[int] = Field(default=None, ge=0)
    raw_text: Optional[str] = None

    @field_validator('name')
    @classmethod
    def clean_name(cls, v):
        """Clean and validate item name."""
        # Remove excessive whitespace
        v = ' '.join(v.split())
        # Remove common OCR artifacts
        v = re.sub(r'[^\w\s\-\'\.&$@#%/]', '', v)
        if not v:
            v = "Unknown Item"
        return v

    @field_validator('unit_price', 'line_total')
    @classmethod
    def discard_insane_amounts(cls, v):
        """Quantize to cents; amounts outside [0, 10000] are dropped, not clamped."""
        if v is None:
            return v
        if v < 0 or v > MAX_LINE_TOTAL:
            logger.debug(f"Discarding out-of-range amount {v}")
            return None
        return v.quantize(Decimal('0.01'))

    @property
    def has_price(self) -> bool:
        return self.line_total is not None or self.unit_price is not None


class ParsedReceipt(BaseModel):
    """
    Best-effort extraction result.

    Every scalar field is optional: a field the parser could not find is None,
    never a guess. ``raw_lines`` keeps the OCR output so the confidence scorer
    can judge quality independently of parse success.
    """

    merchant: Optional[str] = None
    date: Optional[datetime.date] = None
    total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    line_items: List[LineItem] = Field(default_factory=list)
    raw_lines: List[OcrLine] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    # Index into raw_lines of the line each scalar field was read from
    field_lines: Dict[str, int] = Field(default_factory=dict)

    @field_validator('total', 'subtotal', 'tax')
    @classmethod
    def validate_amounts(cls, v):
        """Ensure monetary amounts have at most 2 decimal places."""
        if v is None:
            return v
        if v.as_tuple().exponent < -2:
            return v.quantize(Decimal('0.01'))
        return v

    @property
    def raw_text(self) -> str:
        return '\n'.join(line.text for line in self.raw_lines)

    @property
    def items_total(self) -> Decimal:
        """Sum of the line totals that were resolved."""
        return sum((item.line_total for item in self.line_items if item.line_total is not None),
                   Decimal('0'))

    def source_line(self, field_name: str) -> Optional[OcrLine]:
        """Return the OCR line a field was read from, if known."""
        index = self.field_lines.get(field_name)
        if index is None or not 0 <= index < len(self.raw_lines):
            return None
        return self.raw_lines[index]
