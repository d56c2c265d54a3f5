"""Image quality report model."""

from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class QualityMetrics(BaseModel):
    """Raw measurements taken by the validator."""

    sharpness: Optional[float] = None
    contrast: Optional[float] = None
    brightness: Optional[float] = None
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    size_bytes: int = Field(default=0, ge=0)
    format: str = 'unknown'


class QualityReport(BaseModel):
    """Outcome of image validation. Warnings never block processing."""

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    metrics: QualityMetrics = Field(default_factory=QualityMetrics)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors
