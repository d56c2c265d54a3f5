"""Single line of recognized text."""

from dataclasses import dataclass


@dataclass(frozen=True)
class OcrLine:
    """A line of text in reading order with a 0..1 confidence."""
    text: str
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Line confidence must be within [0, 1], got {self.confidence}")
