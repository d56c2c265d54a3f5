"""
Line extraction strategies.

Engines report text at different granularities. Each strategy turns one
shape of EngineOutput into OcrLines; the adapter tries them in order and
keeps the first non-empty result.
"""

import logging
from abc import ABC, abstractmethod
from statistics import median
from typing import List, Optional, Sequence, Tuple

from models.ocr_line import OcrLine
from .base_ocr import EngineOutput, EngineWord, normalize_confidence

logger = logging.getLogger(__name__)


class ExtractionStrategy(ABC):
    """Turns engine output into lines in reading order."""

    name: str = 'base'

    @abstractmethod
    def extract(self, output: EngineOutput) -> List[OcrLine]:
        pass

    @staticmethod
    def _fallback_confidence(output: EngineOutput) -> float:
        value = normalize_confidence(output.confidence)
        return value if value is not None else 0.0


class NativeLineStrategy(ExtractionStrategy):
    """Use the engine's own line array."""

    name = 'native-lines'

    def extract(self, output: EngineOutput) -> List[OcrLine]:
        if not output.lines:
            return []

        fallback = self._fallback_confidence(output)
        lines = []
        for line in output.lines:
            text = (line.text or '').strip()
            if not text:
                continue
            confidence = normalize_confidence(line.confidence)
            lines.append(OcrLine(text=text, confidence=fallback if confidence is None else confidence))
        return lines


class WordGroupingStrategy(ExtractionStrategy):
    """
    Rebuild lines from word boxes.

    Words are clustered on their vertical centre; a word joins the current
    line when its centre is within half the median word height of the line's
    mean centre.
    """

    name = 'word-grouping'

    def extract(self, output: EngineOutput) -> List[OcrLine]:
        words = [w for w in (output.words or []) if (w.text or '').strip()]
        if not words:
            return []

        tolerance = max(median(w.height for w in words) / 2.0, 1.0)
        fallback = self._fallback_confidence(output)

        groups: List[List[EngineWord]] = []
        for word in sorted(words, key=lambda w: (w.center_y, w.left)):
            if groups:
                current = groups[-1]
                centre = sum(w.center_y for w in current) / len(current)
                if abs(word.center_y - centre) <= tolerance:
                    current.append(word)
                    continue
            groups.append([word])

        lines = []
        for group in groups:
            group.sort(key=lambda w: w.left)
            text = ' '.join(w.text.strip() for w in group)
            confidences = [normalize_confidence(w.confidence) for w in group]
            known = [c for c in confidences if c is not None]
            confidence = sum(known) / len(known) if known else fallback
            lines.append(OcrLine(text=text, confidence=confidence))
        return lines


class RawTextStrategy(ExtractionStrategy):
    """Split the full text on newlines; every line gets the overall confidence."""

    name = 'raw-text'

    def extract(self, output: EngineOutput) -> List[OcrLine]:
        confidence = self._fallback_confidence(output)
        return [
            OcrLine(text=text.strip(), confidence=confidence)
            for text in (output.text or '').splitlines()
            if text.strip()
        ]


DEFAULT_STRATEGIES: Tuple[ExtractionStrategy, ...] = (
    NativeLineStrategy(),
    WordGroupingStrategy(),
    RawTextStrategy(),
)


def extract_lines(output: EngineOutput,
                  strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES
                  ) -> Tuple[List[OcrLine], Optional[str]]:
    """
    Run strategies in order until one yields lines.

    Returns:
        Tuple of (lines, name of the strategy used); ([], None) if none matched
    """
    for strategy in strategies:
        lines = strategy.extract(output)
        if lines:
            logger.debug(f"Extracted {len(lines)} lines using {strategy.name}")
            return lines, strategy.name
    return [], None
