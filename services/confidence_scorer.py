"""
Confidence scoring for parsed receipts.

Combines OCR line quality, parsing quality and field completeness into an
overall verdict, a confidence per field and a list of retake suggestions.
"""

import logging
import re
from typing import Iterable, List, Optional, Sequence

from config.thresholds import ScoringThresholds, DEFAULT_SCORING_THRESHOLDS
from models.confidence import (
    Completeness,
    ConfidenceReport,
    FieldConfidence,
    FieldName,
    FieldStatus,
    OcrQuality,
    OverallStatus,
    ParsingQuality,
)
from models.ocr_line import OcrLine
from models.receipt import LineItem, ParsedReceipt

logger = logging.getLogger(__name__)

# Used when a receipt carries no record of its source lines
FALLBACK_LINE_PATTERNS = {
    FieldName.TOTAL: re.compile(r'total', re.IGNORECASE),
    FieldName.DATE: re.compile(r'\d{1,4}[/\-.]\d{1,2}[/\-.]\d{2,4}'),
}
DEFAULT_SOURCE_CONFIDENCE = 0.5

RECOMMENDATIONS = {
    'low_ocr': 'Low OCR confidence detected. Retake the photo with better lighting and focus.',
    'many_low_lines': 'Many lines have low confidence. Flatten the receipt before photographing '
                      'and make sure all text is clearly visible.',
    'no_items': 'No items were extracted. Make sure item names and prices are visible in the photo.',
    'missing_prices': 'Some items are missing price information. Make sure all prices are clearly visible.',
    'no_total': 'Total amount not found. Make sure the total is clearly visible in the image.',
    'no_date': 'Purchase date not found. Include the date section of the receipt in the image.',
    'no_merchant': 'Merchant name not detected. Include the store name at the top of the receipt.',
    'low_overall': 'Overall confidence is low. Use good lighting, hold the camera steady and '
                   'keep the receipt flat and fully visible.',
}


def meets_quality_threshold(report: ConfidenceReport, cutoff: float = 0.5) -> bool:
    """Whether the overall confidence reaches ``cutoff``."""
    return report.overall >= cutoff


class ConfidenceScorer:
    """Scores how trustworthy an extraction is."""

    def __init__(self, thresholds: Optional[ScoringThresholds] = None):
        self.thresholds = thresholds or DEFAULT_SCORING_THRESHOLDS

    def score(self, receipt: ParsedReceipt,
              lines: Optional[Sequence[OcrLine]] = None) -> ConfidenceReport:
        """
        Build the confidence report for a parsed receipt.

        Args:
            receipt: Parser output
            lines: OCR lines; defaults to the receipt's own raw lines

        Returns:
            ConfidenceReport
        """
        lines = list(receipt.raw_lines if lines is None else lines)
        cfg = self.thresholds

        ocr_quality = self.analyze_ocr_quality(lines)
        parsing_quality = self.analyze_parsing_quality(receipt.line_items)
        completeness = self.analyze_completeness(receipt)
        fields = self.calculate_field_confidence(receipt, lines)

        parsing = parsing_quality.priced_ratio * parsing_quality.avg_item_confidence
        overall = (cfg.ocr_weight * ocr_quality.avg_confidence
                   + cfg.parsing_weight * parsing
                   + cfg.completeness_weight * completeness.score)
        overall = min(max(overall, 0.0), 1.0)

        report = ConfidenceReport(
            overall=overall,
            status=self.overall_status(overall),
            fields=fields,
            ocr_quality=ocr_quality,
            parsing_quality=parsing_quality,
            completeness=completeness,
        )
        report.recommendations = self.generate_recommendations(report)

        logger.info(f"Confidence {overall:.2f} ({report.status.value}), "
                    f"{len(report.recommendations)} recommendation(s)")
        return report

    def field_status(self, confidence: float) -> FieldStatus:
        cfg = self.thresholds
        if confidence >= cfg.field_high:
            return FieldStatus.HIGH
        if confidence >= cfg.field_medium:
            return FieldStatus.MEDIUM
        if confidence >= cfg.field_low:
            return FieldStatus.LOW
        return FieldStatus.VERY_LOW

    def overall_status(self, overall: float) -> OverallStatus:
        cfg = self.thresholds
        if overall >= cfg.excellent:
            return OverallStatus.EXCELLENT
        if overall >= cfg.good:
            return OverallStatus.GOOD
        if overall >= cfg.fair:
            return OverallStatus.FAIR
        return OverallStatus.POOR

    def analyze_ocr_quality(self, lines: Sequence[OcrLine]) -> OcrQuality:
        if not lines:
            return OcrQuality()
        avg = sum(line.confidence for line in lines) / len(lines)
        low = sum(1 for line in lines if line.confidence < self.thresholds.low_confidence_line)
        return OcrQuality(avg_confidence=avg, low_confidence_line_count=low, total_lines=len(lines))

    @staticmethod
    def analyze_parsing_quality(items: Sequence[LineItem]) -> ParsingQuality:
        if not items:
            return ParsingQuality()
        return ParsingQuality(
            items_extracted=len(items),
            items_with_price=sum(1 for item in items if item.line_total is not None),
            avg_item_confidence=sum(item.source_confidence for item in items) / len(items)
        )

    def analyze_completeness(self, receipt: ParsedReceipt) -> Completeness:
        present = {
            'total': receipt.total is not None,
            'date': receipt.date is not None,
            'merchant': receipt.merchant is not None,
            'items': bool(receipt.line_items),
        }
        score = sum(weight for name, weight in self.thresholds.completeness_weights if present.get(name))
        return Completeness(
            has_total=present['total'],
            has_date=present['date'],
            has_merchant=present['merchant'],
            has_items=present['items'],
            score=min(score, 1.0)
        )

    def calculate_field_confidence(self, receipt: ParsedReceipt,
                                   lines: Sequence[OcrLine]) -> List[FieldConfidence]:
        """
        Confidence per field.

        A present field scores its source line confidence blended with the
        share of high-confidence lines around it. A missing field scores 0.
        """
        fields = []
        for name, value in ((FieldName.TOTAL, receipt.total),
                            (FieldName.DATE, receipt.date),
                            (FieldName.MERCHANT, receipt.merchant)):
            if value is None:
                fields.append(self._missing(name))
                continue

            index = self._source_index(receipt, name, lines)
            source = lines[index].confidence if index is not None else DEFAULT_SOURCE_CONFIDENCE
            share = self._neighbour_share(lines, [index] if index is not None else [])
            fields.append(self._present(name, source, share))

        items = receipt.line_items
        if not items:
            fields.append(self._missing(FieldName.ITEMS))
        else:
            avg = sum(item.source_confidence for item in items) / len(items)
            indexes = [item.line_number for item in items
                       if item.line_number is not None and item.line_number < len(lines)]
            fields.append(self._present(FieldName.ITEMS, avg, self._neighbour_share(lines, indexes)))

        return fields

    def _present(self, name: FieldName, source: float, share: float) -> FieldConfidence:
        cfg = self.thresholds
        confidence = min(max(cfg.source_line_weight * source + cfg.neighbour_weight * share, 0.0), 1.0)
        return FieldConfidence(field=name, confidence=confidence,
                               status=self.field_status(confidence), has_value=True)

    @staticmethod
    def _missing(name: FieldName) -> FieldConfidence:
        return FieldConfidence(field=name, confidence=0.0, status=FieldStatus.VERY_LOW, has_value=False)

    @staticmethod
    def _source_index(receipt: ParsedReceipt, name: FieldName,
                      lines: Sequence[OcrLine]) -> Optional[int]:
        index = receipt.field_lines.get(name.value)
        if index is not None and 0 <= index < len(lines):
            return index

        if name == FieldName.MERCHANT:
            for i, line in enumerate(lines):
                if line.text.strip() == receipt.merchant:
                    return i
            return None

        pattern = FALLBACK_LINE_PATTERNS.get(name)
        if pattern is None:
            return None
        for i, line in enumerate(lines):
            if pattern.search(line.text):
                return i
        return None

    def _neighbour_share(self, lines: Sequence[OcrLine], indexes: Iterable[int]) -> float:
        """Share of high-confidence lines within the window around the given lines."""
        window = set()
        for index in indexes:
            lo = max(0, index - self.thresholds.neighbour_window)
            hi = min(len(lines), index + self.thresholds.neighbour_window + 1)
            window.update(range(lo, hi))
        if not window:
            window = set(range(len(lines)))
        if not window:
            return 0.0

        high = sum(1 for i in window if lines[i].confidence >= self.thresholds.high_confidence_line)
        return high / len(window)

    def generate_recommendations(self, report: ConfidenceReport) -> List[str]:
        """Map weak signals to retake suggestions."""
        cfg = self.thresholds
        ocr = report.ocr_quality
        parsing = report.parsing_quality
        completeness = report.completeness
        recommendations = []

        if ocr.avg_confidence < cfg.min_avg_ocr_confidence:
            recommendations.append(RECOMMENDATIONS['low_ocr'])
        if ocr.total_lines and ocr.low_confidence_line_count / ocr.total_lines > cfg.low_line_ratio:
            recommendations.append(RECOMMENDATIONS['many_low_lines'])

        if parsing.items_extracted == 0:
            recommendations.append(RECOMMENDATIONS['no_items'])
        elif parsing.priced_ratio < cfg.min_priced_item_ratio:
            recommendations.append(RECOMMENDATIONS['missing_prices'])

        if not completeness.has_total:
            recommendations.append(RECOMMENDATIONS['no_total'])
        if not completeness.has_date:
            recommendations.append(RECOMMENDATIONS['no_date'])
        if not completeness.has_merchant:
            recommendations.append(RECOMMENDATIONS['no_merchant'])

        if report.overall < cfg.fair:
            recommendations.append(RECOMMENDATIONS['low_overall'])

        return recommendations

    @staticmethod
    def meets_quality_threshold(report: ConfidenceReport, cutoff: float = 0.5) -> bool:
        return meets_quality_threshold(report, cutoff)
