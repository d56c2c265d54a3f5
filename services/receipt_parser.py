"""
Receipt text parser.

Extracts merchant, date, totals and line items from OCR lines. Parsing is
best effort: a field that cannot be found is left as None and no exception
escapes ``parse``.
"""

import datetime
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, TypeVar

from config.thresholds import ParserThresholds, DEFAULT_PARSER_THRESHOLDS
from models.ocr_line import OcrLine
from models.receipt import MAX_NAME_LENGTH, LineItem, ParsedReceipt

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Price with OCR confusions: letter O for zero and comma as decimal separator.
# A single trailing uppercase flag letter (2.99F) is allowed, units (1.5oz) are not.
PRICE_PATTERN = re.compile(
    r'(?<![\d.,/])\$?\s?(\d[\dOo]{0,4}[.,][\dOo]{1,2})(?!\d|[a-z]|[A-Z][A-Za-z]|[.,/]\d)'
)
BARE_PRICE_PATTERN = re.compile(r'^\s*[$*]?\s*\d[\dOo]{0,4}[.,][\dOo]{1,2}\s*[A-Z*]?\s*$')

QUANTITY_PATTERNS = [
    re.compile(r'^\s*(\d{1,3})\s*[xX]\b\s*'),
    re.compile(r'\b(\d{1,3})\s*@\s*'),
    re.compile(r'\bqty\s*[:\s]\s*(\d{1,3})\b', re.IGNORECASE),
    re.compile(r'\bquantity\s*[:\s]\s*(\d{1,3})\b', re.IGNORECASE),
]
UNIT_PRICE_PATTERN = re.compile(r'@\s*\$?\s?(\d[\dOo]{0,4}[.,][\dOo]{1,2})')

# Ordered by priority
TOTAL_PATTERNS = [
    ('grand total', re.compile(r'\bgrand\s*total\b', re.IGNORECASE)),
    ('total', re.compile(
        r'(?<![A-Za-z0-9])(?<!sub\s)(?<!sub-)total\b(?!\s*(?:savings|saved|items?|qty|discount|tax))',
        re.IGNORECASE)),
    ('amount due', re.compile(r'\b(?:amount|amt)\s*due\b', re.IGNORECASE)),
    ('balance', re.compile(r'\bbalance\b', re.IGNORECASE)),
]
SUBTOTAL_PATTERN = re.compile(r'\b(?:sub|5ub)[\s\-]?total\b', re.IGNORECASE)
TAX_PATTERN = re.compile(r'\b(?:sales\s+)?tax\b', re.IGNORECASE)

NON_ITEM_PATTERN = re.compile(
    r'\b(?:(?:sub|5ub)[\s\-]?total|total|tax|balance|amount\s+due|visa|mastercard|amex|'
    r'tender|thank\s*you)\b',
    re.IGNORECASE
)
# Only skipped at the start of a line; "Greeting Card 3.99" is an item
NON_ITEM_PREFIX_PATTERN = re.compile(
    r'^\s*(?:change|cash|card|debit|credit|payment|receipt|cashier|date|time)\b',
    re.IGNORECASE
)

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}
_MONTH = r'(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?'

ISO_DATE_PATTERN = re.compile(r'\b(\d{4})[\-/](\d{1,2})[\-/](\d{1,2})\b')
NUMERIC_DATE_PATTERN = re.compile(r'\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})\b')
MONTH_FIRST_PATTERN = re.compile(_MONTH + r'\s+(\d{1,2}),?\s+(\d{4})\b', re.IGNORECASE)
DAY_FIRST_PATTERN = re.compile(r'\b(\d{1,2})\s+' + _MONTH + r',?\s+(\d{4})\b', re.IGNORECASE)

# Lines that are never a merchant name
MERCHANT_EXCLUDE_PATTERNS = [
    re.compile(r'\d+\s+\w+.*\b(?:st|street|ave|avenue|rd|road|blvd|boulevard|dr|drive|'
               r'ln|lane|way|hwy|highway|suite|ste|pkwy)\b\.?', re.IGNORECASE),
    re.compile(r'\(?\d{3}\)?[\s.\-]?\d{3}[\s.\-]?\d{4}'),
    re.compile(r'\d{3,}'),
    re.compile(r'\b(?:receipt|invoice|thank\s*you|welcome|cashier|register|'
               r'transaction|order|store\s*#|tel|phone)\b', re.IGNORECASE),
]
MERCHANT_KEYWORDS = re.compile(
    r'\b(?:store|market|mart|shop|foods?|grocery|groceries|supermarket|pharmacy|'
    r'restaurant|cafe|bakery|deli|inc|llc|co|walmart|target|costco|trader\s+joe\'?s|'
    r'whole\s+foods|key\s+food|h\s*mart|kroger|safeway)\b',
    re.IGNORECASE
)


def normalize_amount(token: str) -> Optional[Decimal]:
    """Convert a price token to Decimal, correcting O/o to 0 and ',' to '.'."""
    cleaned = token.replace('O', '0').replace('o', '0').replace(',', '.').strip()
    try:
        return Decimal(cleaned).quantize(Decimal('0.01'))
    except InvalidOperation:
        return None


def parse_price(text: str, thresholds: ParserThresholds = DEFAULT_PARSER_THRESHOLDS
                ) -> Optional[Decimal]:
    """
    Read the first price in a string.

    Returns:
        The amount, or None if there is no price or it lies outside the sane range
    """
    match = PRICE_PATTERN.search(text or '')
    if not match:
        return None
    value = normalize_amount(match.group(1))
    if value is None or not thresholds.min_price <= value <= thresholds.max_price:
        return None
    return value


def _shift_years(day: datetime.date, years: int) -> datetime.date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year + years, day=28)


class ReceiptParser:
    """Heuristic parser turning OCR lines into a ParsedReceipt."""

    def __init__(self, thresholds: Optional[ParserThresholds] = None):
        self.thresholds = thresholds or DEFAULT_PARSER_THRESHOLDS

    def parse(self, lines: Sequence[OcrLine],
              reference_date: Optional[datetime.date] = None) -> ParsedReceipt:
        """
        Parse OCR lines into structured receipt data.

        Args:
            lines: OCR lines in reading order
            reference_date: "Today" for date plausibility checks

        Returns:
            ParsedReceipt; fields that could not be read are None
        """
        lines = list(lines or [])
        reference_date = reference_date or datetime.date.today()
        field_lines: Dict[str, int] = {}

        merchant = self._safely('merchant', lambda: self.extract_merchant(lines))
        date = self._safely('date', lambda: self.extract_date(lines, reference_date))
        total = self._safely('total', lambda: self.extract_total(lines))
        subtotal = self._safely('subtotal', lambda: self._extract_labeled(lines, SUBTOTAL_PATTERN))
        tax = self._safely('tax', lambda: self._extract_labeled(lines, TAX_PATTERN, exclude=SUBTOTAL_PATTERN))

        used: Set[int] = set()
        values = {}
        for name, found in (('merchant', merchant), ('date', date), ('total', total),
                            ('subtotal', subtotal), ('tax', tax)):
            if found is None:
                values[name] = None
                continue
            value, indexes = found
            values[name] = value
            field_lines[name] = indexes[0]
            used.update(indexes)

        items = self._safely('items', lambda: self.extract_items(lines, used)) or []
        confidence = self.calculate_confidence(lines, items)

        receipt = ParsedReceipt(
            merchant=values['merchant'],
            date=values['date'],
            total=values['total'],
            subtotal=values['subtotal'],
            tax=values['tax'],
            line_items=items,
            raw_lines=lines,
            confidence=confidence,
            field_lines=field_lines
        )

        logger.info(
            f"Parsed receipt: merchant={receipt.merchant!r}, date={receipt.date}, "
            f"total={receipt.total}, items={len(items)}, confidence={confidence:.2f}"
        )
        return receipt

    def parse_text(self, text: str, confidence: float = 1.0,
                   reference_date: Optional[datetime.date] = None) -> ParsedReceipt:
        """Parse plain text, giving every line the same confidence."""
        lines = [OcrLine(text=t.strip(), confidence=confidence)
                 for t in (text or '').splitlines() if t.strip()]
        return self.parse(lines, reference_date=reference_date)

    @staticmethod
    def _safely(name: str, func: Callable[[], T]) -> Optional[T]:
        try:
            return func()
        except Exception as e:
            logger.warning(f"Failed to extract {name}: {str(e)}", exc_info=True)
            return None

    # Prices

    def _prices(self, text: str) -> List[Tuple[re.Match, Optional[Decimal]]]:
        """All price matches on a line with their in-range value (None when insane)."""
        results = []
        for match in PRICE_PATTERN.finditer(text):
            value = normalize_amount(match.group(1))
            if value is not None and not self.thresholds.min_price <= value <= self.thresholds.max_price:
                value = None
            results.append((match, value))
        return results

    def _last_valid_price(self, text: str) -> Optional[Decimal]:
        for _, value in reversed(self._prices(text)):
            if value is not None:
                return value
        return None

    # Items

    def extract_items(self, lines: Sequence[OcrLine], skip: Optional[Set[int]] = None) -> List[LineItem]:
        """
        Extract line items.

        Handles single-line items ("Milk 2.99") and two-line items where a
        name line is followed by a line holding only the price.
        """
        skip = skip or set()
        items = []
        pending: Optional[Tuple[int, OcrLine]] = None

        for i, line in enumerate(lines):
            text = line.text.strip()
            if (i in skip or not text
                    or line.confidence < self.thresholds.min_item_confidence
                    or self._is_non_item_line(text)):
                pending = None
                continue

            prices = self._prices(text)
            if not prices:
                pending = (i, line) if self._looks_like_name(text) else None
                continue

            name = self._extract_name(text, prices[0][0])
            if self._looks_like_name(name):
                items.append(self._build_item(name, text, line.confidence, i, prices))
            elif pending is not None and BARE_PRICE_PATTERN.match(text):
                name_index, name_line = pending
                confidence = (name_line.confidence + line.confidence) / 2
                items.append(self._build_item(
                    self._extract_name(name_line.text, None),
                    f"{name_line.text.strip()} {text}",
                    confidence,
                    name_index,
                    prices
                ))
            pending = None

        logger.debug(f"Extracted {len(items)} line items")
        return items

    def _build_item(self, name: str, raw_text: str, confidence: float, line_number: int,
                    prices: List[Tuple[re.Match, Optional[Decimal]]]) -> LineItem:
        quantity = self._extract_quantity(raw_text)
        last_match, line_total = prices[-1]
        unit_price = None

        unit_match = UNIT_PRICE_PATTERN.search(raw_text)
        if unit_match:
            unit_price = normalize_amount(unit_match.group(1))
            # "2 @ 1.50" with no separate line total
            if unit_match.group(1) == last_match.group(1) and len(prices) == 1:
                line_total = unit_price * quantity if unit_price is not None else None
        elif line_total is not None:
            unit_price = (line_total / quantity).quantize(Decimal('0.01'))

        return LineItem(
            name=name[:MAX_NAME_LENGTH].rstrip(),
            quantity=quantity,
            unit_price=unit_price,
            line_total=line_total,
            source_confidence=confidence,
            line_number=line_number,
            raw_text=raw_text
        )

    @staticmethod
    def _extract_quantity(text: str) -> int:
        for pattern in QUANTITY_PATTERNS:
            match = pattern.search(text)
            if match:
                quantity = int(match.group(1))
                if quantity >= 1:
                    return quantity
        return 1

    @staticmethod
    def _extract_name(text: str, first_price: Optional[re.Match]) -> str:
        """Item name: text before the first price, without quantity, codes and flags."""
        name = text[:first_price.start()] if first_price else text
        unit = re.search(r'\d{1,3}\s*@', name)
        if unit:
            name = name[:unit.start()]

        name = QUANTITY_PATTERNS[0].sub('', name)
        name = re.sub(r'\b(?:qty|quantity)\s*[:\s]\s*\d{1,3}\b', '', name, flags=re.IGNORECASE)
        # Trailing barcodes then single-letter flags
        name = re.sub(r'\s+\d{8,}(?:\s+[A-Z])?\s*$', '', name)
        name = re.sub(r'\s+[A-Z]\s*$', '', name)
        name = re.sub(r'[\s\-:$*#.]+$', '', name)
        return ' '.join(name.split())

    @staticmethod
    def _looks_like_name(text: str) -> bool:
        return len(re.findall(r'[A-Za-z]', text or '')) >= 2

    @staticmethod
    def _is_non_item_line(text: str) -> bool:
        if NON_ITEM_PATTERN.search(text) or NON_ITEM_PREFIX_PATTERN.match(text):
            return True
        stripped = text.strip()
        return bool(NUMERIC_DATE_PATTERN.fullmatch(stripped) or ISO_DATE_PATTERN.fullmatch(stripped))

    # Totals

    def extract_total(self, lines: Sequence[OcrLine]) -> Optional[Tuple[Decimal, List[int]]]:
        """
        Find the receipt total.

        Patterns are tried in priority order, each scanning bottom-up. A
        keyword line without an amount takes the price on the next line if
        that line holds nothing else.

        Returns:
            (total, [keyword line index, price line index if different]) or None
        """
        for label, pattern in TOTAL_PATTERNS:
            for i in range(len(lines) - 1, -1, -1):
                text = lines[i].text
                if not pattern.search(text):
                    continue
                if label == 'total' and SUBTOTAL_PATTERN.search(text):
                    continue

                value = self._last_valid_price(text)
                if value is not None:
                    logger.debug(f"Total {value} from '{label}' on line {i}")
                    return value, [i]

                if i + 1 < len(lines) and BARE_PRICE_PATTERN.match(lines[i + 1].text):
                    value = self._last_valid_price(lines[i + 1].text)
                    if value is not None:
                        logger.debug(f"Total {value} from '{label}' on lines {i}-{i + 1}")
                        return value, [i, i + 1]
        return None

    def _extract_labeled(self, lines: Sequence[OcrLine], pattern: re.Pattern,
                         exclude: Optional[re.Pattern] = None
                         ) -> Optional[Tuple[Decimal, List[int]]]:
        """First line top-down matching a label and carrying a price."""
        for i, line in enumerate(lines):
            if not pattern.search(line.text):
                continue
            if exclude is not None and exclude.search(line.text):
                continue
            value = self._last_valid_price(line.text)
            if value is not None:
                return value, [i]
        return None

    # Date

    def extract_date(self, lines: Sequence[OcrLine], reference_date: datetime.date
                     ) -> Optional[Tuple[datetime.date, List[int]]]:
        """
        Find the purchase date among the first lines.

        Only real calendar dates within the plausible window around
        ``reference_date`` are accepted.
        """
        earliest = _shift_years(reference_date, -self.thresholds.date_years_back)
        latest = _shift_years(reference_date, self.thresholds.date_years_ahead)

        for i, line in enumerate(lines[:self.thresholds.date_search_lines]):
            for candidate in self._date_candidates(line.text):
                if earliest <= candidate <= latest:
                    return candidate, [i]
                logger.debug(f"Rejecting implausible date {candidate} on line {i}")
        return None

    @staticmethod
    def _date_candidates(text: str) -> List[datetime.date]:
        """Every valid calendar date readable from a line, most likely first."""
        raw: List[Tuple[int, int, int]] = []

        for match in ISO_DATE_PATTERN.finditer(text):
            raw.append((int(match.group(1)), int(match.group(2)), int(match.group(3))))

        for match in NUMERIC_DATE_PATTERN.finditer(text):
            first, second, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
            if year < 100:
                year += 2000
            raw.append((year, first, second))   # MM/DD
            raw.append((year, second, first))   # DD/MM

        for match in MONTH_FIRST_PATTERN.finditer(text):
            raw.append((int(match.group(3)), MONTHS[match.group(1).lower()[:3]], int(match.group(2))))

        for match in DAY_FIRST_PATTERN.finditer(text):
            raw.append((int(match.group(3)), MONTHS[match.group(2).lower()[:3]], int(match.group(1))))

        dates = []
        for year, month, day in raw:
            try:
                dates.append(datetime.date(year, month, day))
            except ValueError:
                continue
        return dates

    # Merchant

    def extract_merchant(self, lines: Sequence[OcrLine]) -> Optional[Tuple[str, List[int]]]:
        """Score the top lines and return the most merchant-like one."""
        best: Optional[Tuple[float, int, str]] = None

        for i, line in enumerate(lines[:self.thresholds.merchant_search_lines]):
            text = ' '.join(line.text.split()).strip(' -*#:')
            if line.confidence <= self.thresholds.min_merchant_confidence:
                continue
            if not self._is_merchant_candidate(text):
                continue

            score = self._score_merchant(text, line.confidence, i)
            if best is None or score > best[0]:
                best = (score, i, text)

        if best is None:
            return None
        return best[2], [best[1]]

    def _is_merchant_candidate(self, text: str) -> bool:
        if len(re.findall(r'[A-Za-z]', text)) < 2:
            return False
        if PRICE_PATTERN.search(text) or self._date_candidates(text):
            return False
        if self._is_non_item_line(text):
            return False
        return not any(p.search(text) for p in MERCHANT_EXCLUDE_PATTERNS)

    @staticmethod
    def _score_merchant(text: str, confidence: float, index: int) -> float:
        score = confidence
        if MERCHANT_KEYWORDS.search(text):
            score += 0.2
        if index == 0:
            score += 0.15
        elif index == 1:
            score += 0.1
        if text.istitle():
            score += 0.1
        if text.isupper():
            score += 0.1
        if 5 <= len(text) <= 30:
            score += 0.05
        return score

    # Confidence

    @staticmethod
    def calculate_confidence(lines: Sequence[OcrLine], items: Sequence[LineItem]) -> float:
        """Parse-level confidence from OCR quality, item count and item confidence."""
        if not lines:
            return 0.0
        ocr = sum(line.confidence for line in lines) / len(lines)
        count = min(len(items) / 5.0, 1.0)
        item_conf = sum(item.source_confidence for item in items) / len(items) if items else 0.0
        return min(max(0.4 * ocr + 0.3 * count + 0.3 * item_conf, 0.0), 1.0)
