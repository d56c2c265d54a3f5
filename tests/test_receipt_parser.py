"""Tests for the receipt parser."""
import datetime
import unittest
from decimal import Decimal

import pytest

from models.ocr_line import OcrLine
from services.receipt_parser import ReceiptParser, normalize_amount, parse_price

REFERENCE = datetime.date(2024, 6, 1)


def _lines(*texts, confidence=0.9):
    return [OcrLine(text=t, confidence=confidence) for t in texts]


class TestPriceParsing(unittest.TestCase):
    """Test price detection with OCR confusions."""

    def test_price_formats(self):
        for text in ('$12.99', '12.99', '12,99', 'Item $ 12.99'):
            self.assertEqual(parse_price(text), Decimal('12.99'), text)

    def test_letter_o_read_as_zero(self):
        self.assertEqual(parse_price('12.9O'), Decimal('12.90'))
        self.assertEqual(parse_price('1O.5o'), Decimal('10.50'))

    def test_out_of_range_discarded(self):
        self.assertIsNone(parse_price('12345.00'))
        self.assertIsNone(parse_price('no price here'))

    def test_units_are_not_prices(self):
        self.assertIsNone(parse_price('Soda 1.5oz'))

    def test_normalize_amount(self):
        self.assertEqual(normalize_amount('3,5O'), Decimal('3.50'))


class TestItemExtraction(unittest.TestCase):
    """Test line item extraction."""

    def setUp(self):
        self.parser = ReceiptParser()

    def test_single_line_items(self):
        items = self.parser.extract_items(_lines('Milk 2.99', 'Bread 3.49'))

        self.assertEqual([i.name for i in items], ['Milk', 'Bread'])
        self.assertEqual(items[0].line_total, Decimal('2.99'))
        self.assertEqual(items[0].quantity, 1)
        self.assertEqual(items[0].line_number, 0)

    def test_two_line_item(self):
        items = self.parser.extract_items([
            OcrLine('Organic Bananas', 0.8),
            OcrLine('$1.99', 1.0),
        ])

        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].name, 'Organic Bananas')
        self.assertEqual(items[0].line_total, Decimal('1.99'))
        self.assertAlmostEqual(items[0].source_confidence, 0.9)

    def test_quantity_prefix(self):
        item = self.parser.extract_items(_lines('2x Yogurt 5.98'))[0]

        self.assertEqual(item.name, 'Yogurt')
        self.assertEqual(item.quantity, 2)
        self.assertEqual(item.unit_price, Decimal('2.99'))
        self.assertEqual(item.line_total, Decimal('5.98'))

    def test_at_price(self):
        item = self.parser.extract_items(_lines('Apples 3 @ 0.50 1.50'))[0]

        self.assertEqual(item.name, 'Apples')
        self.assertEqual(item.quantity, 3)
        self.assertEqual(item.unit_price, Decimal('0.50'))
        self.assertEqual(item.line_total, Decimal('1.50'))

    def test_at_price_without_total(self):
        item = self.parser.extract_items(_lines('Limes 4 @ 0.25'))[0]
        self.assertEqual(item.line_total, Decimal('1.00'))

    def test_qty_label(self):
        item = self.parser.extract_items(_lines('Eggs qty: 2 7.00'))[0]
        self.assertEqual(item.quantity, 2)
        self.assertEqual(item.name, 'Eggs')

    def test_barcode_and_flag_stripped(self):
        item = self.parser.extract_items(_lines('GV WHOLE MILK 078742351865 F 3.48 N'))[0]
        self.assertEqual(item.name, 'GV WHOLE MILK')
        self.assertEqual(item.line_total, Decimal('3.48'))

    def test_summary_lines_skipped(self):
        items = self.parser.extract_items(_lines(
            'Subtotal 6.48', 'Tax 0.52', 'TOTAL 7.00', 'Cash 10.00', 'Change 3.00', 'Visa 7.00'))
        self.assertEqual(items, [])

    def test_low_confidence_lines_ignored(self):
        items = self.parser.extract_items([OcrLine('Milk 2.99', 0.3), OcrLine('Bread 3.49', 0.9)])
        self.assertEqual([i.name for i in items], ['Bread'])

    def test_insane_price_discarded_not_clamped(self):
        item = self.parser.extract_items(_lines('Television 15000.00'))[0]
        self.assertEqual(item.name, 'Television')
        self.assertIsNone(item.line_total)
        self.assertFalse(item.has_price)

    def test_overlong_name_truncated_and_other_items_kept(self):
        long_name = ' '.join(['Organic Free Range'] * 12)
        receipt = self.parser.parse(_lines(
            'Walmart', 'Milk 2.99', f'{long_name} 4.99', 'Bread 3.49', 'Total $11.47'),
            reference_date=REFERENCE)

        self.assertEqual(len(receipt.line_items), 3)
        self.assertEqual(receipt.line_items[0].name, 'Milk')
        self.assertEqual(receipt.line_items[1].name, long_name[:200].rstrip())
        self.assertEqual(receipt.line_items[1].line_total, Decimal('4.99'))
        self.assertEqual(receipt.total, Decimal('11.47'))


class TestTotalExtraction(unittest.TestCase):

    def setUp(self):
        self.parser = ReceiptParser()

    def test_grand_total_beats_earlier_amount(self):
        lines = _lines('Store', 'Gift card load $45.00', 'Milk 2.99', 'Grand Total $45.00')
        value, indexes = self.parser.extract_total(lines)

        self.assertEqual(value, Decimal('45.00'))
        self.assertEqual(indexes, [3])

    def test_subtotal_never_matches_total(self):
        lines = _lines('Subtotal 10.00', 'Sub Total 10.00', 'SUBTOTAL 10.00')
        self.assertIsNone(self.parser.extract_total(lines))

    def test_total_preferred_over_balance(self):
        lines = _lines('TOTAL 12.50', 'Balance 0.00')
        self.assertEqual(self.parser.extract_total(lines)[0], Decimal('12.50'))

    def test_total_on_next_line(self):
        lines = _lines('Milk 2.99', 'TOTAL', '$2.99')
        self.assertEqual(self.parser.extract_total(lines), (Decimal('2.99'), [1, 2]))

    def test_amount_due(self):
        lines = _lines('Amount Due: 8,5O')
        self.assertEqual(self.parser.extract_total(lines)[0], Decimal('8.50'))


class TestDateExtraction(unittest.TestCase):

    def setUp(self):
        self.parser = ReceiptParser()

    def _date(self, text):
        found = self.parser.extract_date(_lines(text), REFERENCE)
        return found[0] if found else None

    def test_formats(self):
        self.assertEqual(self._date('01/15/2024'), datetime.date(2024, 1, 15))
        self.assertEqual(self._date('15/01/2024'), datetime.date(2024, 1, 15))
        self.assertEqual(self._date('2024-01-15'), datetime.date(2024, 1, 15))
        self.assertEqual(self._date('Jan 15, 2024'), datetime.date(2024, 1, 15))
        self.assertEqual(self._date('15 January 2024'), datetime.date(2024, 1, 15))
        self.assertEqual(self._date('Date: 03/02/24 14:31'), datetime.date(2024, 3, 2))

    def test_impossible_date_rejected(self):
        self.assertIsNone(self._date('13/45/2024'))
        self.assertIsNone(self._date('02/30/2024'))

    def test_out_of_window_rejected(self):
        self.assertIsNone(self._date('01/15/2015'))
        self.assertIsNone(self._date('01/15/2026'))

    def test_only_top_lines_searched(self):
        lines = _lines(*(['filler'] * 10 + ['01/15/2024']))
        self.assertIsNone(self.parser.extract_date(lines, REFERENCE))


class TestMerchantExtraction(unittest.TestCase):

    def setUp(self):
        self.parser = ReceiptParser()

    def test_skips_address_phone_and_boilerplate(self):
        lines = _lines('Welcome', '123 Main Street', '(555) 123-4567', 'TRADER JOES')
        self.assertEqual(self.parser.extract_merchant(lines), ('TRADER JOES', [3]))

    def test_prefers_top_line(self):
        lines = _lines('Corner Market', 'Fresh Produce')
        self.assertEqual(self.parser.extract_merchant(lines)[0], 'Corner Market')

    def test_low_confidence_candidates_ignored(self):
        lines = [OcrLine('Walmart', 0.5)]
        self.assertIsNone(self.parser.extract_merchant(lines))


def test_walmart_end_to_end(walmart_lines, reference_date):
    receipt = ReceiptParser().parse(walmart_lines, reference_date=reference_date)

    assert receipt.merchant == 'Walmart'
    assert receipt.date == datetime.date(2024, 1, 15)
    assert receipt.total == Decimal('6.48')
    assert [item.name for item in receipt.line_items] == ['Milk', 'Bread']
    assert receipt.items_total == Decimal('6.48')
    assert receipt.field_lines == {'merchant': 0, 'date': 4, 'total': 3}
    assert receipt.raw_lines == walmart_lines


def test_subtotal_and_tax(reference_date):
    receipt = ReceiptParser().parse(_lines(
        'Corner Market', 'Milk 2.99', 'Subtotal 2.99', 'Sales Tax 0.24', 'Total 3.23'),
        reference_date=reference_date)

    assert receipt.subtotal == Decimal('2.99')
    assert receipt.tax == Decimal('0.24')
    assert receipt.total == Decimal('3.23')
    assert len(receipt.line_items) == 1


def test_parse_confidence():
    lines = _lines('Milk 2.99', 'Bread 3.49', confidence=1.0)
    receipt = ReceiptParser().parse(lines, reference_date=REFERENCE)

    # 0.4 * 1.0 + 0.3 * (2 / 5) + 0.3 * 1.0
    assert receipt.confidence == pytest.approx(0.82)


@pytest.mark.parametrize('texts', [
    [],
    [''],
    ['$$$', '...', '0.00.00'],
    ['TOTAL'],
    ['x' * 500],
])
def test_malformed_input_never_raises(texts):
    receipt = ReceiptParser().parse(_lines(*texts), reference_date=REFERENCE)
    assert receipt.total is None


def test_parse_text():
    receipt = ReceiptParser().parse_text('Walmart\nMilk 2.99\nTotal 2.99', confidence=0.95,
                                         reference_date=REFERENCE)
    assert receipt.merchant == 'Walmart'
    assert receipt.total == Decimal('2.99')
