"""Tests for the receipt processing service. The OCR engine is faked."""
import asyncio
import datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest
from pydantic import ValidationError as PydanticValidationError

from config.ocr_config import OCRConfig
from models.confidence import OverallStatus
from ocr.base_ocr import EngineOutput, OcrError
from ocr.ocr_adapter import OcrAdapter
from services.receipt_service import (
    OcrProcessingResult,
    ProcessingOptions,
    ReceiptProcessingResult,
    ReceiptService,
)
from utils.image_validator import ValidationError


@pytest.fixture
def service(walmart_engine):
    with ReceiptService(OcrAdapter(walmart_engine)) as svc:
        yield svc


def test_process_image_audit_trail(service, valid_png):
    result = service.process_image(valid_png)

    assert isinstance(result, OcrProcessingResult)
    assert result.processing_applied == [
        'validation', 'grayscale', 'resize', 'denoise', 'clahe', 'normalize', 'sharpen',
        'ocr-native-lines'
    ]
    assert result.metadata.original_size.width == 1000
    assert result.metadata.quality.is_valid
    assert [line.text for line in result.lines][0] == 'Walmart'


def test_quick_level_without_validation(service, valid_png):
    options = ProcessingOptions(validate=False, preprocessing_level='quick')
    result = service.process_image(valid_png, options)

    assert result.processing_applied == ['grayscale', 'normalize', 'ocr-native-lines']
    assert result.metadata.quality is None


def test_no_preprocessing_sends_original_bytes(walmart_engine, valid_png):
    with ReceiptService(OcrAdapter(walmart_engine)) as svc:
        result = svc.process_image(valid_png, ProcessingOptions(preprocess=False))

    assert result.processing_applied == ['validation', 'ocr-native-lines']
    assert walmart_engine.calls[0][0] == valid_png


def test_invalid_image_rejected_before_ocr(walmart_engine, low_res_png):
    with ReceiptService(OcrAdapter(walmart_engine)) as svc:
        with pytest.raises(ValidationError) as exc_info:
            svc.process_image(low_res_png)

    assert not exc_info.value.report.is_valid
    assert walmart_engine.calls == []


def test_undecodable_bytes_rejected(service):
    with pytest.raises(ValidationError) as exc_info:
        service.process_image(b'\x00\x01garbage', ProcessingOptions(validate=False))
    assert exc_info.value.report.errors


def test_ocr_error_propagates(fake_engine, valid_png):
    engine = fake_engine(error=OcrError('Tesseract not properly installed or configured'))
    with ReceiptService(OcrAdapter(engine)) as svc:
        with pytest.raises(OcrError):
            svc.process_receipt(valid_png)


def test_timeout_option_reaches_engine(walmart_engine, valid_png):
    with ReceiptService(OcrAdapter(walmart_engine)) as svc:
        svc.process_image(valid_png, ProcessingOptions(ocr_timeout=7))

    assert walmart_engine.calls[0][1].timeout == 7


def test_process_receipt_end_to_end(service, valid_png, reference_date):
    result = service.process_receipt(valid_png, reference_date=reference_date)

    assert isinstance(result, ReceiptProcessingResult)
    assert result.receipt.merchant == 'Walmart'
    assert result.receipt.total == Decimal('6.48')
    assert result.receipt.date == datetime.date(2024, 1, 15)
    assert result.confidence.status in (OverallStatus.GOOD, OverallStatus.EXCELLENT)
    assert result.ocr_confidence == 90.0


def test_result_serializes_to_json(service, valid_png, reference_date):
    data = service.process_receipt(valid_png, reference_date=reference_date).model_dump(mode='json')

    assert data['receipt']['total'] == '6.48'
    assert data['receipt']['date'] == '2024-01-15'
    assert data['ocr']['metadata']['processed_size'] == {'width': 1000, 'height': 800}
    assert data['confidence']['status'] in ('good', 'excellent')


def test_process_receipt_async(service, valid_png, reference_date):
    result = asyncio.run(service.process_receipt_async(valid_png, reference_date=reference_date))
    assert result.receipt.total == Decimal('6.48')


def test_options_from_config(monkeypatch):
    monkeypatch.setenv('OCR_PREPROCESSING_LEVEL', 'full')
    options = ProcessingOptions.from_config(OCRConfig())

    assert options.preprocessing_level == 'full'
    assert options.validate_quality is True


def test_close_shuts_down_adapter():
    adapter = Mock()
    ReceiptService(adapter).close()
    adapter.close.assert_called_once_with()


def test_empty_ocr_output(fake_engine, valid_png, reference_date):
    with ReceiptService(OcrAdapter(fake_engine(EngineOutput()))) as svc:
        result = svc.process_receipt(valid_png, reference_date=reference_date)

    assert result.ocr.lines == []
    assert result.ocr.processing_applied[-1] == 'sharpen'
    assert result.ocr_confidence == 0
    assert result.confidence.status == OverallStatus.POOR


def test_unknown_override_rejected_when_options_built():
    with pytest.raises(PydanticValidationError) as exc_info:
        ProcessingOptions(preprocessing_overrides={'binarize': True})
    assert 'binarize' in str(exc_info.value)


def test_known_override_reaches_preprocessor(service, valid_png):
    options = ProcessingOptions(preprocessing_level='quick', preprocessing_overrides={'deskew': True})
    result = service.process_image(valid_png, options)

    assert result.processing_applied == [
        'validation', 'grayscale', 'normalize', 'deskew', 'ocr-native-lines'
    ]
