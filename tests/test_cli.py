"""Tests for the command line entry point."""
import argparse
import json
from unittest import mock

import pytest

import cli
from ocr.ocr_adapter import OcrAdapter


@pytest.fixture
def image_file(tmp_path, valid_png):
    path = tmp_path / 'receipt.png'
    path.write_bytes(valid_png)
    return path


@pytest.fixture
def fake_adapter(walmart_engine):
    with mock.patch('cli.create_ocr_adapter', return_value=OcrAdapter(walmart_engine)) as factory:
        yield factory


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv('TESSERACT_CMD', raising=False)
    monkeypatch.delenv('OCR_PREPROCESSING_LEVEL', raising=False)


def test_parse_override():
    assert cli.parse_override('deskew=on') == ('deskew', True)
    assert cli.parse_override('sharpen=off') == ('sharpen', False)
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_override('binarize=on')
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_override('deskew=maybe')


def test_scan_prints_json(fake_adapter, image_file, capsys):
    code = cli.main([str(image_file), '--no-log-files', '--reference-date', '2024-06-01',
                     '--level', 'quick', '--op', 'deskew=on'])

    assert code == cli.EXIT_OK
    output = json.loads(capsys.readouterr().out)
    assert output['receipt']['merchant'] == 'Walmart'
    assert output['receipt']['total'] == '6.48'
    assert output['ocr']['processing_applied'] == [
        'validation', 'grayscale', 'normalize', 'deskew', 'ocr-native-lines'
    ]


def test_ocr_only(fake_adapter, image_file, capsys):
    code = cli.main([str(image_file), '--no-log-files', '--ocr-only'])

    assert code == cli.EXIT_OK
    output = json.loads(capsys.readouterr().out)
    assert 'receipt' not in output
    assert output['lines'][0]['text'] == 'Walmart'


def test_invalid_image_exit_code(fake_adapter, tmp_path, low_res_png, capsys):
    path = tmp_path / 'small.png'
    path.write_bytes(low_res_png)

    code = cli.main([str(path), '--no-log-files'])

    assert code == cli.EXIT_INVALID_IMAGE
    captured = capsys.readouterr()
    assert 'resolution too low' in captured.err
    assert json.loads(captured.out)['is_valid'] is False


def test_missing_file(fake_adapter, tmp_path):
    assert cli.main([str(tmp_path / 'missing.png'), '--no-log-files']) == cli.EXIT_INVALID_IMAGE
