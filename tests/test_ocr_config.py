"""Tests for Tesseract OCR configuration."""
import pytest

from config.ocr_config import OCRConfig
from ocr.base_ocr import OcrOptions

ENV_KEYS = ('TESSERACT_CMD', 'OCR_LANGUAGE', 'OCR_PSM', 'OCR_OEM', 'OCR_TIMEOUT',
            'OCR_MAX_WORKERS', 'OCR_PREPROCESSING_LEVEL')


@pytest.fixture
def mock_env(tmp_path):
    """Create a mock environment with a fake tesseract binary."""
    binary = tmp_path / "tesseract"
    binary.write_text("")

    test_env = {
        'TESSERACT_CMD': str(binary),
        'OCR_LANGUAGE': 'deu',
        'OCR_PSM': '4',
        'OCR_OEM': '1',
        'OCR_TIMEOUT': '30',
        'OCR_MAX_WORKERS': '4',
        'OCR_PREPROCESSING_LEVEL': 'full'
    }

    with pytest.MonkeyPatch().context() as mp:
        for key, value in test_env.items():
            mp.setenv(key, value)
        yield test_env


@pytest.fixture
def clean_env():
    with pytest.MonkeyPatch().context() as mp:
        for key in ENV_KEYS:
            mp.delenv(key, raising=False)
        yield


def test_init_with_env(mock_env):
    """Test initialization with environment variables."""
    config = OCRConfig()

    assert config.tesseract_cmd == mock_env['TESSERACT_CMD']
    assert config.language == 'deu'
    assert config.psm == 4
    assert config.oem == 1
    assert config.timeout == 30
    assert config.max_workers == 4
    assert config.preprocessing_level == 'full'


def test_init_defaults(clean_env):
    """Test initialization with default values."""
    config = OCRConfig()

    assert config.tesseract_cmd is None
    assert config.language == 'eng'
    assert config.psm == 6
    assert config.oem == 3
    assert config.timeout == 60
    assert config.max_workers == 2
    assert config.preprocessing_level == 'standard'


def test_is_configured(mock_env):
    config = OCRConfig()
    assert config.is_configured is True

    config.tesseract_cmd = '/nonexistent/tesseract'
    assert config.is_configured is False


def test_validate(mock_env):
    config = OCRConfig()
    config.validate()

    config.tesseract_cmd = '/nonexistent/tesseract'
    with pytest.raises(FileNotFoundError):
        config.validate()


@pytest.mark.parametrize('attr,value', [
    ('timeout', 0),
    ('max_workers', 0),
    ('psm', 14),
    ('oem', 4),
    ('preprocessing_level', 'extreme'),
])
def test_validate_rejects_bad_values(clean_env, attr, value):
    config = OCRConfig()
    setattr(config, attr, value)
    with pytest.raises(ValueError):
        config.validate()


def test_dict_round_trip(mock_env):
    config = OCRConfig()
    restored = OCRConfig.from_dict(config.to_dict())
    assert restored.to_dict() == config.to_dict()


def test_from_dict_overrides(clean_env):
    config = OCRConfig.from_dict({'psm': 11, 'timeout': 5, 'preprocessing_level': 'quick'})

    assert config.psm == 11
    assert config.timeout == 5.0
    assert config.preprocessing_level == 'quick'
    assert config.language == 'eng'


def test_ocr_options_from_config(mock_env):
    options = OcrOptions.from_config(OCRConfig())
    assert options == OcrOptions(language='deu', psm=4, oem=1, timeout=30.0)
    assert options.tesseract_args == '--psm 4 --oem 1'
