"""Test configuration and fixtures."""
import datetime

import cv2
import numpy as np
import pytest

from models.image import RawImage
from models.ocr_line import OcrLine
from ocr.base_ocr import BaseOCR, EngineOutput, EngineLine, OCREngineType


def encode(array: np.ndarray, ext: str = '.png') -> bytes:
    ok, buffer = cv2.imencode(ext, array)
    assert ok
    return buffer.tobytes()


def noise_image(width: int = 1000, height: int = 800, low: int = 60, high: int = 200,
                seed: int = 0) -> np.ndarray:
    """Uniform noise: sharp, high contrast and incompressible so PNG stays large."""
    rng = np.random.default_rng(seed)
    return rng.integers(low, high, (height, width), dtype=np.uint8)


class FakeEngine(BaseOCR):
    """Engine returning a canned output and recording calls."""

    engine_type = OCREngineType.TESSERACT

    def __init__(self, output: EngineOutput = None, error: Exception = None):
        self.output = output or EngineOutput()
        self.error = error
        self.calls = []

    def run(self, image_data, options):
        self.calls.append((image_data, options))
        if self.error:
            raise self.error
        return self.output


@pytest.fixture
def fake_engine():
    """The FakeEngine class, for tests that build their own outputs."""
    return FakeEngine


@pytest.fixture
def valid_png():
    """1000x800 noisy grayscale PNG, well above every validation minimum."""
    return encode(noise_image())


@pytest.fixture
def valid_image(valid_png):
    return RawImage.from_bytes(valid_png)


@pytest.fixture
def blurry_png():
    img = cv2.GaussianBlur(noise_image(), (0, 0), 8)
    # Re-add faint noise so the file stays above the size minimum
    rng = np.random.default_rng(1)
    img = cv2.add(img, rng.integers(0, 2, img.shape, dtype=np.uint8))
    return encode(img)


@pytest.fixture
def low_res_png():
    return encode(noise_image(300, 200))


@pytest.fixture
def dark_png():
    return encode(noise_image(low=0, high=40))


@pytest.fixture
def receipt_like_image():
    """White page with dark text rows, rotated a few degrees."""
    img = np.full((900, 700), 235, dtype=np.uint8)
    for i, text in enumerate(['WALMART', 'MILK 2.99', 'BREAD 3.49', 'TOTAL 6.48', '01/15/2024']):
        cv2.putText(img, text, (60, 120 + i * 120), cv2.FONT_HERSHEY_SIMPLEX, 2.0, 20, 5)
    matrix = cv2.getRotationMatrix2D((350, 450), 4, 1.0)
    img = cv2.warpAffine(img, matrix, (700, 900), borderMode=cv2.BORDER_REPLICATE)
    return RawImage.from_bytes(encode(img))


@pytest.fixture
def reference_date():
    return datetime.date(2024, 6, 1)


@pytest.fixture
def walmart_lines():
    texts = ["Walmart", "Milk 2.99", "Bread 3.49", "Total $6.48", "01/15/2024"]
    return [OcrLine(text=t, confidence=0.9) for t in texts]


@pytest.fixture
def walmart_engine(walmart_lines):
    return FakeEngine(EngineOutput(
        text='\n'.join(line.text for line in walmart_lines),
        confidence=90.0,
        lines=[EngineLine(text=line.text, confidence=90.0) for line in walmart_lines]
    ))
