"""
Tesseract OCR engine implementation.
"""

import io
import logging
from typing import Dict, List, Optional, Tuple

import pytesseract
from pytesseract import Output, TesseractError, TesseractNotFoundError
from PIL import Image, UnidentifiedImageError

from .base_ocr import (
    BaseOCR,
    EngineLine,
    EngineOutput,
    EngineWord,
    OcrError,
    OcrOptions,
    OCREngineType,
)

logger = logging.getLogger(__name__)


class TesseractOCR(BaseOCR):
    """
    OCR engine using Tesseract.

    Holds no per-call state; the executable path is process-wide in pytesseract
    and is set once at construction.
    """

    engine_type = OCREngineType.TESSERACT

    def __init__(self, tesseract_cmd: Optional[str] = None):
        """
        Initialize Tesseract OCR.

        Args:
            tesseract_cmd: Path to Tesseract executable (optional)
        """
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def is_available(self) -> bool:
        """Check that the Tesseract binary can be executed."""
        try:
            version = pytesseract.get_tesseract_version()
            logger.debug(f"Found Tesseract {version}")
            return True
        except (TesseractNotFoundError, OSError) as e:
            logger.warning(f"Tesseract is not available: {str(e)}")
            return False

    def run(self, image_data: bytes, options: OcrOptions) -> EngineOutput:
        """
        Run image_to_data and collect words, lines and text.

        Raises:
            OcrError: If the image cannot be read, Tesseract is missing,
                fails or times out
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise OcrError(
                f"Cannot read image for OCR: {str(e)}",
                self.engine_type,
                {'error_type': 'invalid_image'}
            ) from e

        try:
            data = pytesseract.image_to_data(
                image,
                lang=options.language,
                config=options.tesseract_args,
                output_type=Output.DICT,
                timeout=options.timeout
            )
        except TesseractNotFoundError as e:
            logger.error("Tesseract executable not found")
            raise OcrError(
                "Tesseract not properly installed or configured",
                self.engine_type,
                {'error_type': 'initialization'}
            ) from e
        except TesseractError as e:
            logger.error(f"Tesseract failed: {str(e)}")
            raise OcrError(
                f"Tesseract failed: {str(e)}",
                self.engine_type,
                {'error_type': 'engine_failure', 'status': getattr(e, 'status', None)}
            ) from e
        except RuntimeError as e:
            # pytesseract kills the child process and raises RuntimeError on timeout
            logger.error(f"Tesseract timed out after {options.timeout}s")
            raise OcrError(
                f"OCR timed out after {options.timeout}s",
                self.engine_type,
                {'error_type': 'timeout', 'timeout': options.timeout}
            ) from e

        return self._build_output(data)

    @staticmethod
    def _build_output(data: Dict[str, List]) -> EngineOutput:
        """Group image_to_data rows into words and lines."""
        words: List[EngineWord] = []
        grouped: Dict[Tuple[int, int, int], List[EngineWord]] = {}

        for i, text in enumerate(data.get('text', [])):
            text = (text or '').strip()
            conf = float(data['conf'][i])
            if not text or conf < 0:
                continue

            word = EngineWord(
                text=text,
                confidence=conf,
                left=int(data['left'][i]),
                top=int(data['top'][i]),
                width=int(data['width'][i]),
                height=int(data['height'][i])
            )
            words.append(word)
            key = (int(data['block_num'][i]), int(data['par_num'][i]), int(data['line_num'][i]))
            grouped.setdefault(key, []).append(word)

        lines = []
        for key in sorted(grouped):
            line_words = grouped[key]
            lines.append(EngineLine(
                text=' '.join(w.text for w in line_words),
                confidence=sum(w.confidence for w in line_words) / len(line_words)
            ))

        overall = sum(w.confidence for w in words) / len(words) if words else None

        return EngineOutput(
            text='\n'.join(line.text for line in lines),
            confidence=overall,
            lines=lines,
            words=words
        )
