"""
OCR adapter.

Runs an injected engine on a worker thread with a time limit and normalizes
its output into OcrLines through the extraction strategies.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import List, Optional, Sequence, Tuple

from models.image import PreprocessedImage
from models.ocr_line import OcrLine
from .base_ocr import BaseOCR, OcrError, OcrOptions
from .extraction import DEFAULT_STRATEGIES, ExtractionStrategy, extract_lines

logger = logging.getLogger(__name__)


class OcrAdapter:
    """Time-boxed access to a text recognition engine."""

    def __init__(self, engine: BaseOCR, max_workers: int = 2,
                 default_options: Optional[OcrOptions] = None,
                 strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES):
        """
        Args:
            engine: Engine implementation, shared by all worker threads
            max_workers: Number of concurrent engine calls
            default_options: Options used when a call passes none
            strategies: Extraction strategies, tried in order
        """
        self.engine = engine
        self.default_options = default_options or OcrOptions()
        self.strategies = tuple(strategies)
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix='ocr-worker')

    def recognize(self, image: PreprocessedImage,
                  options: Optional[OcrOptions] = None) -> List[OcrLine]:
        """
        Recognize text lines in an image.

        Raises:
            OcrError: If the engine fails or exceeds the timeout
        """
        lines, _ = self.recognize_with_details(image, options)
        return lines

    def recognize_with_details(self, image: PreprocessedImage,
                               options: Optional[OcrOptions] = None
                               ) -> Tuple[List[OcrLine], Optional[str]]:
        """
        Recognize text lines and report which extraction strategy produced them.

        Returns:
            Tuple of (lines, strategy name); the name is None when nothing was read
        """
        options = options or self.default_options
        engine_type = getattr(self.engine, 'engine_type', None)
        start_time = time.time()

        future = self._executor.submit(self.engine.run, image.data, options)
        try:
            output = future.result(timeout=options.timeout)
        except FutureTimeoutError as e:
            future.cancel()
            logger.error(f"OCR timed out after {options.timeout}s")
            raise OcrError(
                f"OCR timed out after {options.timeout}s",
                engine_type,
                {'error_type': 'timeout', 'timeout': options.timeout}
            ) from e
        except OcrError:
            raise
        except Exception as e:
            logger.error(f"OCR engine failed: {str(e)}")
            raise OcrError(
                f"OCR engine failed: {str(e)}",
                engine_type,
                {'error_type': 'engine_failure'}
            ) from e

        lines, strategy = extract_lines(output, self.strategies)
        elapsed = time.time() - start_time

        if not lines:
            logger.warning(f"No text recognized ({elapsed:.2f}s)")
        else:
            logger.info(f"Recognized {len(lines)} lines via {strategy} in {elapsed:.2f}s")

        return lines, strategy

    def close(self):
        """Stop the worker pool without waiting for running engine calls."""
        self._executor.shutdown(wait=False)

    def __enter__(self) -> 'OcrAdapter':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
