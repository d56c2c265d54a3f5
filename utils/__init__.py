"""Utility functions for receipt processing.

This package contains the image quality validator, the image preprocessor,
low-level OpenCV helpers and logging setup used by the pipeline.
"""

from .image_utils import decode_image, encode_png, get_skew_angle, deskew
from .image_validator import ImageValidator, ValidationError
from .image_preprocessor import ImagePreprocessor, PreprocessError, PreprocessingLevel

__all__ = [
    'decode_image',
    'encode_png',
    'get_skew_angle',
    'deskew',
    'ImageValidator',
    'ValidationError',
    'ImagePreprocessor',
    'PreprocessError',
    'PreprocessingLevel',
]
