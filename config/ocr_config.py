"""Configuration settings for the Tesseract OCR engine."""
import os
import shutil
from typing import Optional

VALID_LEVELS = ('quick', 'standard', 'full')


class OCRConfig:
    """Configuration class for Tesseract OCR settings."""

    def __init__(self):
        """Initialize OCR configuration from the environment."""
        self.tesseract_cmd: Optional[str] = os.getenv('TESSERACT_CMD')
        self.language: str = os.getenv('OCR_LANGUAGE', 'eng')
        self.psm: int = int(os.getenv('OCR_PSM', '6'))
        self.oem: int = int(os.getenv('OCR_OEM', '3'))
        self.timeout: float = float(os.getenv('OCR_TIMEOUT', '60'))
        self.max_workers: int = int(os.getenv('OCR_MAX_WORKERS', '2'))
        self.preprocessing_level: str = os.getenv('OCR_PREPROCESSING_LEVEL', 'standard')

    @property
    def is_configured(self) -> bool:
        """Check if a Tesseract executable can be located."""
        if self.tesseract_cmd:
            return os.path.exists(self.tesseract_cmd)
        return shutil.which('tesseract') is not None

    def validate(self) -> None:
        """Validate the configuration settings."""
        if self.tesseract_cmd and not os.path.exists(self.tesseract_cmd):
            raise FileNotFoundError(f"Tesseract executable not found at: "
                                    f"{self.tesseract_cmd}")

        if self.timeout <= 0:
            raise ValueError("Timeout must be greater than zero")

        if self.max_workers < 1:
            raise ValueError("Max workers must be at least 1")

        if not 0 <= self.psm <= 13:
            raise ValueError("Page segmentation mode must be between 0 and 13")

        if not 0 <= self.oem <= 3:
            raise ValueError("OCR engine mode must be between 0 and 3")

        if self.preprocessing_level not in VALID_LEVELS:
            raise ValueError(f"Preprocessing level must be one of {', '.join(VALID_LEVELS)}")

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            'tesseract_cmd': self.tesseract_cmd,
            'language': self.language,
            'psm': self.psm,
            'oem': self.oem,
            'timeout': self.timeout,
            'max_workers': self.max_workers,
            'preprocessing_level': self.preprocessing_level
        }

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'OCRConfig':
        """Create configuration from dictionary."""
        instance = cls()

        if config_dict.get('tesseract_cmd'):
            instance.tesseract_cmd = config_dict['tesseract_cmd']

        if config_dict.get('language'):
            instance.language = config_dict['language']

        if config_dict.get('psm') is not None:
            instance.psm = int(config_dict['psm'])

        if config_dict.get('oem') is not None:
            instance.oem = int(config_dict['oem'])

        if config_dict.get('timeout'):
            instance.timeout = float(config_dict['timeout'])

        if config_dict.get('max_workers'):
            instance.max_workers = int(config_dict['max_workers'])

        if config_dict.get('preprocessing_level'):
            instance.preprocessing_level = config_dict['preprocessing_level']

        return instance
