#!/usr/bin/env python3
"""
Command line entry point: scan a receipt image and print the result as JSON.
"""

import argparse
import datetime
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from config.ocr_config import OCRConfig
from ocr import create_ocr_adapter
from ocr.base_ocr import OcrError
from services.receipt_service import ProcessingOptions, ReceiptService
from utils.image_preprocessor import OPERATION_ORDER, ImagePreprocessor, PreprocessingLevel
from utils.image_validator import ValidationError
from utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID_IMAGE = 2
EXIT_OCR_FAILED = 3


def parse_date(date_str: str) -> datetime.date:
    """Parse a date string in YYYY-MM-DD format."""
    try:
        return datetime.datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date format: {date_str}. Expected format: YYYY-MM-DD")


def parse_override(value: str) -> tuple:
    """Parse an operation toggle such as ``deskew=on``."""
    name, _, flag = value.partition('=')
    if name not in OPERATION_ORDER:
        raise argparse.ArgumentTypeError(
            f"Unknown operation '{name}'. Choose from: {', '.join(OPERATION_ORDER)}")
    if flag.lower() not in ('on', 'off', 'true', 'false', '1', '0'):
        raise argparse.ArgumentTypeError(f"Expected {name}=on or {name}=off")
    return name, flag.lower() in ('on', 'true', '1')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract structured data from a receipt photo")
    parser.add_argument("image", help="Path to the receipt image")
    parser.add_argument("--level", choices=[level.value for level in PreprocessingLevel],
                        help="Preprocessing level (default from OCR_PREPROCESSING_LEVEL)")
    parser.add_argument("--op", dest="overrides", action="append", type=parse_override, default=[],
                        metavar="NAME=on|off", help="Toggle a single preprocessing operation")
    parser.add_argument("--no-preprocess", action="store_true", help="Skip image enhancement")
    parser.add_argument("--no-validate", action="store_true", help="Skip the image quality check")
    parser.add_argument("--timeout", type=float, help="OCR timeout in seconds")
    parser.add_argument("--reference-date", type=parse_date,
                        help="Date treated as today when checking receipt dates (YYYY-MM-DD)")
    parser.add_argument("--ocr-only", action="store_true", help="Print recognized lines without parsing")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging and save debug images")
    parser.add_argument("--debug-dir", default="debug_output", help="Directory for debug images")
    parser.add_argument("--log-dir", default="logs", help="Directory for log files")
    parser.add_argument("--no-log-files", action="store_true", help="Log to the console only")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    setup_logging(
        log_dir=args.log_dir,
        debug_mode=args.debug,
        log_to_file=not args.no_log_files,
        json_format=args.json_logs
    )

    config = OCRConfig()
    try:
        config.validate()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: Invalid OCR configuration: {e}", file=sys.stderr)
        return EXIT_OCR_FAILED

    try:
        with open(args.image, 'rb') as f:
            data = f.read()
    except OSError as e:
        print(f"Error: Cannot read {args.image}: {e}", file=sys.stderr)
        return EXIT_INVALID_IMAGE

    options = ProcessingOptions(
        preprocess=not args.no_preprocess,
        validate_quality=not args.no_validate,
        preprocessing_level=args.level or config.preprocessing_level,
        preprocessing_overrides=dict(args.overrides),
        ocr_timeout=args.timeout
    )

    service = ReceiptService(
        create_ocr_adapter(config),
        preprocessor=ImagePreprocessor(debug_mode=args.debug, debug_output_dir=args.debug_dir)
    )

    with service:
        try:
            if args.ocr_only:
                result = service.process_image(data, options)
            else:
                result = service.process_receipt(data, options, reference_date=args.reference_date)
        except ValidationError as e:
            print(str(e), file=sys.stderr)
            print(json.dumps(e.report.model_dump(mode='json'), indent=2))
            return EXIT_INVALID_IMAGE
        except OcrError as e:
            logger.error(f"OCR failed: {str(e)}")
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_OCR_FAILED

    print(json.dumps(result.model_dump(mode='json'), indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
