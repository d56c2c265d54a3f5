"""Logging setup for the receipt scanning pipeline."""

import os
import logging.config
import json
from datetime import datetime
from typing import Dict, Any, Optional

PIPELINE_LOGGERS = ('ocr', 'utils', 'services')

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Per-day file name prefix -> (minimum level, formatter)
LOG_FILES = {
    'error': ('ERROR', 'detailed'),
    'info': ('INFO', 'plain'),
    'debug': ('DEBUG', 'detailed'),
}


def _rotating_file(path: str, level: str, formatter: str) -> Dict[str, Any]:
    return {
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': path,
        'level': level,
        'formatter': formatter,
        'maxBytes': MAX_LOG_BYTES,
        'backupCount': LOG_BACKUPS,
    }


def setup_logging(
    log_dir: str = 'logs',
    debug_mode: bool = False,
    log_to_file: bool = True,
    json_format: bool = False
) -> None:
    """
    Configure console and file logging for a scanning run.

    Console output always goes to stderr. With ``log_to_file`` the root logger
    also writes rotating error and info files under ``log_dir``, plus a debug
    file when ``debug_mode`` is on. ``json_format`` switches the console and
    info file to one JSON object per record.
    """
    level = 'DEBUG' if debug_mode else 'INFO'
    record_format = 'json' if json_format else 'plain'

    handlers = {
        'console': {
            'class': 'logging.StreamHandler',
            'level': level,
            'formatter': record_format,
            'stream': 'ext://sys.stderr',
        }
    }

    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)
        day = datetime.now().strftime('%Y%m%d')
        for prefix, (file_level, formatter) in LOG_FILES.items():
            if prefix == 'debug' and not debug_mode:
                continue
            if prefix == 'info':
                formatter = record_format
            path = os.path.join(log_dir, f'{prefix}_{day}.log')
            handlers[f'{prefix}_file'] = _rotating_file(path, file_level, formatter)

    loggers = {name: {'level': level, 'propagate': True} for name in PIPELINE_LOGGERS}

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'},
            'detailed': {'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s'},
            'json': {'()': 'utils.logging_config.JsonFormatter'},
        },
        'handlers': handlers,
        'root': {'level': level, 'handlers': list(handlers)},
        'loggers': loggers,
    })

    logging.getLogger(__name__).debug(f"Logging to {', '.join(handlers)}")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with any ``data`` context attached."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        context = getattr(record, 'data', None)
        if context is not None:
            payload['data'] = context
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    context: Optional[Dict[str, Any]] = None,
    **kwargs
) -> None:
    """Log ``msg`` with ``context`` stored on the record as ``data``."""
    if context:
        kwargs['extra'] = {**kwargs.get('extra', {}), 'data': context}
    logger.log(level, msg, **kwargs)


def get_logger(name: str) -> logging.Logger:
    """Logger for a pipeline module."""
    return logging.getLogger(name)
