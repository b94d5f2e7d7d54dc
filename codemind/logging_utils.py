"""
Logging utilities for CodeMind.
"""

import logging
import os
import sys
from logging.config import dictConfig
from pathlib import Path
from typing import Dict, Optional, Any, Union

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DETAILED_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_logging_config(log_file: Optional[Union[str, Path]] = None, level: str = "INFO",
                         console_level: str = "WARNING") -> Dict[str, Any]:
    """
    Build a dictConfig mapping with a console handler and, if log_file is given,
    a rotating file handler.

    The console defaults to WARNING so log records do not interleave with the
    chat transcript; the file receives everything at ``level``.
    """
    handlers: Dict[str, Any] = {
        'console': {
            'level': console_level.upper(),
            'formatter': 'standard',
            'class': 'logging.StreamHandler',
            'stream': sys.stderr,
        },
    }
    if log_file:
        handlers['file'] = {
            'level': level.upper(),
            'formatter': 'detailed',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': str(log_file),
            'maxBytes': 10485760,  # 10MB
            'backupCount': 5,
            'encoding': 'utf8',
        }

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {'format': DEFAULT_LOG_FORMAT},
            'detailed': {'format': DETAILED_LOG_FORMAT},
        },
        'handlers': handlers,
        'loggers': {
            '': {
                'handlers': list(handlers),
                'level': level.upper(),
                'propagate': True,
            },
            'google_genai': {'level': 'WARNING'},
            'httpx': {'level': 'WARNING'},
        },
    }


def configure_logging(log_file: Optional[Union[str, Path]] = None, level: str = "INFO",
                      console_level: str = "WARNING") -> None:
    """
    Configure logging for the application.

    Args:
        log_file: Path of the rotating log file; its directory is created. None disables file logging.
        level: Root and file level.
        console_level: Level of the stderr handler.
    """
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(str(log_file))), exist_ok=True)
    dictConfig(build_logging_config(log_file, level, console_level))

    logger = logging.getLogger(__name__)
    logger.info("Logging configured successfully")
    if log_file:
        logger.debug(f"Log file: {log_file}")
