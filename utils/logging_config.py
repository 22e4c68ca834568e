#!/usr/bin/env python3
"""
Logging configuration for the Guesty sync system.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from config import VERBOSE

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Project loggers that always emit DEBUG records to the configured handlers
PROJECT_LOGGERS = ('sync', 'calendars', 'importers')

# Third-party loggers and the minimum level worth showing
THIRD_PARTY_LEVELS = {
    'urllib3': logging.WARNING,
    'sqlalchemy': logging.WARNING,
    'werkzeug': logging.INFO,  # Flask request logs
}


def setup_logging(log_file: Optional[str] = None, verbose: Optional[bool] = None) -> None:
    """
    Configure root logging for CLI runs and the Flask app.

    Args:
        log_file: Optional path to log file. If None, logs only to console.
        verbose: DEBUG on the root logger when true. Defaults to the VERBOSE setting.
    """
    if verbose is None:
        verbose = VERBOSE

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    # force=True replaces handlers left by an earlier call (e.g. CLI then app factory)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True
    )

    for name in PROJECT_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG)

    for name, level in THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(level)
