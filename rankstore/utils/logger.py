"""
Logging setup for the rank store.

Handlers are attached once, to the package logger ``rankstore``. Module
loggers carry no handlers of their own and propagate to it, so modules that
call ``logging.getLogger(__name__)`` directly share the same output.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from rankstore.config import Config

PACKAGE_LOGGER = 'rankstore'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_package_logger() -> logging.Logger:
    """Attach console and daily file handlers to the package logger, once."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.handlers:
        return package_logger
    
    level = logging.DEBUG if Config.DEBUG else logging.INFO
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)
    
    # Empty LOG_DIR keeps logs on the console only
    if Config.LOG_DIR:
        log_dir = Path(Config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        
        file_handler = logging.FileHandler(
            log_dir / f'{PACKAGE_LOGGER}_{datetime.now():%Y%m%d}.log',
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)
    
    return package_logger


def setup_logger(name: str) -> logging.Logger:
    """Logger for ``name``, nested under the package logger when it is not already."""
    configure_package_logger()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + '.'):
        name = f'{PACKAGE_LOGGER}.{name}'
    return logging.getLogger(name)
