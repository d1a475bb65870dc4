"""Centralized logging configuration for PyATN."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

# Create logger
logger = logging.getLogger('pyatn')
logger.setLevel(logging.DEBUG)

# Create console handler with formatting
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)

# Create formatter
formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_handler.setFormatter(formatter)

# Add handler to logger
logger.addHandler(console_handler)


def add_file_handler(path: Union[str, Path], level: int = logging.DEBUG) -> logging.FileHandler:
    """Also write package log records to a file.

    Parameters
    ----------
    path : str or Path
        Log file; its parent directory is created if needed
    level : int
        Minimum level written to the file

    Returns
    -------
    logging.FileHandler
        The attached handler (pass it to ``logger.removeHandler`` to detach)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    return file_handler


def set_console_level(level: int) -> None:
    console_handler.setLevel(level)


def get_logger(name: Optional[str] = None):
    """Get a logger instance.

    Parameters
    ----------
    name : str, optional
        Logger name (typically __name__). If None, returns root package logger.

    Returns
    -------
    logging.Logger
        Configured logger instance
    """
    if name:
        if name == 'pyatn' or name.startswith('pyatn.'):
            return logging.getLogger(name)
        return logging.getLogger(f'pyatn.{name}')
    return logger
