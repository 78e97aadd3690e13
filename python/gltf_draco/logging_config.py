"""
Logging configuration for the gltf_draco namespace.
"""
import logging
import sys
from typing import Optional

from .common import PathLike


def setup_logging(level: int = logging.INFO, log_file: Optional[PathLike] = None) -> logging.Logger:
    """
    Configure the 'gltf_draco' logger.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to also write logs to

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("gltf_draco")
    logger.setLevel(level)

    # Repeated calls replace the handlers instead of duplicating output
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
