"""
Утилиты пакета.
"""

from .logger import setup_logging, get_logger, PrefixedLogger

__all__ = [
    "setup_logging",
    "get_logger",
    "PrefixedLogger"
]
