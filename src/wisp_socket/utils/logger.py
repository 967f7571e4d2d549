"""
Система логирования для пула соединений.
"""

import logging
import sys
from typing import Any, Optional, Union
from pathlib import Path


class WispFormatter(logging.Formatter):
    """Кастомный форматтер для логов пула соединений."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    enable_console: bool = True,
    log_format: Optional[str] = None
):
    """
    Настройка системы логирования.

    Args:
        level: Уровень логирования
        log_file: Путь к файлу логов
        enable_console: Включить вывод в консоль
        log_format: Кастомный формат логов
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if log_format:
        formatter = logging.Formatter(log_format)
    else:
        formatter = WispFormatter()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Транспортные библиотеки слишком болтливы
    for name in ('socketio', 'engineio', 'urllib3', 'requests'):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Получение логгера для модуля.

    Args:
        name: Имя модуля

    Returns:
        Объект логгера
    """
    return logging.getLogger(name)


class PrefixedLogger(logging.LoggerAdapter):
    """
    Логгер с префиксом владельца (``[Pool]``, ``[Worker #3]``).

    Отладочные сообщения пишутся только при включенном ``debug_enabled``.
    Принимает как ``logging.Logger``, так и любой совместимый объект.
    """

    def __init__(self, logger: Any, prefix: str, debug_enabled: bool = False):
        super().__init__(logger, {})
        self.prefix = prefix
        self.debug_enabled = debug_enabled

    def process(self, msg, kwargs):
        return f"{self.prefix} {msg}", kwargs

    def debug(self, msg, *args, **kwargs):
        if not self.debug_enabled:
            return
        super().debug(msg, *args, **kwargs)

    def child(self, prefix: str) -> 'PrefixedLogger':
        """Логгер с другим префиксом поверх того же логгера."""
        return PrefixedLogger(self.logger, prefix, self.debug_enabled)
