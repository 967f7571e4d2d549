"""
Менеджер переподключений с экспоненциальным backoff.
"""

import asyncio
import random
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..utils.logger import get_logger
from ..exceptions import RetryExhaustedError, WispConnectionError


logger = get_logger(__name__)


class BackoffStrategy(Enum):
    """Стратегии backoff."""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"
    RANDOM = "random"


@dataclass
class RetryConfig:
    """Конфигурация переподключений."""
    max_retries: int = 3
    base_delay: float = 0.5  # Базовая задержка в секундах
    max_delay: float = 3.0  # Максимальная задержка в секундах
    exponential_base: float = 2.0
    jitter: bool = False
    jitter_factor: float = 0.1
    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    retry_on_exceptions: Optional[List[type]] = field(default_factory=lambda: [WispConnectionError])
    stop_on_exceptions: Optional[List[type]] = None
    history_limit: int = 100  # Сколько последних повторов хранить в истории


@dataclass
class RetryAttempt:
    """Информация о попытке."""
    attempt_number: int
    delay: float
    timestamp: datetime
    exception: Optional[BaseException] = None
    operation: str = ""


class RetryManager:
    """Повтор асинхронной операции с заданной стратегией backoff."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self._history: Deque[RetryAttempt] = deque(maxlen=self.config.history_limit)
        self._stats = {
            'total_retries': 0,
            'successful_operations': 0,
            'failed_operations': 0
        }

    def should_retry(self, attempt: int, exception: BaseException) -> bool:
        """
        Определение необходимости повтора.

        Args:
            attempt: Номер уже выполненной попытки (начиная с 1)
            exception: Исключение последней попытки
        """
        if attempt > self.config.max_retries:
            return False

        return self._is_retryable_type(exception)

    def calculate_delay(self, attempt_number: int) -> float:
        """
        Расчет задержки перед следующей попыткой.

        Args:
            attempt_number: Номер повтора (начиная с 1)

        Returns:
            Задержка в секундах
        """
        if attempt_number <= 0:
            return self.config.base_delay

        if self.config.strategy == BackoffStrategy.FIXED:
            delay = self.config.base_delay
        elif self.config.strategy == BackoffStrategy.LINEAR:
            delay = self.config.base_delay * attempt_number
        elif self.config.strategy == BackoffStrategy.EXPONENTIAL:
            delay = self.config.base_delay * (self.config.exponential_base ** (attempt_number - 1))
        elif self.config.strategy == BackoffStrategy.RANDOM:
            delay = random.uniform(self.config.base_delay, self.config.max_delay)
        else:
            delay = self.config.base_delay

        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            jitter_amount = delay * self.config.jitter_factor
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)

        return delay

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        name: str = "",
        before_retry: Optional[Callable[[int], Awaitable[None]]] = None
    ) -> Any:
        """
        Выполнение операции с повторами.

        Args:
            operation: Фабрика корутины, вызывается на каждую попытку
            name: Имя операции для логов
            before_retry: Хук, вызываемый перед каждым повтором (номер повтора)

        Returns:
            Результат операции

        Raises:
            RetryExhaustedError: Если исчерпаны все попытки
        """
        name = name or getattr(operation, "__name__", "operation")
        attempt = 0

        while True:
            attempt += 1
            try:
                result = await operation()
            except Exception as e:
                logger.warning(f"{name} failed on attempt {attempt}: {e}")

                if not self.should_retry(attempt, e):
                    self._stats['failed_operations'] += 1
                    if not self._is_retryable_type(e):
                        raise
                    raise RetryExhaustedError(f"{name} failed after {attempt} attempts: {e}") from e

                delay = self.calculate_delay(attempt)
                self._record_attempt(attempt, delay, e, name)
                logger.info(f"Retrying {name} in {delay:.2f} seconds (attempt {attempt + 1})")
                await asyncio.sleep(delay)

                if before_retry:
                    await before_retry(attempt)
                continue

            self._stats['successful_operations'] += 1
            if attempt > 1:
                logger.info(f"{name} succeeded after {attempt} attempts")
            return result

    def _is_retryable_type(self, exception: BaseException) -> bool:
        if self.config.stop_on_exceptions:
            if any(isinstance(exception, exc_type) for exc_type in self.config.stop_on_exceptions):
                return False
        if not self.config.retry_on_exceptions:
            return True
        return any(isinstance(exception, exc_type) for exc_type in self.config.retry_on_exceptions)

    def _record_attempt(self, attempt_number: int, delay: float, exception: BaseException, name: str):
        self._stats['total_retries'] += 1
        self._history.append(RetryAttempt(
            attempt_number=attempt_number,
            delay=delay,
            timestamp=datetime.now(),
            exception=exception,
            operation=name
        ))

    def get_history(self) -> List[RetryAttempt]:
        """История повторов."""
        return list(self._history)

    def get_stats(self) -> Dict[str, Any]:
        """Статистика повторов."""
        stats = self._stats.copy()
        if self._history:
            stats['average_delay'] = sum(a.delay for a in self._history) / len(self._history)
            stats['max_delay_used'] = max(a.delay for a in self._history)
        else:
            stats['average_delay'] = 0.0
            stats['max_delay_used'] = 0.0
        return stats

    def clear_history(self):
        """Очистка истории."""
        self._history.clear()
        self._stats = {
            'total_retries': 0,
            'successful_operations': 0,
            'failed_operations': 0
        }

    def __repr__(self) -> str:
        return f"RetryManager(retries={self._stats['total_retries']}, config={self.config})"
