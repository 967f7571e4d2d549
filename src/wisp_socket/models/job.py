"""
Модели задач для пула соединений.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Dict
from dataclasses import dataclass, field
from datetime import datetime

from ..exceptions import JobError


class JobStatus(Enum):
    """Статусы задач."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Функция задачи получает воркера и возвращает awaitable с результатом
JobFunction = Callable[[Any], Awaitable[Any]]


@dataclass
class Job:
    """
    Единица работы пула.

    Функция задачи вызывается ровно одним воркером; результат или ошибка
    доставляются вызывающему коду через ``future``.
    """

    func: JobFunction = None
    name: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    future: Optional[asyncio.Future] = None
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    worker_index: Optional[int] = None
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Валидация после инициализации."""
        if not self.func:
            raise ValueError("Job function is required")
        if not callable(self.func):
            raise ValueError("Job function must be callable")
        if self.future is None:
            self.future = asyncio.get_running_loop().create_future()
        if not self.name:
            self.name = getattr(self.func, "__name__", "job")

    def claim(self, worker_index: int):
        """Захват задачи воркером. Задачу можно захватить только один раз."""
        if self.status != JobStatus.PENDING:
            raise JobError(f"Job {self.id} already claimed (status: {self.status.value})")
        self.status = JobStatus.RUNNING
        self.worker_index = worker_index
        self.started_at = datetime.now()

    def complete(self, result: Any):
        """Успешное завершение."""
        self._settle(JobStatus.COMPLETED)
        if not self.future.done():
            self.future.set_result(result)

    def fail(self, error: BaseException):
        """Завершение с ошибкой."""
        self._settle(JobStatus.FAILED)
        self.error = error
        if not self.future.done():
            self.future.set_exception(error)

    def _settle(self, status: JobStatus):
        if self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED):
            raise JobError(f"Job {self.id} already settled (status: {self.status.value})")
        self.status = status
        self.completed_at = datetime.now()

    def is_done(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)

    def get_execution_time(self) -> float:
        """Время выполнения в секундах."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0
