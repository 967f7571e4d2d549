"""
Состояние и метрики воркеров пула.
"""

from enum import Enum
from typing import Optional
from dataclasses import dataclass
from datetime import datetime


class WorkerStatus(Enum):
    """Статусы воркеров."""
    CREATED = "created"
    CONNECTING = "connecting"
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class WorkerMetrics:
    """Метрики воркера."""

    jobs_completed: int = 0
    jobs_failed: int = 0
    reconnects: int = 0
    total_execution_time: float = 0.0
    average_execution_time: float = 0.0
    last_job_at: Optional[datetime] = None

    def update_execution_time(self, execution_time: float):
        """Обновление после успешной задачи."""
        self.jobs_completed += 1
        self.total_execution_time += execution_time
        self.average_execution_time = self.total_execution_time / self.jobs_completed
        self.last_job_at = datetime.now()

    def update_failure(self):
        """Обновление после неудачной задачи."""
        self.jobs_failed += 1
        self.last_job_at = datetime.now()

    def get_success_rate(self) -> float:
        """Процент успешных задач."""
        total = self.jobs_completed + self.jobs_failed
        if total == 0:
            return 0.0
        return (self.jobs_completed / total) * 100
