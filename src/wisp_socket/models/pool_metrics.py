"""
Метрики пула соединений.
"""

from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass
from datetime import datetime


class PoolStatus(Enum):
    """Статусы пула."""
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class PoolMetrics:
    """Метрики пула соединений."""

    # Задачи
    total_jobs_submitted: int = 0
    total_jobs_completed: int = 0
    total_jobs_failed: int = 0

    # Время выполнения
    total_execution_time: float = 0.0
    average_execution_time: float = 0.0
    max_execution_time: float = 0.0

    # Воркеры
    total_workers: int = 0
    idle_workers: int = 0
    busy_workers: int = 0
    workers_created: int = 0
    workers_failed: int = 0

    current_queue_size: int = 0
    max_queue_size: int = 0

    pool_start_time: Optional[datetime] = None
    pool_stop_time: Optional[datetime] = None
    uptime: float = 0.0

    def start_pool(self):
        """Запуск пула."""
        self.pool_start_time = datetime.now()
        self.pool_stop_time = None

    def stop_pool(self):
        """Остановка пула."""
        self.pool_stop_time = datetime.now()
        if self.pool_start_time:
            self.uptime = (self.pool_stop_time - self.pool_start_time).total_seconds()

    def update_job_completion(self, execution_time: float, success: bool = True):
        """Обновление после завершения задачи."""
        if success:
            self.total_jobs_completed += 1
        else:
            self.total_jobs_failed += 1

        finished = self.total_jobs_completed + self.total_jobs_failed
        self.total_execution_time += execution_time
        self.max_execution_time = max(self.max_execution_time, execution_time)
        self.average_execution_time = self.total_execution_time / finished

    def update_queue_size(self, size: int):
        """Обновление размера очереди."""
        self.current_queue_size = size
        self.max_queue_size = max(self.max_queue_size, size)

    def update_worker_stats(self, total: int, idle: int, busy: int):
        """Обновление статистики воркеров."""
        self.total_workers = total
        self.idle_workers = idle
        self.busy_workers = busy

    def get_uptime(self) -> float:
        """Время работы пула."""
        if self.pool_start_time and not self.pool_stop_time:
            return (datetime.now() - self.pool_start_time).total_seconds()
        return self.uptime

    def get_success_rate(self) -> float:
        finished = self.total_jobs_completed + self.total_jobs_failed
        if finished == 0:
            return 0.0
        return (self.total_jobs_completed / finished) * 100

    def to_dict(self) -> Dict:
        """Преобразование в словарь."""
        return {
            'total_jobs_submitted': self.total_jobs_submitted,
            'total_jobs_completed': self.total_jobs_completed,
            'total_jobs_failed': self.total_jobs_failed,
            'total_execution_time': self.total_execution_time,
            'average_execution_time': self.average_execution_time,
            'max_execution_time': self.max_execution_time,
            'total_workers': self.total_workers,
            'idle_workers': self.idle_workers,
            'busy_workers': self.busy_workers,
            'workers_created': self.workers_created,
            'workers_failed': self.workers_failed,
            'current_queue_size': self.current_queue_size,
            'max_queue_size': self.max_queue_size,
            'success_rate': self.get_success_rate(),
            'uptime': self.get_uptime()
        }
