"""
Очередь задач пула соединений.
"""

import time
from collections import deque
from typing import Deque, List, Optional
from dataclasses import dataclass

from ..models.job import Job
from ..utils.logger import get_logger
from ..exceptions import PoolClosedError


logger = get_logger(__name__)


@dataclass
class QueueConfig:
    """Конфигурация очереди задач."""
    max_size: Optional[int] = None  # None - без ограничения
    enable_metrics: bool = True


class JobQueue:
    """
    FIFO-очередь незахваченных задач.

    Все операции синхронные: между двумя ``await`` никто другой
    не может изменить очередь, поэтому ``get_job`` выдает задачу ровно одному воркеру.
    """

    def __init__(self, config: Optional[QueueConfig] = None):
        self.config = config or QueueConfig()
        self._queue: Deque[Job] = deque()
        self._enqueued_at = {}
        self._closed = False

        self._metrics = {
            'jobs_submitted': 0,
            'jobs_retrieved': 0,
            'jobs_dropped': 0,
            'average_wait_time': 0.0,
            'max_wait_time': 0.0,
            'max_size_reached': 0
        }

    def put(self, job: Job):
        """
        Добавление задачи в конец очереди.

        Raises:
            PoolClosedError: Очередь закрыта
            OverflowError: Достигнут ``max_size``
        """
        if self._closed:
            raise PoolClosedError("Job queue is closed")

        if self.config.max_size is not None and len(self._queue) >= self.config.max_size:
            self._metrics['jobs_dropped'] += 1
            raise OverflowError(f"Job queue is full ({self.config.max_size})")

        self._queue.append(job)
        self._enqueued_at[job.id] = time.monotonic()

        if self.config.enable_metrics:
            self._metrics['jobs_submitted'] += 1
            self._metrics['max_size_reached'] = max(self._metrics['max_size_reached'], len(self._queue))

        logger.debug(f"Job {job.id} ({job.name}) queued, queue size {len(self._queue)}")

    def get_job(self) -> Optional[Job]:
        """Атомарное извлечение головы очереди."""
        if not self._queue:
            return None

        job = self._queue.popleft()
        enqueued_at = self._enqueued_at.pop(job.id, None)

        if self.config.enable_metrics:
            self._metrics['jobs_retrieved'] += 1
            if enqueued_at is not None:
                self._update_wait_metrics(time.monotonic() - enqueued_at)

        return job

    def _update_wait_metrics(self, wait_time: float):
        self._metrics['max_wait_time'] = max(self._metrics['max_wait_time'], wait_time)

        retrieved = self._metrics['jobs_retrieved']
        average = self._metrics['average_wait_time']
        self._metrics['average_wait_time'] = average + (wait_time - average) / retrieved

    def drain(self) -> List[Job]:
        """Извлечение всех ожидающих задач."""
        jobs = list(self._queue)
        self._queue.clear()
        self._enqueued_at.clear()
        return jobs

    def close(self):
        """Запрет на добавление новых задач."""
        self._closed = True

    def reopen(self):
        self._closed = False

    def is_closed(self) -> bool:
        return self._closed

    def get_metrics(self) -> dict:
        """Метрики очереди."""
        metrics = self._metrics.copy()
        metrics['current_size'] = len(self._queue)
        return metrics

    def __len__(self) -> int:
        return len(self._queue)

    def __repr__(self) -> str:
        return f"JobQueue(size={len(self)}, closed={self._closed})"
