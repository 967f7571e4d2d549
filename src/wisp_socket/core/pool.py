"""
Пул websocket-воркеров с общей очередью задач.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field

from .connection import Connection, ConnectionConfig
from .job_queue import JobQueue, QueueConfig
from .retry_manager import RetryConfig
from .worker import PoolWorker

from ..credentials import CredentialsProvider, WebsocketInfo
from ..models.job import Job, JobFunction
from ..models.pool_metrics import PoolMetrics, PoolStatus
from ..utils.logger import get_logger, PrefixedLogger
from ..exceptions import (
    ConfigurationError,
    NoWorkersAvailableError,
    PoolClosedError,
    PoolNotRunningError
)


logger = get_logger(__name__)


@dataclass
class PoolConfig:
    """Конфигурация пула соединений."""

    max_workers: int = 5
    min_workers: int = 1
    poll_interval: float = 0.1
    debug: bool = False
    refresh_credentials_on_reconnect: bool = True

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    reconnect: RetryConfig = field(default_factory=RetryConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)

    def validate(self):
        errors = []
        if self.max_workers < 1:
            errors.append("max_workers must be >= 1")
        if self.min_workers < 0:
            errors.append("min_workers must be >= 0")
        if self.min_workers > self.max_workers:
            errors.append("min_workers must be <= max_workers")
        if self.poll_interval <= 0:
            errors.append("poll_interval must be > 0")
        if self.connection.connect_timeout <= 0 or self.connection.disconnect_timeout <= 0:
            errors.append("connection timeouts must be > 0")
        if errors:
            raise ConfigurationError(f"Pool configuration is invalid: {'; '.join(errors)}")


class WebsocketPool:
    """
    Пул воркеров, каждый со своим аутентифицированным соединением.

    Вызывающий код отдает в пул функцию ``job_fn(worker)``, пул ставит ее
    в FIFO-очередь, первый свободный воркер забирает ее и выполняет.
    Порядок гарантируется только при захвате задач, не при их завершении.
    """

    def __init__(
        self,
        credentials: CredentialsProvider,
        config: Optional[PoolConfig] = None,
        logger: Optional[Any] = None,
        client_factory: Optional[Callable[[], Any]] = None
    ):
        self.config = config or PoolConfig()
        self.config.validate()

        base_logger = logger or get_logger(__name__)
        self.logger = PrefixedLogger(base_logger, "[Pool]", self.config.debug)

        self._credentials = credentials
        self._client_factory = client_factory
        self._websocket_info: Optional[WebsocketInfo] = None
        self._refresh_lock: Optional[asyncio.Lock] = None

        self._workers: List[PoolWorker] = []
        self._next_index = 0
        self._queue = JobQueue(self.config.queue)
        self._status = PoolStatus.STOPPED
        self._metrics = PoolMetrics()

    @property
    def workers(self) -> List[PoolWorker]:
        return list(self._workers)

    @property
    def status(self) -> PoolStatus:
        return self._status

    @property
    def websocket_info(self) -> Optional[WebsocketInfo]:
        return self._websocket_info

    async def start(self):
        """Получение данных для подключения и запуск ``min_workers`` воркеров."""
        if self._status == PoolStatus.RUNNING:
            self.logger.warning("Pool already running")
            return

        self._status = PoolStatus.STARTING
        try:
            self._websocket_info = await self._credentials.get_websocket_info()
        except Exception:
            self._status = PoolStatus.ERROR
            raise

        self._queue.reopen()
        self._metrics.start_pool()
        self._status = PoolStatus.RUNNING
        self.logger.info(
            f"Creating a new Pool with up to {self.config.max_workers} workers "
            f"({self.config.min_workers} at start)"
        )

        for _ in range(self.config.min_workers):
            self._spawn_worker()

    def submit(self, job_fn: JobFunction, name: str = "") -> asyncio.Future:
        """
        Постановка задачи в очередь.

        Не блокирует: возвращает Future с результатом задачи.

        Raises:
            PoolNotRunningError: Пул не запущен
        """
        if self._status != PoolStatus.RUNNING:
            raise PoolNotRunningError(f"Pool is not running (current status: {self._status.value})")

        job = Job(func=job_fn, name=name)
        self._queue.put(job)

        self._metrics.total_jobs_submitted += 1
        self._metrics.update_queue_size(len(self._queue))
        self.logger.debug(f"Job {job.id} ({job.name}) submitted")

        self._maybe_scale_up()
        return job.future

    async def run(self, job_fn: JobFunction, name: str = "") -> Any:
        """Постановка задачи и ожидание ее результата."""
        return await self.submit(job_fn, name=name)

    def get_job(self) -> Optional[Job]:
        """Выдача следующей задачи воркеру. Каждая задача выдается один раз."""
        job = self._queue.get_job()
        if job is not None:
            self._metrics.update_queue_size(len(self._queue))
        return job

    def _maybe_scale_up(self):
        if self._status != PoolStatus.RUNNING:
            return

        available = sum(1 for w in self._workers if w.idle or w.connecting)
        while len(self._queue) > available and len(self._workers) < self.config.max_workers:
            self._spawn_worker()
            available += 1

    def _spawn_worker(self) -> PoolWorker:
        info = self._websocket_info
        index = self._next_index
        self._next_index += 1

        worker_logger = self.logger.child(f"[Worker #{index}]")
        connection = Connection(
            info.url,
            info.token,
            config=self.config.connection,
            client_factory=self._client_factory,
            logger=worker_logger
        )
        worker = PoolWorker(
            index,
            connection,
            get_job=self.get_job,
            poll_interval=self.config.poll_interval,
            reconnect_config=self.config.reconnect,
            refresh_credentials=(
                self._refresh_worker_credentials
                if self.config.refresh_credentials_on_reconnect else None
            ),
            on_job_done=self._on_job_done,
            on_terminated=self._on_worker_terminated,
            logger=worker_logger
        )
        self._workers.append(worker)
        self._metrics.workers_created += 1
        worker.start()
        self.logger.debug(f"Spawned worker #{index} ({len(self._workers)}/{self.config.max_workers})")
        return worker

    async def refresh_credentials(self) -> WebsocketInfo:
        """Повторное получение данных для подключения."""
        if self._refresh_lock is None:
            self._refresh_lock = asyncio.Lock()

        async with self._refresh_lock:
            self._websocket_info = await self._credentials.get_websocket_info()
            self.logger.info(f"Refreshed websocket details: {self._websocket_info.url}")
            return self._websocket_info

    async def _refresh_worker_credentials(self, worker: PoolWorker):
        try:
            info = await self.refresh_credentials()
        except Exception as e:
            self.logger.error(f"Failed to refresh websocket details, reusing old ones: {e}")
            return
        worker.connection.url = info.url
        worker.connection.token = info.token

    def _on_job_done(self, worker: PoolWorker, job: Job):
        self._metrics.update_job_completion(job.get_execution_time(), job.error is None)

    def _on_worker_terminated(self, worker: PoolWorker, error: Optional[BaseException]):
        if worker in self._workers:
            self._workers.remove(worker)

        if error is None or self._status != PoolStatus.RUNNING:
            return

        self._metrics.workers_failed += 1
        self.logger.error(f"Worker #{worker.index} failed to connect: {error}")

        if not len(self._queue):
            return

        alive = [w for w in self._workers if not w.terminated]
        if alive:
            # Живые воркеры могут быть заняты долгими задачами
            self._maybe_scale_up()
            return

        pending = self._queue.drain()
        self.logger.error(f"No workers left, failing {len(pending)} queued jobs")
        for job in pending:
            failure = NoWorkersAvailableError(f"No websocket workers available: {error}")
            failure.__cause__ = error
            job.fail(failure)
        self._metrics.update_queue_size(0)

    async def disconnect_all(self):
        """
        Остановка всех воркеров.

        Задачи, оставшиеся в очереди, завершаются с ``PoolClosedError``.
        """
        self.logger.info("Disconnecting all workers...")
        self._status = PoolStatus.STOPPING
        self._queue.close()

        workers = list(self._workers)
        results = await asyncio.gather(*(w.stop() for w in workers), return_exceptions=True)
        failures = 0
        for worker, result in zip(workers, results):
            if isinstance(result, BaseException):
                failures += 1
                self.logger.error(f"Worker #{worker.index} failed to disconnect: {result}")
        self._workers.clear()

        pending = self._queue.drain()
        for job in pending:
            job.fail(PoolClosedError("Pool disconnected before the job was run"))
        if pending:
            self.logger.warning(f"Dropped {len(pending)} queued jobs on disconnect")

        self._metrics.stop_pool()
        self._metrics.update_queue_size(0)
        self._status = PoolStatus.ERROR if failures else PoolStatus.STOPPED
        self.logger.info("All workers disconnected")

    disconnect = disconnect_all

    def get_worker_count(self) -> int:
        return len(self._workers)

    def get_queue_size(self) -> int:
        return len(self._queue)

    def get_idle_workers(self) -> List[PoolWorker]:
        return [w for w in self._workers if w.idle]

    def is_running(self) -> bool:
        return self._status == PoolStatus.RUNNING

    def get_metrics(self) -> Dict[str, Any]:
        """Метрики пула."""
        idle = sum(1 for w in self._workers if w.idle)
        busy = sum(1 for w in self._workers if w.busy)
        self._metrics.update_worker_stats(len(self._workers), idle, busy)

        metrics = self._metrics.to_dict()
        metrics['queue_metrics'] = self._queue.get_metrics()
        metrics['workers'] = {
            w.index: {
                'status': w.status.value,
                'jobs_completed': w.metrics.jobs_completed,
                'jobs_failed': w.metrics.jobs_failed,
                'reconnects': w.metrics.reconnects
            }
            for w in self._workers
        }
        return metrics

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect_all()

    def __repr__(self) -> str:
        return (f"WebsocketPool(status={self._status.value}, "
                f"workers={self.get_worker_count()}, "
                f"queue_size={self.get_queue_size()})")
