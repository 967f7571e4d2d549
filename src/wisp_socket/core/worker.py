"""
Воркер пула: одно соединение и цикл обработки задач.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from .connection import Connection
from .retry_manager import RetryManager, RetryConfig
from ..models.job import Job
from ..models.worker import WorkerMetrics, WorkerStatus
from ..utils.logger import get_logger, PrefixedLogger
from ..exceptions import JobError, PoolClosedError


logger = get_logger(__name__)


class PoolWorker:
    """
    Владелец одного соединения, выполняющий не больше одной задачи за раз.

    Воркер сам опрашивает пул (``get_job``) каждые ``poll_interval`` секунд,
    пока он свободен. Пул хранит воркеров, воркер знает о пуле только
    через переданные ему callback'и.
    """

    def __init__(
        self,
        index: int,
        connection: Connection,
        get_job: Callable[[], Optional[Job]],
        poll_interval: float = 0.1,
        reconnect_config: Optional[RetryConfig] = None,
        refresh_credentials: Optional[Callable[['PoolWorker'], Awaitable[None]]] = None,
        on_job_done: Optional[Callable[['PoolWorker', Job], None]] = None,
        on_terminated: Optional[Callable[['PoolWorker', Optional[BaseException]], None]] = None,
        logger: Optional[Any] = None
    ):
        self.index = index
        self.connection = connection
        self.poll_interval = poll_interval
        self.logger = logger or PrefixedLogger(get_logger(__name__), f"[Worker #{index}]")
        self.status = WorkerStatus.CREATED
        self.metrics = WorkerMetrics()
        self.terminated = False

        self._get_job = get_job
        self._retry_manager = RetryManager(reconnect_config or RetryConfig())
        self._refresh_credentials = refresh_credentials
        self._on_job_done = on_job_done
        self._on_terminated = on_terminated
        self._busy = False
        self._task: Optional[asyncio.Task] = None

        connection.on_lost(self._on_connection_lost)

    @property
    def idle(self) -> bool:
        """Свободен: аутентифицирован и не выполняет задачу."""
        return self.connection.authenticated and not self._busy and not self.terminated

    def is_idle(self) -> bool:
        return self.idle

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def connecting(self) -> bool:
        """Еще не готов, но скоро сможет взять задачу."""
        return not self.terminated and self.status in (WorkerStatus.CREATED, WorkerStatus.CONNECTING)

    def start(self) -> asyncio.Task:
        """Запуск жизненного цикла: подключение и обработка задач."""
        if self._task is None:
            self._task = asyncio.create_task(self._lifecycle(), name=f"wisp-worker-{self.index}")
        return self._task

    async def connect(self):
        """
        Подключение с повторами согласно политике переподключений.

        Raises:
            RetryExhaustedError: Все попытки неудачны
        """
        self.status = WorkerStatus.CONNECTING
        await self._retry_manager.execute_with_retry(
            self.connection.connect,
            name=f"Worker #{self.index} connect",
            before_retry=self._before_retry
        )
        self.status = WorkerStatus.IDLE

    async def _before_retry(self, attempt: int):
        if self._refresh_credentials:
            await self._refresh_credentials(self)

    async def _lifecycle(self):
        error: Optional[BaseException] = None
        try:
            await self.connect()
            await self._process_jobs()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
            self.status = WorkerStatus.ERROR
            self.logger.error(f"Worker gave up: {e}")
        finally:
            self.terminated = True
            if self.status != WorkerStatus.ERROR:
                self.status = WorkerStatus.STOPPED
            if self._on_terminated:
                self._on_terminated(self, error)

    async def _process_jobs(self):
        while not self.terminated:
            if not self.connection.authenticated:
                self.metrics.reconnects += 1
                if self._refresh_credentials:
                    await self._refresh_credentials(self)
                await self.connect()
                continue

            job = self._get_job()
            if job is None:
                await asyncio.sleep(self.poll_interval)
                continue

            await self.run(job)

    async def run(self, job: Job):
        """
        Выполнение задачи на этом воркере.

        Результат или ошибка уходят в ``job.future``. Флаг занятости
        снимается в любом случае.
        """
        if self._busy:
            raise JobError(f"Worker #{self.index} is already running a job")

        job.claim(self.index)
        self._busy = True
        self.status = WorkerStatus.BUSY
        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            self.logger.debug(f"Running job {job.name}")
            result = await job.func(self)
        except asyncio.CancelledError:
            self.metrics.update_failure()
            job.fail(PoolClosedError(f"Worker #{self.index} stopped while running job {job.name}"))
            raise
        except Exception as e:
            self.metrics.update_failure()
            self.logger.error(f"Failed to run job {job.name}: {e!r}")
            job.fail(e)
        else:
            self.metrics.update_execution_time(loop.time() - started)
            job.complete(result)
            self.logger.debug("Done with my work, ready for more")
        finally:
            self._busy = False
            if not self.terminated:
                self.status = WorkerStatus.IDLE
            if self._on_job_done:
                self._on_job_done(self, job)

    async def stop(self):
        """Остановка цикла и закрытие соединения."""
        self.terminated = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.connection.disconnect()
        self.status = WorkerStatus.STOPPED

    def _on_connection_lost(self):
        self.logger.warning("Connection lost, will reconnect")

    def __repr__(self) -> str:
        return f"PoolWorker(index={self.index}, status={self.status.value}, idle={self.idle})"
