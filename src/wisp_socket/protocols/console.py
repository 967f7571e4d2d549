"""
Консоль сервера: раздача строк слушателям и команды с корреляцией по nonce.

Корреляция - договоренность с кодом на сервере: каждая строка ответа
начинается с nonce, последняя строка - ``<nonce>Done.``.
"""

import asyncio
from typing import Any, Callable, List, Optional

from ..core.worker import PoolWorker
from ..models.messages import ConsoleMessage
from ..utils.logger import get_logger
from ..exceptions import PoolError, ProtocolTimeoutError, WispConnectionError


logger = get_logger(__name__)


SENTINEL = "Done."
DEFAULT_COMMAND_TIMEOUT = 1.0

ConsoleCallback = Callable[[str], None]


class ConsoleRelay:
    """
    Раздача строк консоли всем зарегистрированным callback'ам.

    Подписка на консоль держится одной долгой задачей пула, которая
    занимает воркера, пока есть хотя бы один слушатель.
    """

    def __init__(self, submit: Callable[..., asyncio.Future], logger: Optional[Any] = None):
        self._submit = submit
        self.logger = logger or get_logger(__name__)
        self._callbacks: List[ConsoleCallback] = []
        self._stream: Optional[asyncio.Future] = None
        self._released: Optional[asyncio.Event] = None

    @property
    def listeners(self) -> List[ConsoleCallback]:
        return list(self._callbacks)

    def is_streaming(self) -> bool:
        return self._stream is not None and not self._stream.done()

    def add_listener(self, callback: ConsoleCallback):
        """
        Добавление слушателя. Первый слушатель запускает подписку.

        Отпущенная, но еще не завершившаяся подписка тоже заменяется новой.
        """
        self._callbacks.append(callback)
        if not self.is_streaming() or self._released.is_set():
            self._start_stream()

    def remove_listener(self, callback: ConsoleCallback):
        """Удаление слушателя. Без слушателей воркер освобождается."""
        if callback not in self._callbacks:
            return
        self._callbacks.remove(callback)
        if not self._callbacks and self._released is not None:
            self._released.set()

    def close(self):
        self._callbacks.clear()
        if self._released is not None:
            self._released.set()

    def deliver(self, data: Any):
        """Передача одной строки консоли всем слушателям."""
        line = ConsoleMessage.from_dict(data).line
        for callback in list(self._callbacks):
            try:
                callback(line)
            except Exception:
                self.logger.exception("Failed to run console callback")

    def _start_stream(self):
        released = self._released = asyncio.Event()

        async def stream(worker: PoolWorker):
            connection = worker.connection
            lost = asyncio.get_running_loop().create_future()

            def on_lost():
                if not lost.done():
                    lost.set_result(None)

            worker.logger.info("Running console listener")
            connection.on_lost(on_lost)
            if not connection.authenticated:
                on_lost()
            waiter = asyncio.ensure_future(released.wait())
            try:
                with connection.listening() as scope:
                    scope.on("console", self.deliver)
                    await asyncio.wait({waiter, lost}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                waiter.cancel()
                connection.remove_on_lost(on_lost)

            if not released.is_set():
                raise WispConnectionError("Connection lost while listening to the console")
            worker.logger.info("Console listener released")

        self._stream = self._submit(stream, name="console-listener")
        self._stream.add_done_callback(self._on_stream_done)

    def _on_stream_done(self, future: asyncio.Future):
        # Подписка уже заменена новой в add_listener
        if future is not self._stream:
            return
        if future.cancelled():
            return
        error = future.exception()
        if error is None:
            return

        self.logger.error(f"Console listener stopped: {error}")
        if not self._callbacks:
            return
        try:
            self._start_stream()
        except PoolError as e:
            self.logger.error(f"Failed to restart console listener: {e}")


class CorrelationContext:
    """
    Состояние ожидания ответа на команду с nonce.

    Дедлайн отсчитывается от последнего полученного фрагмента;
    один таймер переставляется на новый дедлайн, когда срабатывает раньше.
    """

    def __init__(self, nonce: str, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.nonce = nonce
        self.timeout = timeout
        self.deadline: Optional[float] = None
        self._parts: List[str] = []
        self._loop = asyncio.get_running_loop()
        self.future: asyncio.Future = self._loop.create_future()
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def output(self) -> str:
        return "".join(self._parts)

    def start(self):
        self.deadline = self._loop.time() + self.timeout
        self._timer = self._loop.call_at(self.deadline, self._check_deadline)

    def feed(self, line: Any) -> bool:
        """
        Обработка строки консоли.

        Returns:
            True, если строка относится к этой команде
        """
        if self.future.done() or not isinstance(line, str) or not line.startswith(self.nonce):
            return False

        message = line[len(self.nonce):]
        if message == SENTINEL:
            self.cancel()
            self.future.set_result(self.output)
        else:
            self._parts.append(message)
            self.deadline = self._loop.time() + self.timeout
        return True

    def _check_deadline(self):
        if self.future.done():
            return
        if self._loop.time() >= self.deadline:
            self.future.set_exception(ProtocolTimeoutError())
        else:
            self._timer = self._loop.call_at(self.deadline, self._check_deadline)

    def cancel(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


async def send_command_nonce(
    worker: PoolWorker,
    nonce: str,
    command: str,
    timeout: float = DEFAULT_COMMAND_TIMEOUT
) -> str:
    """
    Отправка команды и сбор ее вывода, помеченного префиксом ``nonce``.

    Returns:
        Склеенный вывод команды (без nonce и без завершающего ``Done.``)

    Raises:
        ProtocolTimeoutError: Между фрагментами прошло больше ``timeout`` секунд
    """
    connection = worker.connection
    worker.logger.info(f"Running sendCommandNonce: {nonce} {command}")

    context = CorrelationContext(nonce, timeout)
    with connection.listening() as scope:
        scope.on("console", lambda data: context.feed(ConsoleMessage.from_dict(data).line))
        context.start()
        try:
            await connection.emit("send command", command)
            return await context.future
        except ProtocolTimeoutError:
            worker.logger.error(f"Command timed out current output: '{context.output}'")
            worker.logger.info(f"Rejected sendCommandNonce 'Timeout' {nonce} {command}")
            raise
        finally:
            context.cancel()

