"""
Общие фикстуры: сервер и socket.io клиент в памяти.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from socketio import exceptions as socketio_exceptions

from wisp_socket import StaticCredentials, PoolConfig, RetryConfig, ConnectionConfig


class FakeServer:
    """
    Сервер WISP в памяти.

    Обработчики событий клиента регистрируются через ``on(event, handler)``,
    ``handler(client, data)`` отвечает через ``client.push(...)``.
    """

    def __init__(self):
        self.auth_mode = "accept"  # accept | reject | silent
        self.refuse_connections = 0  # сколько подключений подряд отклонить; -1 - все
        self.silent_disconnect = False
        self.clients: List['FakeSocketClient'] = []
        self.received: List[Tuple['FakeSocketClient', str, Any]] = []
        self.connect_attempts = 0
        self.urls: List[str] = []
        self._handlers: Dict[str, Callable[['FakeSocketClient', Any], None]] = {}

    def on(self, event: str, handler: Callable[['FakeSocketClient', Any], None]):
        self._handlers[event] = handler

    def requests(self, event: str) -> List[Any]:
        return [data for _, e, data in self.received if e == event]

    def handle(self, client: 'FakeSocketClient', event: str, data: Any):
        self.received.append((client, event, data))

        if event == "auth":
            if self.auth_mode == "accept":
                client.push("auth_success")
            elif self.auth_mode == "reject":
                client.push("error", "Invalid token")
            return

        handler = self._handlers.get(event)
        if handler is not None:
            handler(client, data)

    def broadcast(self, event: str, data: Any = None):
        for client in list(self.clients):
            client.push(event, data)

    def drop_all(self):
        for client in list(self.clients):
            client.drop()


class FakeSocketClient:
    """Замена ``socketio.AsyncClient`` с тем же интерфейсом."""

    def __init__(self, server: FakeServer):
        self.server = server
        self.connected = False
        self.handlers: Dict[str, Callable] = {}
        self._pending: List[asyncio.Task] = []

    def on(self, event: str, handler: Optional[Callable] = None, namespace: Optional[str] = None):
        self.handlers[event] = handler

    async def connect(self, url: str, transports=None, socketio_path=None, wait_timeout=None, **kwargs):
        self.server.connect_attempts += 1
        self.server.urls.append(url)

        if self.server.refuse_connections:
            if self.server.refuse_connections > 0:
                self.server.refuse_connections -= 1
            raise socketio_exceptions.ConnectionError("Connection refused by the server")

        self.connected = True
        self.server.clients.append(self)
        await self._trigger("connect")

    async def emit(self, event: str, data: Any = None):
        self.server.handle(self, event, data)

    async def disconnect(self):
        if not self.connected:
            return
        self._close()
        if not self.server.silent_disconnect:
            await self._trigger("disconnect", "io client disconnect")

    def push(self, event: str, data: Any = None):
        """Событие от сервера, доставляемое асинхронно, как из сети."""
        if not self.connected:
            return
        args = () if data is None else (data,)
        self._pending.append(asyncio.ensure_future(self._trigger(event, *args)))

    def drop(self):
        """Обрыв соединения со стороны сервера."""
        if not self.connected:
            return
        self._close()
        self._pending.append(asyncio.ensure_future(self._trigger("disconnect", "transport close")))

    def _close(self):
        self.connected = False
        if self in self.server.clients:
            self.server.clients.remove(self)

    async def _trigger(self, event: str, *args):
        handler = self.handlers.get(event)
        if handler is None:
            return
        result = handler(*args)
        if asyncio.iscoroutine(result):
            await result


class CountingCredentials(StaticCredentials):
    """Статические данные с подсчетом запросов."""

    def __init__(self, url: str = "wss://wisp.example/ws", token: str = "secret-token"):
        super().__init__(url, token)
        self.calls = 0

    async def get_websocket_info(self):
        self.calls += 1
        return await super().get_websocket_info()


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def client_factory(server):
    return lambda: FakeSocketClient(server)


@pytest.fixture
def credentials():
    return CountingCredentials()


@pytest.fixture
def fast_config():
    """Конфигурация пула с короткими интервалами для тестов."""
    return PoolConfig(
        max_workers=3,
        min_workers=1,
        poll_interval=0.01,
        connection=ConnectionConfig(connect_timeout=0.5, disconnect_timeout=0.5),
        reconnect=RetryConfig(max_retries=2, base_delay=0.01, max_delay=0.05)
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01):
    """Ожидание выполнения условия."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition was not met in time")
        await asyncio.sleep(interval)
