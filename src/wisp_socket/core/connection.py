"""
Одно аутентифицированное websocket-соединение с сервером.

Транспорт - socket.io (``socketio.AsyncClient``). Соединение само выполняет
рукопожатие (``auth`` -> ``auth_success``) и раздает события сервера подпискам.
"""

import asyncio
import functools
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional
from dataclasses import dataclass, field

import socketio
from socketio import exceptions as socketio_exceptions

from ..utils.logger import get_logger, PrefixedLogger
from ..exceptions import (
    AuthenticationError,
    ConnectTimeoutError,
    DisconnectTimeoutError,
    WispConnectionError
)


logger = get_logger(__name__)


# События, которые присылает сервер
SERVER_EVENTS = (
    "error",
    "auth_success",
    "filesearch-results",
    "git-error",
    "git-success",
    "git-clone",
    "git-pull",
    "console",
    "initial status",
)

EventCallback = Callable[[Any], None]
EventPredicate = Callable[[Any], bool]


@dataclass
class ConnectionConfig:
    """Конфигурация соединения."""
    connect_timeout: float = 10.0
    disconnect_timeout: float = 5.0
    transports: List[str] = field(default_factory=lambda: ["websocket"])
    socketio_path: str = "socket.io"


class Subscription:
    """Подписка на событие сервера. Снимается через ``cancel()``."""

    def __init__(
        self,
        connection: 'Connection',
        event: str,
        callback: EventCallback,
        once: bool = False,
        predicate: Optional[EventPredicate] = None
    ):
        self.event = event
        self.callback = callback
        self.once = once
        self.predicate = predicate
        self.active = True
        self._connection = connection

    def matches(self, data: Any) -> bool:
        return self.predicate is None or self.predicate(data)

    def cancel(self):
        if not self.active:
            return
        self.active = False
        self._connection._remove_subscription(self)

    def __repr__(self) -> str:
        return f"Subscription(event={self.event!r}, once={self.once}, active={self.active})"


class ListenerScope:
    """
    Набор подписок одного обмена сообщениями.

    Все подписки снимаются при выходе из ``Connection.listening()``,
    чем бы обмен ни закончился.
    """

    def __init__(self, connection: 'Connection'):
        self._connection = connection
        self._subscriptions: List[Subscription] = []

    def on(self, event: str, callback: EventCallback,
           predicate: Optional[EventPredicate] = None) -> Subscription:
        subscription = self._connection.subscribe(event, callback, predicate=predicate)
        self._subscriptions.append(subscription)
        return subscription

    def once(self, event: str, callback: EventCallback,
             predicate: Optional[EventPredicate] = None) -> Subscription:
        subscription = self._connection.subscribe(event, callback, once=True, predicate=predicate)
        self._subscriptions.append(subscription)
        return subscription

    def next(self, event: str, predicate: Optional[EventPredicate] = None) -> asyncio.Future:
        """Future, которое получит данные первого подходящего события."""
        future = asyncio.get_running_loop().create_future()

        def resolve(data):
            if not future.done():
                future.set_result(data)

        self.once(event, resolve, predicate=predicate)
        return future

    def close(self):
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()


class Connection:
    """Аутентифицированный канал реального времени к серверу."""

    def __init__(
        self,
        url: str,
        token: str,
        config: Optional[ConnectionConfig] = None,
        client_factory: Optional[Callable[[], Any]] = None,
        logger: Optional[Any] = None
    ):
        self.url = url
        self.token = token
        self.config = config or ConnectionConfig()
        self.logger = logger or PrefixedLogger(get_logger(__name__), "[Connection]")
        self.authenticated = False

        self._client_factory = client_factory or self._create_client
        self._client = None
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lost_callbacks: List[Callable[[], None]] = []
        self._auth_result: Optional[asyncio.Future] = None
        self._disconnected: Optional[asyncio.Future] = None
        self._closing = False

    @property
    def connected(self) -> bool:
        """Соединение открыто на уровне транспорта."""
        return self._client is not None and bool(self._client.connected)

    def _create_client(self):
        return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)

    def _bind(self, client):
        client.on("connect", self._on_connect)
        client.on("connect_error", self._on_connect_error)
        client.on("disconnect", self._on_disconnect)
        for event in SERVER_EVENTS:
            client.on(event, functools.partial(self._dispatch, event))

    async def connect(self):
        """
        Открытие транспорта и аутентификация.

        Raises:
            WispConnectionError: Транспорт сообщил об ошибке
            AuthenticationError: Сервер ответил ``error`` на рукопожатие
            ConnectTimeoutError: Ни успеха, ни ошибки за ``connect_timeout``
        """
        if self.authenticated and self.connected:
            return

        self._closing = False
        self._auth_result = asyncio.get_running_loop().create_future()
        client = self._client = self._client_factory()
        self._bind(client)

        self.logger.info("Connecting to websocket...")
        try:
            await asyncio.wait_for(self._handshake(client), timeout=self.config.connect_timeout)
        except asyncio.TimeoutError:
            self.logger.error("Socket didn't connect in time")
            await self._abort(client)
            raise ConnectTimeoutError("Connection Timeout") from None
        except socketio_exceptions.ConnectionError as e:
            self.logger.error(f"WebSocket Connect error: {e}")
            await self._abort(client)
            raise WispConnectionError(f"Connection error: {e}") from e
        except WispConnectionError:
            await self._abort(client)
            raise
        finally:
            auth_result, self._auth_result = self._auth_result, None
            # Помечаем исключение как полученное, если рукопожатие сорвалось раньше
            if auth_result.done() and not auth_result.cancelled():
                auth_result.exception()

    async def _handshake(self, client):
        await client.connect(
            self.url,
            transports=self.config.transports,
            socketio_path=self.config.socketio_path,
            wait_timeout=self.config.connect_timeout
        )
        await self._auth_result

    async def _abort(self, client):
        self.authenticated = False
        if not client.connected:
            return
        self._closing = True
        try:
            await client.disconnect()
        except Exception as e:
            self.logger.warning(f"Failed to close socket after aborted handshake: {e}")

    async def disconnect(self):
        """
        Закрытие соединения.

        Raises:
            DisconnectTimeoutError: Транспорт не подтвердил закрытие за ``disconnect_timeout``
        """
        self.authenticated = False
        client = self._client
        if client is None or not client.connected:
            self.logger.debug("Socket already closed")
            return

        self._closing = True
        self._disconnected = asyncio.get_running_loop().create_future()
        try:
            await asyncio.wait_for(self._close(client), timeout=self.config.disconnect_timeout)
        except asyncio.TimeoutError:
            self.logger.error("Socket didn't disconnect in time")
            raise DisconnectTimeoutError("Socket didn't disconnect in time") from None
        finally:
            self._disconnected = None

    async def _close(self, client):
        await client.disconnect()
        await self._disconnected

    async def emit(self, event: str, data: Any = None):
        """Отправка события серверу."""
        if not self.connected:
            raise WispConnectionError(f"Cannot emit '{event}': socket is not connected")
        self.logger.debug(f"Emitting: {event}")
        await self._client.emit(event, data)

    def subscribe(
        self,
        event: str,
        callback: EventCallback,
        once: bool = False,
        predicate: Optional[EventPredicate] = None
    ) -> Subscription:
        """Подписка на событие сервера."""
        subscription = Subscription(self, event, callback, once=once, predicate=predicate)
        self._subscriptions.setdefault(event, []).append(subscription)
        return subscription

    @contextmanager
    def listening(self) -> Iterator[ListenerScope]:
        """Контекст, снимающий все подписки обмена при выходе."""
        scope = ListenerScope(self)
        try:
            yield scope
        finally:
            scope.close()

    def listener_count(self, event: str) -> int:
        return len(self._subscriptions.get(event, ()))

    def on_lost(self, callback: Callable[[], None]):
        """Callback на неожиданный обрыв аутентифицированного соединения."""
        self._lost_callbacks.append(callback)

    def remove_on_lost(self, callback: Callable[[], None]):
        if callback in self._lost_callbacks:
            self._lost_callbacks.remove(callback)

    def _remove_subscription(self, subscription: Subscription):
        subscriptions = self._subscriptions.get(subscription.event)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)

    def _dispatch(self, event: str, *args):
        data = args[0] if args else None

        if event == "auth_success":
            self._handle_auth_success()
        elif event == "error":
            self._handle_error(data)

        for subscription in list(self._subscriptions.get(event, ())):
            if not subscription.active or not subscription.matches(data):
                continue
            if subscription.once:
                subscription.cancel()
            try:
                subscription.callback(data)
            except Exception:
                self.logger.exception(f"Listener for '{event}' failed")

    def _handle_auth_success(self):
        self.logger.info("Auth success")
        self.authenticated = True
        if self._auth_result is not None and not self._auth_result.done():
            self._auth_result.set_result(None)

    def _handle_error(self, reason: Any):
        self.logger.error(f"WebSocket error: {reason}")
        if self._auth_result is not None and not self._auth_result.done():
            self._auth_result.set_exception(AuthenticationError(f"Authentication failed: {reason}"))

    async def _on_connect(self):
        self.logger.info("Connected to WebSocket")
        await self._client.emit("auth", self.token)

    def _on_connect_error(self, data=None):
        self.logger.error(f"WebSocket Connect error: {data}")

    def _on_disconnect(self, *args):
        reason = args[0] if args else "unknown"
        self.logger.info(f"Disconnected from WebSocket: {reason}")

        was_authenticated = self.authenticated
        self.authenticated = False

        if self._disconnected is not None and not self._disconnected.done():
            self._disconnected.set_result(None)

        if self._auth_result is not None and not self._auth_result.done():
            self._auth_result.set_exception(
                WispConnectionError(f"Disconnected during handshake: {reason}")
            )

        if was_authenticated and not self._closing:
            for callback in list(self._lost_callbacks):
                try:
                    callback()
                except Exception:
                    self.logger.exception("Connection lost callback failed")

    def __repr__(self) -> str:
        return (f"Connection(url={self.url!r}, connected={self.connected}, "
                f"authenticated={self.authenticated})")
