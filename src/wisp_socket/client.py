"""
Высокоуровневый клиент: операции сервера поверх пула соединений.
"""

import functools
from typing import Any, Callable, Optional

from .core.pool import WebsocketPool
from .credentials import CredentialsProvider, PreprocessedCredentials, WebsocketInfo
from .models.messages import FilesearchResults, GitCloneResult, GitPullResult
from .protocols.console import ConsoleRelay, ConsoleCallback, send_command_nonce
from .protocols.filesearch import filesearch
from .protocols.git import git_clone, git_pull
from .utils.config import Config, create_default_config
from .utils.logger import get_logger


logger = get_logger(__name__)


class WispSocket:
    """
    Клиент websocket-API сервера.

    Каждый вызов ставит задачу в пул и ждет ее результата.

    Args:
        credentials: Источник URL и токена websocket
        gh_token: Ключ доступа к приватным git-репозиториям
        config: Конфигурация клиента и пула
        logger: Логгер, передаваемый пулу
        client_factory: Фабрика socket.io клиентов (для тестов)
    """

    def __init__(
        self,
        credentials: CredentialsProvider,
        gh_token: Optional[str] = None,
        config: Optional[Config] = None,
        logger: Optional[Any] = None,
        client_factory: Optional[Callable[[], Any]] = None
    ):
        self.config = config or create_default_config()
        self.config.validate()
        self.gh_token = gh_token

        self._preprocessor: Optional[Callable[[WebsocketInfo], None]] = None
        self.pool = WebsocketPool(
            PreprocessedCredentials(credentials, self._preprocess),
            config=self.config.pool,
            logger=logger,
            client_factory=client_factory
        )
        self.console = ConsoleRelay(self.pool.submit, logger=self.pool.logger)

    def set_websocket_details_preprocessor(self, preprocessor: Callable[[WebsocketInfo], None]):
        """Хук, получающий каждый ``WebsocketInfo`` перед подключением (может менять url и token)."""
        self._preprocessor = preprocessor

    def _preprocess(self, info: WebsocketInfo):
        if self._preprocessor is not None:
            self._preprocessor(info)

    async def connect(self):
        await self.pool.start()

    async def disconnect(self):
        self.console.close()
        await self.pool.disconnect_all()

    async def filesearch(self, query: str) -> FilesearchResults:
        return await self.pool.run(
            functools.partial(filesearch, query=query, timeout=self.config.filesearch_timeout),
            name="filesearch"
        )

    async def git_pull(self, dir: str, use_auth: bool = False) -> GitPullResult:
        return await self.pool.run(
            functools.partial(
                git_pull,
                dir=dir,
                auth_key=self.gh_token,
                use_auth=use_auth,
                timeout=self.config.git_timeout
            ),
            name="git-pull"
        )

    async def git_clone(self, url: str, dir: str, branch: str) -> GitCloneResult:
        return await self.pool.run(
            functools.partial(
                git_clone,
                url=url,
                dir=dir,
                branch=branch,
                auth_key=self.gh_token,
                timeout=self.config.git_timeout
            ),
            name="git-clone"
        )

    def add_console_listener(self, callback: ConsoleCallback):
        """Подписка на строки консоли. Пока есть слушатели, один воркер занят."""
        self.console.add_listener(callback)

    def remove_console_listener(self, callback: ConsoleCallback):
        self.console.remove_listener(callback)

    async def send_command_nonce(self, nonce: str, command: str,
                                 timeout: Optional[float] = None) -> str:
        """
        Выполнение команды в консоли сервера.

        Returns:
            Вывод команды, помеченный ``nonce``
        """
        return await self.pool.run(
            functools.partial(
                send_command_nonce,
                nonce=nonce,
                command=command,
                timeout=self.config.command_timeout if timeout is None else timeout
            ),
            name="send-command-nonce"
        )

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
