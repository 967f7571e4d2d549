"""
Git-операции на сервере: pull и clone.

Если репозиторий приватный, сервер отвечает ``git-error`` с сообщением
``AUTH_REQUIRED_MESSAGE``; тогда запрос повторяется один раз с ключом доступа.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Optional

from ..core.worker import PoolWorker
from ..models.messages import GitCloneData, GitCloneResult, GitPullData, GitPullResult
from ..exceptions import GitError, ProtocolTimeoutError


AUTH_REQUIRED_MESSAGE = "Remote authentication required but no callback set"

DEFAULT_GIT_TIMEOUT = 300.0


class GitState(Enum):
    """Состояния обмена."""
    SENT = "sent"
    RETRYING_WITH_AUTH = "retrying-with-auth"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed-out"


class GitExchange:
    """
    Один git-запрос на соединении воркера.

    Все подписки обмена снимаются при любом исходе.
    """

    def __init__(
        self,
        worker: PoolWorker,
        event: str,
        build_request: Callable[[Optional[str]], dict],
        auth_key: Optional[str] = None,
        timeout: Optional[float] = DEFAULT_GIT_TIMEOUT,
        description: str = ""
    ):
        self.worker = worker
        self.event = event
        self.build_request = build_request
        self.auth_key = auth_key
        self.timeout = timeout
        self.description = description or event
        self.state: Optional[GitState] = None
        self.is_private = False

    async def run(self, use_auth: bool = False) -> Any:
        """
        Отправка запроса и ожидание исхода.

        Returns:
            Данные ``git-success`` (для pull - идентификатор коммита)

        Raises:
            GitError: Сервер сообщил об ошибке
            ProtocolTimeoutError: Исход не пришел за ``timeout`` секунд
        """
        if use_auth and self.auth_key is None:
            raise ValueError("use_auth requires an auth key")

        connection = self.worker.connection
        logger = self.worker.logger
        loop = asyncio.get_running_loop()
        deadline = None if self.timeout is None else loop.time() + self.timeout

        with connection.listening() as scope:
            scope.once(self.event, lambda data: logger.info(f"{self.event}: {data}"))
            success = scope.next("git-success")
            errors: asyncio.Queue = asyncio.Queue()
            scope.on("git-error", errors.put_nowait)

            self.state = GitState.SENT
            await self._send(use_auth)

            while True:
                remaining = None if deadline is None else max(0.0, deadline - loop.time())
                next_error = asyncio.ensure_future(errors.get())
                try:
                    done, _ = await asyncio.wait(
                        {success, next_error},
                        timeout=remaining,
                        return_when=asyncio.FIRST_COMPLETED
                    )
                finally:
                    if not next_error.done():
                        next_error.cancel()

                if success in done:
                    self.state = GitState.SUCCEEDED
                    return success.result()

                if next_error in done:
                    message = next_error.result()
                    if self._should_retry_with_auth(message):
                        logger.info(f"Remote authentication required, trying again with authkey: {self.description}")
                        self.state = GitState.RETRYING_WITH_AUTH
                        await self._send(True)
                        continue

                    self.state = GitState.FAILED
                    message = "" if message is None else str(message)
                    logger.error(f"Rejected {self.description}: {message}")
                    raise GitError(message, is_private=self.is_private)

                self.state = GitState.TIMED_OUT
                logger.error(f"Rejected {self.description}: 'Timeout'")
                raise ProtocolTimeoutError()

    def _should_retry_with_auth(self, message: Any) -> bool:
        return (
            message == AUTH_REQUIRED_MESSAGE
            and not self.is_private
            and self.auth_key is not None
        )

    async def _send(self, include_auth: bool):
        authkey = None
        if include_auth:
            self.is_private = True
            authkey = self.auth_key

        await self.worker.connection.emit(self.event, self.build_request(authkey))


async def git_pull(
    worker: PoolWorker,
    dir: str,
    auth_key: Optional[str] = None,
    use_auth: bool = False,
    timeout: Optional[float] = DEFAULT_GIT_TIMEOUT
) -> GitPullResult:
    """
    ``git pull`` в каталоге ``dir`` на сервере.

    Returns:
        Идентификатор нового коммита (пустая строка, если сервер его не прислал)
        и признак приватного репозитория
    """
    worker.logger.info(f"Running gitPull: {dir}")
    exchange = GitExchange(
        worker,
        "git-pull",
        lambda authkey: GitPullData(dir=dir, authkey=authkey).to_dict(),
        auth_key=auth_key,
        timeout=timeout,
        description=f"gitPull {dir}"
    )
    commit = await exchange.run(use_auth=use_auth)

    if not commit:
        worker.logger.info("No commit given!")
    else:
        worker.logger.info(f"Addon updated to {commit}")

    return GitPullResult(output=str(commit) if commit else "", is_private=exchange.is_private)


async def git_clone(
    worker: PoolWorker,
    url: str,
    dir: str,
    branch: str,
    auth_key: Optional[str] = None,
    timeout: Optional[float] = DEFAULT_GIT_TIMEOUT
) -> GitCloneResult:
    """``git clone`` репозитория ``url`` (ветка ``branch``) в каталог ``dir``."""
    worker.logger.info(f"Running gitClone: {url} {dir} {branch}")
    exchange = GitExchange(
        worker,
        "git-clone",
        lambda authkey: GitCloneData(dir=dir, url=url, branch=branch, authkey=authkey).to_dict(),
        auth_key=auth_key,
        timeout=timeout,
        description=f"gitClone {url} {dir} {branch}"
    )
    await exchange.run()
    worker.logger.info("Project successfully cloned")

    return GitCloneResult(is_private=exchange.is_private)
