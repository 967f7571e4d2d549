"""
Источники данных для подключения к websocket (URL и токен).

Данные выдает REST API панели; пул запрашивает их при старте и,
если включено, перед каждым переподключением.
"""

import asyncio
from typing import Callable, Optional
from dataclasses import dataclass

import requests

from .utils.logger import get_logger
from .exceptions import CredentialsError


logger = get_logger(__name__)


API_ACCEPT_HEADER = "application/vnd.wisp.v1+json"
USER_AGENT = "wisp-socket-pool (python, 1.0.0)"


@dataclass
class WebsocketInfo:
    """URL websocket-сервера и токен для команды ``auth``."""
    url: str
    token: str
    upload_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'WebsocketInfo':
        try:
            return cls(url=data["url"], token=data["token"], upload_url=data.get("upload_url"))
        except (KeyError, TypeError) as e:
            raise CredentialsError(f"Malformed websocket details: {data!r}") from e


class CredentialsProvider:
    """Базовый источник данных для подключения."""

    async def get_websocket_info(self) -> WebsocketInfo:
        raise NotImplementedError


class StaticCredentials(CredentialsProvider):
    """Заранее известные URL и токен."""

    def __init__(self, url: str, token: str):
        self.info = WebsocketInfo(url=url, token=token)

    async def get_websocket_info(self) -> WebsocketInfo:
        return WebsocketInfo(url=self.info.url, token=self.info.token)


class WispApiCredentials(CredentialsProvider):
    """
    Получение данных через REST API панели.

    ``GET https://{domain}/api/client/servers/{uuid}/websocket``
    """

    def __init__(
        self,
        domain: str,
        uuid: str,
        token: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.domain = domain
        self.uuid = uuid
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def make_url(self, path: str) -> str:
        return f"https://{self.domain}/api/client/servers/{self.uuid}/{path}"

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Accept": API_ACCEPT_HEADER,
            "Authorization": f"Bearer {self.token}",
            "User-Agent": USER_AGENT
        }

    def fetch(self) -> WebsocketInfo:
        """Синхронный запрос к API."""
        url = self.make_url("websocket")
        logger.debug(f"GET -> {url}")
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise CredentialsError(f"Failed to get websocket details: {e}") from e
        except ValueError as e:
            raise CredentialsError(f"Websocket details are not valid JSON: {e}") from e

        return WebsocketInfo.from_dict(data)

    async def get_websocket_info(self) -> WebsocketInfo:
        return await asyncio.to_thread(self.fetch)


class PreprocessedCredentials(CredentialsProvider):
    """Применяет пользовательский хук к каждому полученному ``WebsocketInfo``."""

    def __init__(self, inner: CredentialsProvider, preprocessor: Callable[[WebsocketInfo], None]):
        self.inner = inner
        self.preprocessor = preprocessor

    async def get_websocket_info(self) -> WebsocketInfo:
        info = await self.inner.get_websocket_info()
        self.preprocessor(info)
        return info
