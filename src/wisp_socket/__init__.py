"""
Пул аутентифицированных websocket-соединений с игровым сервером WISP.

Основные компоненты:
- WebsocketPool: пул воркеров с общей очередью задач
- PoolWorker: воркер с одним соединением
- Connection: socket.io соединение с рукопожатием ``auth``
- WispSocket: клиент с операциями filesearch, git и консоли
"""

from .core.pool import WebsocketPool, PoolConfig
from .core.worker import PoolWorker
from .core.connection import Connection, ConnectionConfig, ListenerScope, Subscription
from .core.retry_manager import RetryManager, RetryConfig, BackoffStrategy
from .core.job_queue import JobQueue, QueueConfig
from .client import WispSocket
from .credentials import (
    CredentialsProvider,
    StaticCredentials,
    WispApiCredentials,
    PreprocessedCredentials,
    WebsocketInfo
)
from .models.job import Job, JobStatus
from .models.messages import (
    ConsoleMessage,
    FilesearchFile,
    FilesearchResults,
    GitCloneResult,
    GitPullResult
)
from .models.pool_metrics import PoolMetrics, PoolStatus
from .models.worker import WorkerStatus
from .protocols import filesearch, git_pull, git_clone, send_command_nonce
from .utils.logger import setup_logging, get_logger
from .utils.config import Config, load_config, save_config, load_config_from_env
from .exceptions import (
    WispSocketError,
    WispConnectionError,
    ConnectTimeoutError,
    AuthenticationError,
    DisconnectTimeoutError,
    ProtocolTimeoutError,
    RemoteError,
    GitError,
    RetryExhaustedError,
    PoolError,
    PoolNotRunningError,
    PoolClosedError,
    NoWorkersAvailableError,
    JobError,
    CredentialsError,
    ConfigurationError
)

__version__ = "1.0.0"
__author__ = "Wisp Socket Team"

__all__ = [
    "WebsocketPool",
    "PoolConfig",
    "PoolWorker",
    "Connection",
    "ConnectionConfig",
    "ListenerScope",
    "Subscription",
    "RetryManager",
    "RetryConfig",
    "BackoffStrategy",
    "JobQueue",
    "QueueConfig",
    "WispSocket",
    "CredentialsProvider",
    "StaticCredentials",
    "WispApiCredentials",
    "PreprocessedCredentials",
    "WebsocketInfo",
    "Job",
    "JobStatus",
    "ConsoleMessage",
    "FilesearchFile",
    "FilesearchResults",
    "GitCloneResult",
    "GitPullResult",
    "PoolMetrics",
    "PoolStatus",
    "WorkerStatus",
    "filesearch",
    "git_pull",
    "git_clone",
    "send_command_nonce",
    "setup_logging",
    "get_logger",
    "Config",
    "load_config",
    "save_config",
    "load_config_from_env",
    "WispSocketError",
    "WispConnectionError",
    "ConnectTimeoutError",
    "AuthenticationError",
    "DisconnectTimeoutError",
    "ProtocolTimeoutError",
    "RemoteError",
    "GitError",
    "RetryExhaustedError",
    "PoolError",
    "PoolNotRunningError",
    "PoolClosedError",
    "NoWorkersAvailableError",
    "JobError",
    "CredentialsError",
    "ConfigurationError"
]
