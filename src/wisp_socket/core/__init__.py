"""
Основные компоненты пула соединений.
"""

from .connection import Connection, ConnectionConfig, Subscription, ListenerScope
from .job_queue import JobQueue, QueueConfig
from .retry_manager import RetryManager, RetryConfig, BackoffStrategy
from .worker import PoolWorker
from .pool import WebsocketPool, PoolConfig

__all__ = [
    "Connection",
    "ConnectionConfig",
    "Subscription",
    "ListenerScope",
    "JobQueue",
    "QueueConfig",
    "RetryManager",
    "RetryConfig",
    "BackoffStrategy",
    "PoolWorker",
    "WebsocketPool",
    "PoolConfig"
]
