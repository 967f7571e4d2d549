"""
Модели данных для пула соединений.
"""

from .job import Job, JobStatus, JobFunction
from .messages import (
    ConsoleMessage,
    GitCloneData,
    GitCloneResult,
    GitPullData,
    GitPullResult,
    FilesearchFile,
    FilesearchResults
)
from .pool_metrics import PoolMetrics, PoolStatus
from .worker import WorkerStatus, WorkerMetrics

__all__ = [
    "Job",
    "JobStatus",
    "JobFunction",
    "ConsoleMessage",
    "GitCloneData",
    "GitCloneResult",
    "GitPullData",
    "GitPullResult",
    "FilesearchFile",
    "FilesearchResults",
    "PoolMetrics",
    "PoolStatus",
    "WorkerStatus",
    "WorkerMetrics"
]
