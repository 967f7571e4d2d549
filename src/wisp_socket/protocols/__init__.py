"""
Протоколы запрос/ответ поверх соединения воркера.
"""

from .filesearch import filesearch, DEFAULT_FILESEARCH_TIMEOUT
from .git import (
    git_pull,
    git_clone,
    GitExchange,
    GitState,
    AUTH_REQUIRED_MESSAGE,
    DEFAULT_GIT_TIMEOUT
)
from .console import (
    ConsoleRelay,
    CorrelationContext,
    send_command_nonce,
    SENTINEL,
    DEFAULT_COMMAND_TIMEOUT
)

__all__ = [
    "filesearch",
    "git_pull",
    "git_clone",
    "GitExchange",
    "GitState",
    "ConsoleRelay",
    "CorrelationContext",
    "send_command_nonce",
    "AUTH_REQUIRED_MESSAGE",
    "SENTINEL",
    "DEFAULT_FILESEARCH_TIMEOUT",
    "DEFAULT_GIT_TIMEOUT",
    "DEFAULT_COMMAND_TIMEOUT"
]
