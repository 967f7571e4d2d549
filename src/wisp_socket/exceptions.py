"""
Исключения для пула websocket-соединений.
"""


class WispSocketError(Exception):
    """Базовое исключение для пула соединений."""
    pass


class WispConnectionError(WispSocketError):
    """Ошибка транспорта: соединение отклонено или потеряно."""
    pass


class ConnectTimeoutError(WispConnectionError):
    """Сервер не подтвердил аутентификацию вовремя."""
    pass


class AuthenticationError(WispConnectionError):
    """Сервер отклонил аутентификацию."""
    pass


class DisconnectTimeoutError(WispConnectionError):
    """Транспорт не подтвердил закрытие соединения."""
    pass


class ProtocolTimeoutError(WispSocketError):
    """Ответ на запрос не пришел до дедлайна."""

    def __init__(self, message: str = "Timeout"):
        super().__init__(message)


class RemoteError(WispSocketError):
    """Ошибка, о которой явно сообщил сервер."""
    pass


class GitError(RemoteError):
    """Ошибка git-операции на сервере."""

    def __init__(self, message: str, is_private: bool = False):
        super().__init__(message)
        self.message = message
        self.is_private = is_private


class RetryExhaustedError(WispSocketError):
    """Исчерпаны все попытки переподключения."""
    pass


class PoolError(WispSocketError):
    """Ошибка пула воркеров."""
    pass


class PoolNotRunningError(PoolError):
    """Пул не запущен."""
    pass


class PoolClosedError(PoolError):
    """Пул закрыт до того, как задача была выполнена."""
    pass


class NoWorkersAvailableError(PoolError):
    """Не осталось ни одного живого воркера."""
    pass


class JobError(WispSocketError):
    """Нарушен жизненный цикл задачи."""
    pass


class CredentialsError(WispSocketError):
    """Не удалось получить данные для подключения."""
    pass


class ConfigurationError(WispSocketError):
    """Ошибка конфигурации."""
    pass
