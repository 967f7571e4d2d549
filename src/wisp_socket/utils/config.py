"""
Система конфигурации для пула соединений.
"""

import json
import os
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field, asdict, fields, replace
from pathlib import Path

import yaml

from ..core.connection import ConnectionConfig
from ..core.job_queue import QueueConfig
from ..core.pool import PoolConfig
from ..core.retry_manager import RetryConfig, BackoffStrategy
from ..protocols.filesearch import DEFAULT_FILESEARCH_TIMEOUT
from ..protocols.console import DEFAULT_COMMAND_TIMEOUT
from ..protocols.git import DEFAULT_GIT_TIMEOUT
from ..exceptions import ConfigurationError


# Поля RetryConfig со списками классов исключений в файл не сохраняются
_RETRY_TYPE_FIELDS = ('retry_on_exceptions', 'stop_on_exceptions')


@dataclass
class Config:
    """Основная конфигурация клиента."""

    pool: PoolConfig = field(default_factory=PoolConfig)
    filesearch_timeout: float = DEFAULT_FILESEARCH_TIMEOUT
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    git_timeout: Optional[float] = DEFAULT_GIT_TIMEOUT  # None - без ограничения
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь (пригодный для YAML и JSON)."""
        config_dict = asdict(self)

        reconnect = config_dict['pool']['reconnect']
        reconnect['strategy'] = self.pool.reconnect.strategy.value
        for key in _RETRY_TYPE_FIELDS:
            reconnect.pop(key, None)

        return config_dict

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Создание из словаря."""
        data = dict(data or {})
        pool_data = dict(data.pop('pool', None) or {})

        connection_data = pool_data.pop('connection', None) or {}
        reconnect_data = dict(pool_data.pop('reconnect', None) or {})
        queue_data = pool_data.pop('queue', None) or {}

        if 'strategy' in reconnect_data:
            reconnect_data['strategy'] = BackoffStrategy(reconnect_data['strategy'])
        for key in _RETRY_TYPE_FIELDS:
            reconnect_data.pop(key, None)

        try:
            pool = PoolConfig(
                **pool_data,
                connection=ConnectionConfig(**connection_data),
                reconnect=RetryConfig(**reconnect_data),
                queue=QueueConfig(**queue_data)
            )
            return cls(pool=pool, **data)
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration option: {e}") from e

    def validate(self) -> bool:
        """Валидация конфигурации."""
        errors = []

        if self.filesearch_timeout <= 0:
            errors.append("filesearch_timeout must be > 0")

        if self.command_timeout <= 0:
            errors.append("command_timeout must be > 0")

        if self.git_timeout is not None and self.git_timeout <= 0:
            errors.append("git_timeout must be > 0 or None")

        if self.pool.reconnect.max_retries < 0:
            errors.append("pool.reconnect.max_retries must be >= 0")

        if self.pool.reconnect.base_delay < 0:
            errors.append("pool.reconnect.base_delay must be >= 0")

        if self.pool.reconnect.history_limit < 1:
            errors.append("pool.reconnect.history_limit must be >= 1")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        self.pool.validate()
        return True

    def update(self, **kwargs) -> 'Config':
        """
        Копия конфигурации с новыми значениями.

        Ключи верхнего уровня заменяются целиком, остальные
        (``max_workers``, ``debug``, ...) относятся к ``pool``.
        """
        top_level = {f.name for f in fields(self)}
        own = {k: v for k, v in kwargs.items() if k in top_level}
        pool_changes = {k: v for k, v in kwargs.items() if k not in top_level}

        try:
            pool = replace(own.pop('pool', self.pool), **pool_changes)
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration option: {e}") from e

        return replace(self, pool=pool, **own)


def load_config(file_path: Union[str, Path]) -> Config:
    """
    Загрузка конфигурации из файла.

    Args:
        file_path: Путь к файлу конфигурации (.yaml, .yml или .json)

    Returns:
        Объект конфигурации
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        if file_path.suffix.lower() in ['.yaml', '.yml']:
            data = yaml.safe_load(f)
        elif file_path.suffix.lower() == '.json':
            data = json.load(f)
        else:
            raise ConfigurationError(f"Unsupported configuration file format: {file_path.suffix}")

    config = Config.from_dict(data or {})
    config.validate()

    return config


def save_config(config: Config, file_path: Union[str, Path], format: str = 'yaml'):
    """
    Сохранение конфигурации в файл.

    Args:
        config: Объект конфигурации
        file_path: Путь к файлу
        format: Формат файла ('yaml' или 'json')
    """
    file_path = Path(file_path)
    data = config.to_dict()

    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding='utf-8') as f:
        if format.lower() == 'yaml':
            yaml.safe_dump(data, f, default_flow_style=False, indent=2)
        elif format.lower() == 'json':
            json.dump(data, f, indent=2, ensure_ascii=False)
        else:
            raise ConfigurationError(f"Unsupported format: {format}")


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config_from_env() -> Config:
    """
    Загрузка конфигурации из переменных окружения ``WISP_*``.

    Returns:
        Объект конфигурации
    """
    config_data: Dict[str, Any] = {}
    pool_data: Dict[str, Any] = {}

    try:
        if os.getenv('WISP_MAX_WORKERS'):
            pool_data['max_workers'] = int(os.getenv('WISP_MAX_WORKERS'))

        if os.getenv('WISP_MIN_WORKERS'):
            pool_data['min_workers'] = int(os.getenv('WISP_MIN_WORKERS'))

        if os.getenv('WISP_DEBUG'):
            pool_data['debug'] = _env_flag(os.getenv('WISP_DEBUG'))

        if os.getenv('WISP_CONNECT_TIMEOUT'):
            pool_data['connection'] = {'connect_timeout': float(os.getenv('WISP_CONNECT_TIMEOUT'))}

        if os.getenv('WISP_LOG_LEVEL'):
            config_data['log_level'] = os.getenv('WISP_LOG_LEVEL')

        if os.getenv('WISP_FILESEARCH_TIMEOUT'):
            config_data['filesearch_timeout'] = float(os.getenv('WISP_FILESEARCH_TIMEOUT'))

        if os.getenv('WISP_COMMAND_TIMEOUT'):
            config_data['command_timeout'] = float(os.getenv('WISP_COMMAND_TIMEOUT'))

        git_timeout = os.getenv('WISP_GIT_TIMEOUT')
        if git_timeout:
            config_data['git_timeout'] = None if git_timeout.lower() == 'none' else float(git_timeout)
    except ValueError as e:
        raise ConfigurationError(f"Invalid WISP_* environment value: {e}") from e

    if pool_data:
        config_data['pool'] = pool_data

    return Config.from_dict(config_data)


def create_default_config() -> Config:
    """Создание конфигурации по умолчанию."""
    return Config()
