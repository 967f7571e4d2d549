"""
Тесты для отдельных компонентов пула соединений.
"""

import json
import logging

import pytest
import requests
from unittest.mock import Mock

from wisp_socket.core.job_queue import JobQueue, QueueConfig
from wisp_socket.core.retry_manager import RetryManager, RetryConfig, BackoffStrategy
from wisp_socket.credentials import (
    WispApiCredentials,
    PreprocessedCredentials,
    StaticCredentials,
    WebsocketInfo
)
from wisp_socket.models.job import Job, JobStatus
from wisp_socket.models.messages import ConsoleMessage, FilesearchResults, GitCloneData
from wisp_socket.utils.config import Config, load_config, save_config, load_config_from_env
from wisp_socket.utils.logger import PrefixedLogger
from wisp_socket.exceptions import (
    ConfigurationError,
    CredentialsError,
    JobError,
    PoolClosedError,
    RetryExhaustedError,
    WispConnectionError
)


async def noop(worker):
    return None


class TestJobQueue:
    """Тесты для очереди задач."""

    @pytest.mark.asyncio
    async def test_fifo_order(self):
        """Тест порядка извлечения."""
        queue = JobQueue()
        jobs = [Job(func=noop, name=f"job-{i}") for i in range(3)]
        for job in jobs:
            queue.put(job)

        assert len(queue) == 3
        assert [queue.get_job() for _ in range(3)] == jobs
        assert queue.get_job() is None

    @pytest.mark.asyncio
    async def test_queue_overflow(self):
        """Тест переполнения очереди."""
        queue = JobQueue(QueueConfig(max_size=1))
        queue.put(Job(func=noop))

        with pytest.raises(OverflowError):
            queue.put(Job(func=noop))

        assert queue.get_metrics()['jobs_dropped'] == 1

    @pytest.mark.asyncio
    async def test_closed_queue(self):
        """Тест закрытой очереди."""
        queue = JobQueue()
        queue.close()

        with pytest.raises(PoolClosedError):
            queue.put(Job(func=noop))

        queue.reopen()
        queue.put(Job(func=noop))
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_drain_and_metrics(self):
        """Тест очистки и метрик."""
        queue = JobQueue()
        for _ in range(3):
            queue.put(Job(func=noop))
        queue.get_job()

        drained = queue.drain()
        metrics = queue.get_metrics()

        assert len(drained) == 2
        assert len(queue) == 0
        assert metrics['jobs_submitted'] == 3
        assert metrics['jobs_retrieved'] == 1
        assert metrics['max_size_reached'] == 3


class TestJob:
    """Тесты модели задачи."""

    def test_job_requires_function(self):
        """Тест задачи без функции."""
        with pytest.raises(ValueError):
            Job(func=None)

    @pytest.mark.asyncio
    async def test_claim_once(self):
        """Тест однократного захвата."""
        job = Job(func=noop)
        job.claim(0)

        assert job.status == JobStatus.RUNNING
        assert job.worker_index == 0
        with pytest.raises(JobError):
            job.claim(1)

    @pytest.mark.asyncio
    async def test_complete_and_fail(self):
        """Тест завершения задачи."""
        job = Job(func=noop)
        job.claim(0)
        job.complete("result")

        assert job.is_done()
        assert await job.future == "result"
        with pytest.raises(JobError):
            job.fail(RuntimeError("late"))

        failed = Job(func=noop)
        failed.claim(1)
        failed.fail(RuntimeError("boom"))
        assert failed.status == JobStatus.FAILED
        with pytest.raises(RuntimeError, match="boom"):
            await failed.future


class TestRetryManager:
    """Тесты для менеджера переподключений."""

    def test_default_config(self):
        """Тест политики по умолчанию."""
        manager = RetryManager()
        assert manager.config.max_retries == 3
        assert manager.calculate_delay(1) == 0.5
        assert manager.calculate_delay(2) == 1.0
        assert manager.calculate_delay(3) == 2.0
        assert manager.calculate_delay(4) == 3.0  # ограничено max_delay

    def test_linear_and_fixed_backoff(self):
        """Тест линейного и фиксированного backoff."""
        linear = RetryManager(RetryConfig(strategy=BackoffStrategy.LINEAR, base_delay=1.0, max_delay=10.0))
        fixed = RetryManager(RetryConfig(strategy=BackoffStrategy.FIXED, base_delay=2.0))

        assert [linear.calculate_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]
        assert [fixed.calculate_delay(n) for n in (1, 2, 3)] == [2.0, 2.0, 2.0]

    def test_should_retry_logic(self):
        """Тест логики определения необходимости повтора."""
        manager = RetryManager(RetryConfig(max_retries=2))

        assert manager.should_retry(1, WispConnectionError("refused"))
        assert not manager.should_retry(3, WispConnectionError("refused"))
        assert not manager.should_retry(1, ValueError("bug"))

    @pytest.mark.asyncio
    async def test_retry_with_success(self):
        """Тест успешного повтора и хука перед повтором."""
        manager = RetryManager(RetryConfig(base_delay=0.001, max_delay=0.001))
        attempts = 0
        hooks = []

        async def operation():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise WispConnectionError("temporary")
            return "connected"

        async def before_retry(attempt):
            hooks.append(attempt)

        result = await manager.execute_with_retry(operation, name="connect", before_retry=before_retry)

        assert result == "connected"
        assert attempts == 3
        assert hooks == [1, 2]
        assert manager.get_stats()['total_retries'] == 2
        assert len(manager.get_history()) == 2

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        """Тест: история хранит только последние повторы."""
        manager = RetryManager(RetryConfig(max_retries=10, base_delay=0.0, max_delay=0.0, history_limit=3))
        attempts = 0

        async def operation():
            nonlocal attempts
            attempts += 1
            if attempts < 9:
                raise WispConnectionError(f"refused {attempts}")
            return "connected"

        for _ in range(2):
            attempts = 0
            assert await manager.execute_with_retry(operation, name="connect") == "connected"

        history = manager.get_history()
        assert [a.attempt_number for a in history] == [6, 7, 8]
        assert str(history[-1].exception) == "refused 8"
        assert manager.get_stats()['total_retries'] == 16

    @pytest.mark.asyncio
    async def test_retry_exhausted(self):
        """Тест исчерпания попыток."""
        manager = RetryManager(RetryConfig(max_retries=2, base_delay=0.001))

        async def operation():
            raise WispConnectionError("refused")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await manager.execute_with_retry(operation)

        assert isinstance(exc_info.value.__cause__, WispConnectionError)
        assert manager.get_stats()['failed_operations'] == 1

    @pytest.mark.asyncio
    async def test_non_retryable_error(self):
        """Тест: ошибки не из retry_on_exceptions не повторяются."""
        manager = RetryManager(RetryConfig(base_delay=0.001))
        attempts = 0

        async def operation():
            nonlocal attempts
            attempts += 1
            raise ValueError("bug")

        with pytest.raises(ValueError):
            await manager.execute_with_retry(operation)

        assert attempts == 1


class TestMessages:
    """Тесты структур сообщений."""

    def test_console_message_is_tolerant(self):
        """Тест разбора строк консоли."""
        assert ConsoleMessage.from_dict({"type": "console", "line": "hi"}).line == "hi"
        assert ConsoleMessage.from_dict({"line": None}).line == ""
        assert ConsoleMessage.from_dict("raw").line == "raw"
        assert ConsoleMessage.from_dict(None).line == ""

    def test_filesearch_results(self):
        """Тест разбора результатов поиска."""
        data = {"files": {"lua/init.lua": {"results": 2, "lines": {"1": "a", "2": "b"}}}, "tooMany": False}
        results = FilesearchResults.from_dict(data)

        assert results.files["lua/init.lua"].results == 2
        assert results.to_dict() == data
        assert FilesearchResults.from_dict(None).files == {}

    def test_git_request_omits_missing_authkey(self):
        """Тест: ключ не отправляется, если его нет."""
        assert "authkey" not in GitCloneData(dir="d", url="u", branch="b").to_dict()
        assert GitCloneData(dir="d", url="u", branch="b", authkey="k").to_dict()["authkey"] == "k"


class TestConfig:
    """Тесты конфигурации."""

    def test_defaults(self):
        """Тест значений по умолчанию."""
        config = Config()
        assert config.pool.max_workers == 5
        assert config.pool.connection.connect_timeout == 10.0
        assert config.pool.connection.disconnect_timeout == 5.0
        assert config.filesearch_timeout == 5.0
        assert config.command_timeout == 1.0
        assert config.validate()

    def test_dict_roundtrip(self):
        """Тест преобразования в словарь и обратно."""
        config = Config().update(max_workers=8, git_timeout=None)
        data = config.to_dict()

        assert data['pool']['reconnect']['strategy'] == "exponential"
        assert 'retry_on_exceptions' not in data['pool']['reconnect']

        restored = Config.from_dict(data)
        assert restored.pool.max_workers == 8
        assert restored.git_timeout is None
        assert restored.pool.reconnect.strategy == BackoffStrategy.EXPONENTIAL
        assert restored.pool.reconnect.retry_on_exceptions == [WispConnectionError]

    def test_validation(self):
        """Тест валидации."""
        with pytest.raises(ConfigurationError):
            Config(command_timeout=0).validate()
        with pytest.raises(ConfigurationError):
            Config().update(min_workers=10).validate()
        with pytest.raises(ConfigurationError):
            Config.from_dict({"unknown_option": 1})
        with pytest.raises(ConfigurationError):
            Config.from_dict({"pool": {"reconnect": {"history_limit": 0}}}).validate()

    def test_save_and_load_yaml(self, tmp_path):
        """Тест сохранения и загрузки YAML."""
        path = tmp_path / "config" / "wisp.yaml"
        save_config(Config().update(max_workers=2, debug=True), path)

        loaded = load_config(path)
        assert loaded.pool.max_workers == 2
        assert loaded.pool.debug is True

    def test_load_json(self, tmp_path):
        """Тест загрузки JSON."""
        path = tmp_path / "wisp.json"
        path.write_text(json.dumps({"command_timeout": 2.5, "pool": {"max_workers": 4}}), encoding="utf-8")

        loaded = load_config(path)
        assert loaded.command_timeout == 2.5
        assert loaded.pool.max_workers == 4

    def test_load_missing_file(self, tmp_path):
        """Тест загрузки несуществующего файла."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_load_from_env(self, monkeypatch):
        """Тест загрузки из переменных окружения."""
        monkeypatch.setenv("WISP_MAX_WORKERS", "7")
        monkeypatch.setenv("WISP_DEBUG", "true")
        monkeypatch.setenv("WISP_CONNECT_TIMEOUT", "3")
        monkeypatch.setenv("WISP_GIT_TIMEOUT", "none")
        monkeypatch.setenv("WISP_COMMAND_TIMEOUT", "1.5")

        config = load_config_from_env()

        assert config.pool.max_workers == 7
        assert config.pool.debug is True
        assert config.pool.connection.connect_timeout == 3.0
        assert config.git_timeout is None
        assert config.command_timeout == 1.5

    def test_invalid_env_value(self, monkeypatch):
        """Тест некорректного значения в окружении."""
        monkeypatch.setenv("WISP_MAX_WORKERS", "many")
        with pytest.raises(ConfigurationError):
            load_config_from_env()


class TestCredentials:
    """Тесты источников данных для подключения."""

    def test_api_request(self):
        """Тест запроса к API панели."""
        response = Mock()
        response.json.return_value = {"url": "wss://node.example:8080", "token": "ws-token"}
        session = Mock()
        session.get.return_value = response

        provider = WispApiCredentials("panel.example", "abc-123", "api-token", session=session)
        info = provider.fetch()

        assert info == WebsocketInfo(url="wss://node.example:8080", token="ws-token")
        url = session.get.call_args[0][0]
        headers = session.get.call_args[1]["headers"]
        assert url == "https://panel.example/api/client/servers/abc-123/websocket"
        assert headers["Authorization"] == "Bearer api-token"
        assert headers["Accept"] == "application/vnd.wisp.v1+json"

    def test_api_http_error(self):
        """Тест ошибки HTTP."""
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        session = Mock()
        session.get.return_value = response

        provider = WispApiCredentials("panel.example", "abc-123", "bad-token", session=session)
        with pytest.raises(CredentialsError):
            provider.fetch()

    def test_malformed_details(self):
        """Тест ответа без токена."""
        with pytest.raises(CredentialsError):
            WebsocketInfo.from_dict({"url": "wss://node.example"})

    @pytest.mark.asyncio
    async def test_async_fetch(self):
        """Тест асинхронного запроса (в отдельном потоке)."""
        response = Mock()
        response.json.return_value = {"url": "wss://node.example", "token": "t"}
        session = Mock()
        session.get.return_value = response

        provider = WispApiCredentials("panel.example", "abc-123", "api-token", session=session)
        info = await provider.get_websocket_info()

        assert info.token == "t"

    @pytest.mark.asyncio
    async def test_preprocessor(self):
        """Тест хука предобработки."""
        def use_internal(info):
            info.url = info.url.replace("wss://public", "ws://internal")

        provider = PreprocessedCredentials(StaticCredentials("wss://public:8080", "t"), use_internal)
        info = await provider.get_websocket_info()

        assert info.url == "ws://internal:8080"


class TestPrefixedLogger:
    """Тесты логгера с префиксом."""

    def test_prefix_and_debug_gate(self, caplog):
        """Тест префикса и отключенного debug."""
        base = logging.getLogger("wisp_socket.tests")
        logger = PrefixedLogger(base, "[Pool]")

        with caplog.at_level(logging.DEBUG, logger="wisp_socket.tests"):
            logger.debug("hidden")
            logger.info("visible")
            logger.child("[Worker #1]").error("failed")

        messages = [record.getMessage() for record in caplog.records]
        assert messages == ["[Pool] visible", "[Worker #1] failed"]

    def test_debug_enabled(self, caplog):
        """Тест включенного debug."""
        logger = PrefixedLogger(logging.getLogger("wisp_socket.tests"), "[Pool]", debug_enabled=True)

        with caplog.at_level(logging.DEBUG, logger="wisp_socket.tests"):
            logger.debug("shown")

        assert [record.getMessage() for record in caplog.records] == ["[Pool] shown"]
