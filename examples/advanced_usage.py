"""
Продвинутые примеры: прямая работа с пулом и собственные задачи.
"""

import asyncio
import os
from typing import Any, Dict

from wisp_socket import (
    WebsocketPool,
    PoolConfig,
    PoolWorker,
    RetryConfig,
    WispApiCredentials,
    PreprocessedCredentials,
    WebsocketInfo,
    ProtocolTimeoutError,
    setup_logging
)
from wisp_socket.models.messages import ConsoleMessage


async def initial_status_task(worker: PoolWorker, timeout: float = 5.0) -> Dict[str, Any]:
    """Собственная задача: ожидание события ``initial status`` на соединении воркера."""
    with worker.connection.listening() as scope:
        status = scope.next("initial status")
        try:
            return await asyncio.wait_for(status, timeout=timeout)
        except asyncio.TimeoutError:
            raise ProtocolTimeoutError() from None


async def collect_console_task(worker: PoolWorker, seconds: float = 3.0) -> list:
    """Сбор строк консоли в течение ``seconds`` секунд."""
    lines = []
    with worker.connection.listening() as scope:
        scope.on("console", lambda data: lines.append(ConsoleMessage.from_dict(data).line))
        await asyncio.sleep(seconds)
    return lines


def use_internal_host(info: WebsocketInfo):
    """Подмена внешнего адреса websocket на внутренний."""
    internal = os.getenv("WISP_INTERNAL_WS")
    if internal:
        info.url = internal


async def main():
    setup_logging("DEBUG")

    credentials = PreprocessedCredentials(
        WispApiCredentials(
            domain=os.environ["WISP_DOMAIN"],
            uuid=os.environ["WISP_SERVER_UUID"],
            token=os.environ["WISP_API_TOKEN"]
        ),
        use_internal_host
    )
    config = PoolConfig(
        max_workers=3,
        min_workers=1,
        debug=True,
        reconnect=RetryConfig(max_retries=5, base_delay=1.0, max_delay=10.0)
    )

    print("=== Продвинутый пример: собственные задачи ===\n")

    async with WebsocketPool(credentials, config=config) as pool:
        # Три задачи сразу: пул доращивает воркеров до max_workers
        futures = [pool.submit(collect_console_task, name=f"console-{i}") for i in range(3)]
        print(f"Воркеров после постановки задач: {pool.get_worker_count()}")

        for i, lines in enumerate(await asyncio.gather(*futures)):
            print(f"  console-{i}: {len(lines)} строк")

        try:
            status = await pool.run(initial_status_task, name="initial-status")
            print(f"Начальный статус: {status}")
        except ProtocolTimeoutError:
            print("Сервер не прислал начальный статус")

        metrics = pool.get_metrics()
        print("\n=== Воркеры ===")
        for index, worker_metrics in metrics['workers'].items():
            print(f"  #{index}: {worker_metrics}")
        print(f"Очередь: {metrics['queue_metrics']}")


if __name__ == "__main__":
    asyncio.run(main())
