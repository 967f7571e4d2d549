"""
Базовый пример использования клиента WISP.

Нужны переменные окружения WISP_DOMAIN, WISP_SERVER_UUID и WISP_API_TOKEN,
для приватных репозиториев также GITHUB_TOKEN.
"""

import asyncio
import os

from wisp_socket import WispSocket, WispApiCredentials, GitError, ProtocolTimeoutError, setup_logging
from wisp_socket.utils.config import load_config_from_env


def print_console_line(line: str):
    print(f"   [console] {line}")


async def main():
    """Основная функция с примерами использования."""
    config = load_config_from_env()
    setup_logging(config.log_level)

    credentials = WispApiCredentials(
        domain=os.environ["WISP_DOMAIN"],
        uuid=os.environ["WISP_SERVER_UUID"],
        token=os.environ["WISP_API_TOKEN"]
    )

    print("=== Базовый пример использования клиента WISP ===\n")

    async with WispSocket(credentials, gh_token=os.getenv("GITHUB_TOKEN"), config=config) as wisp:
        print(f"Пул запущен с {wisp.pool.get_worker_count()} воркерами")

        # Пример 1: Поиск по файлам
        print("\n1. Поиск по файлам:")
        results = await wisp.filesearch("hook.Add")
        print(f"   Найдено файлов: {len(results.files)} (too_many={results.too_many})")

        # Пример 2: Несколько операций параллельно
        print("\n2. git pull нескольких аддонов параллельно:")
        addons = ["garrysmod/addons/first", "garrysmod/addons/second"]
        pulls = await asyncio.gather(
            *(wisp.git_pull(addon) for addon in addons),
            return_exceptions=True
        )
        for addon, result in zip(addons, pulls):
            if isinstance(result, GitError):
                print(f"   {addon}: ошибка '{result.message}' (private={result.is_private})")
            elif isinstance(result, BaseException):
                print(f"   {addon}: {result!r}")
            else:
                print(f"   {addon}: {result.output or 'без изменений'} (private={result.is_private})")

        # Пример 3: Консоль
        print("\n3. Слушатель консоли и команда с nonce:")
        wisp.add_console_listener(print_console_line)
        try:
            output = await wisp.send_command_nonce("a1b2c3", "status")
            print(f"   Вывод команды: {output!r}")
        except ProtocolTimeoutError:
            print("   Команда не ответила вовремя")
        finally:
            wisp.remove_console_listener(print_console_line)

        print("\n=== Метрики пула ===")
        metrics = wisp.pool.get_metrics()
        print(f"Всего задач отправлено: {metrics['total_jobs_submitted']}")
        print(f"Задач завершено: {metrics['total_jobs_completed']}")
        print(f"Задач с ошибками: {metrics['total_jobs_failed']}")
        print(f"Процент успеха: {metrics['success_rate']:.1f}%")
        print(f"Воркеров создано: {metrics['workers_created']}")

    print("\nПул соединений остановлен")


if __name__ == "__main__":
    asyncio.run(main())
