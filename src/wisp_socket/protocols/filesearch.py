"""
Поиск по содержимому файлов сервера.
"""

import asyncio

from ..core.worker import PoolWorker
from ..models.messages import FilesearchResults
from ..exceptions import ProtocolTimeoutError


DEFAULT_FILESEARCH_TIMEOUT = 5.0


async def filesearch(worker: PoolWorker, query: str,
                     timeout: float = DEFAULT_FILESEARCH_TIMEOUT) -> FilesearchResults:
    """
    ``filesearch-start`` -> ``filesearch-results``.

    Raises:
        ProtocolTimeoutError: Результаты не пришли за ``timeout`` секунд
    """
    connection = worker.connection
    worker.logger.info(f"Running filesearch: {query!r}")

    with connection.listening() as scope:
        results = scope.next("filesearch-results")
        await connection.emit("filesearch-start", query)

        try:
            data = await asyncio.wait_for(results, timeout=timeout)
        except asyncio.TimeoutError:
            worker.logger.error("Rejected filesearch: 'Timeout'")
            raise ProtocolTimeoutError() from None

    return FilesearchResults.from_dict(data)
