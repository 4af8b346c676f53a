"""
Объединение одновременных запросов с одинаковым ключом.
"""

import asyncio
from typing import Any, Callable, Dict

from .task_executor import invoke
from ..utils.logger import get_logger


logger = get_logger(__name__)


class RequestDeduplicator:
    """
    Пока запрос с ключом выполняется, повторные вызовы с тем же ключом
    получают тот же результат, а функция не запускается второй раз.
    """

    def __init__(self):
        self._pending: Dict[str, asyncio.Future] = {}

    async def execute(self, key: str, func: Callable[[], Any]) -> Any:
        """
        Выполнение с объединением по ключу.

        Args:
            key: Ключ запроса
            func: Функция без аргументов (корутинная или обычная)

        Returns:
            Результат общего выполнения
        """
        future = self._pending.get(key)
        if future is not None:
            logger.debug(f"Joining in-flight request {key}")
        else:
            future = asyncio.ensure_future(invoke(func))
            self._pending[key] = future
            future.add_done_callback(lambda done: self._forget(key, done))

        # shield: отмена одного ожидающего не отменяет общее выполнение
        return await asyncio.shield(future)

    def _forget(self, key: str, future: asyncio.Future):
        if self._pending.get(key) is future:
            del self._pending[key]
        if not future.cancelled():
            # Ошибку уже получили ожидающие; помечаем ее прочитанной
            future.exception()

    def cancel(self, key: str) -> bool:
        """
        Забыть выполняющийся запрос: следующий вызов с ключом запустит новый.

        Returns:
            True если запрос с ключом был в работе
        """
        return self._pending.pop(key, None) is not None

    def get_pending_count(self) -> int:
        """Получение количества выполняющихся запросов."""
        return len(self._pending)
