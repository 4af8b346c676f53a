"""
Поэтапное завершение работы менеджера конкурентности.
"""

import asyncio
import inspect
import signal
import time
from typing import Any, Callable, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from ..utils.logger import get_logger
from ..exceptions import ShutdownError


logger = get_logger(__name__)

Callback = Callable[[], Any]


class ShutdownPhase(Enum):
    INITIATED = "initiated"
    STOPPING_NEW_TASKS = "stopping_new_tasks"
    WAITING_FOR_COMPLETION = "waiting_for_completion"
    CLEANING_UP = "cleaning_up"
    COMPLETED = "completed"


@dataclass
class ShutdownConfig:
    """Параметры завершения работы (секунды)."""
    task_completion_timeout: float = 20.0  # Сколько ждать незавершенные задачи
    wait_for_pending_tasks: bool = True  # False - отклонить все сразу
    poll_interval: float = 0.05


@dataclass
class ShutdownStatus:
    """Ход завершения работы; после COMPLETED не меняется."""
    phase: ShutdownPhase = ShutdownPhase.INITIATED
    started_at: float = field(default_factory=time.monotonic)
    pending_at_timeout: int = 0
    cleanup_callbacks_executed: int = 0
    error_count: int = 0
    completed: bool = False
    timed_out: bool = False
    error: Optional[Exception] = None

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class GracefulShutdown:
    """
    Завершение работы в три фазы.

    1. Прекращение приема новых задач.
    2. Ожидание, пока счетчик незавершенных задач не станет нулевым
       (не дольше task_completion_timeout).
    3. Отклонение оставшегося и запуск cleanup callback'ов.

    Ошибка отдельного callback'а логируется и учитывается в статусе, но не
    прерывает остальные фазы.
    """

    def __init__(self, config: Optional[ShutdownConfig] = None):
        self.config = config or ShutdownConfig()
        self._status: Optional[ShutdownStatus] = None
        self._cleanup_callbacks: List[Callback] = []

    def register_signal_handlers(self, loop: asyncio.AbstractEventLoop, on_signal: Callback) -> bool:
        """
        Подключение SIGTERM/SIGINT к циклу событий.

        Args:
            loop: Цикл событий, в котором работает менеджер
            on_signal: Вызывается при получении сигнала

        Returns:
            False если платформа или цикл не поддерживают обработчики сигналов
        """
        def handle(signum):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            on_signal()

        try:
            for signum in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(signum, handle, signum)
        except (NotImplementedError, RuntimeError, ValueError) as e:
            logger.warning(f"Signal handlers are not available: {e}")
            return False
        return True

    def initiate_shutdown(self) -> ShutdownStatus:
        """Начало завершения; повторный вызов во время работы возвращает текущий статус."""
        if self._status is not None and not self._status.completed:
            logger.warning(f"Shutdown already in progress (phase {self._status.phase.value})")
            return self._status

        self._status = ShutdownStatus()
        logger.info("Shutdown initiated")
        return self._status

    async def execute_shutdown(
        self,
        stop_new_tasks_callback: Optional[Callback] = None,
        get_pending_tasks_callback: Optional[Callable[[], int]] = None,
        terminate_callback: Optional[Callback] = None,
        cleanup_callbacks: Optional[List[Callback]] = None
    ) -> ShutdownStatus:
        """
        Прохождение всех фаз.

        Args:
            stop_new_tasks_callback: Запрет приема новых задач
            get_pending_tasks_callback: Число задач в очереди, в слотах и в ожидании ретрая
            terminate_callback: Отклонение всего, что не завершилось
            cleanup_callbacks: Callback'и, выполняемые после terminate_callback

        Returns:
            Финальный статус

        Raises:
            ShutdownError: Если initiate_shutdown() не вызывался
        """
        status = self._status
        if status is None:
            raise ShutdownError("Shutdown not initiated")

        try:
            self._enter(ShutdownPhase.STOPPING_NEW_TASKS)
            if stop_new_tasks_callback is not None:
                await self._run_callback(stop_new_tasks_callback)

            if self.config.wait_for_pending_tasks and get_pending_tasks_callback is not None:
                self._enter(ShutdownPhase.WAITING_FOR_COMPLETION)
                await self._wait_for_task_completion(get_pending_tasks_callback)

            self._enter(ShutdownPhase.CLEANING_UP)
            if terminate_callback is not None:
                await self._run_callback(terminate_callback)

            for callback in list(cleanup_callbacks or []) + self._cleanup_callbacks:
                if await self._run_callback(callback):
                    status.cleanup_callbacks_executed += 1

            self._enter(ShutdownPhase.COMPLETED)
            status.completed = True
            logger.info(f"Shutdown completed in {status.elapsed:.2f}s")

        except Exception as e:
            status.error = e
            status.error_count += 1
            logger.error(f"Shutdown failed in phase {status.phase.value}: {e}")

        return status

    def _enter(self, phase: ShutdownPhase):
        self._status.phase = phase
        logger.debug(f"Shutdown phase: {phase.value}")

    async def _run_callback(self, callback: Callback) -> bool:
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._status.error_count += 1
            logger.error(f"Shutdown callback {callback!r} failed: {e}")
            return False
        return True

    async def _wait_for_task_completion(self, count_pending: Callable[[], int]):
        deadline = time.monotonic() + self.config.task_completion_timeout

        pending = count_pending()
        while pending > 0:
            if time.monotonic() >= deadline:
                self._status.timed_out = True
                self._status.pending_at_timeout = pending
                logger.warning(f"{pending} tasks still pending after "
                               f"{self.config.task_completion_timeout}s, rejecting them")
                return

            logger.debug(f"Waiting for {pending} pending tasks")
            await asyncio.sleep(self.config.poll_interval)
            pending = count_pending()

        logger.info("No pending tasks left")

    def add_cleanup_callback(self, callback: Callback):
        self._cleanup_callbacks.append(callback)

    def remove_cleanup_callback(self, callback: Callback) -> bool:
        if callback not in self._cleanup_callbacks:
            return False
        self._cleanup_callbacks.remove(callback)
        return True

    def is_shutdown_initiated(self) -> bool:
        return self._status is not None

    def is_shutdown_completed(self) -> bool:
        return self._status is not None and self._status.completed

    def get_status(self) -> Optional[ShutdownStatus]:
        return self._status

    def reset(self):
        """Сброс для повторного использования (например, после перезапуска менеджера)."""
        self._status = None

    def __repr__(self) -> str:
        phase = self._status.phase.value if self._status else "not_initiated"
        return f"GracefulShutdown(phase={phase})"
