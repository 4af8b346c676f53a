"""
Исполнитель задач с гонкой против таймаута.
"""

import asyncio
import inspect
import time
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass, asdict

from ..models.task import QueuedTask
from ..utils.logger import get_logger
from ..exceptions import TaskCancelledError, TaskTimeoutError


logger = get_logger(__name__)


async def invoke(func: Callable[..., Any], *args) -> Any:
    """
    Вызов функции, которая может вернуть awaitable или обычное значение.

    Args:
        func: Функция или корутинная функция
        *args: Аргументы вызова

    Returns:
        Результат функции
    """
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _discard_late_outcome(future: asyncio.Future):
    """Поглощение результата исполнителя, проигравшего гонку с таймаутом."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.debug(f"Ignoring late failure of detached executor: {error!r}")


@dataclass
class ExecutionConfig:
    log_execution_details: bool = True  # DEBUG-запись о каждой попытке


@dataclass
class ExecutionMetrics:
    """Счетчики попыток выполнения (одна задача с ретраями дает несколько попыток)."""
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    timeout_executions: int = 0
    detached_executions: int = 0
    total_execution_time: float = 0.0
    max_execution_time: float = 0.0
    min_execution_time: Optional[float] = None

    def record(self, elapsed: float, outcome: str):
        self.total_executions += 1
        self.total_execution_time += elapsed
        self.max_execution_time = max(self.max_execution_time, elapsed)
        if self.min_execution_time is None or elapsed < self.min_execution_time:
            self.min_execution_time = elapsed

        if outcome == "success":
            self.successful_executions += 1
            return

        self.failed_executions += 1
        if outcome == "timeout":
            # Исполнитель проигравший гонку продолжает работать в фоне
            self.timeout_executions += 1
            self.detached_executions += 1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        total = self.total_executions
        data['min_execution_time'] = self.min_execution_time or 0.0
        data['average_execution_time'] = self.total_execution_time / total if total else 0.0
        data['success_rate'] = self.successful_executions / total * 100 if total else 0.0
        data['timeout_rate'] = self.timeout_executions / total * 100 if total else 0.0
        return data


class TaskExecutor:
    """
    Выполнение одной попытки задачи с ограничением по времени.

    Исполнитель запускается отдельной asyncio-задачей и ожидается не дольше
    task.timeout. Если таймер срабатывает первым, вызывающий получает
    TaskTimeoutError, а исполнитель продолжает работу в фоне: его
    результат будет поглощен и не повлияет на задачу.
    """

    def __init__(self, config: Optional[ExecutionConfig] = None):
        self.config = config or ExecutionConfig()
        self._metrics = ExecutionMetrics()

    async def run(self, task: QueuedTask) -> Any:
        """
        Выполнение одной попытки задачи.

        Args:
            task: Допущенная к выполнению задача

        Returns:
            Результат исполнителя

        Raises:
            TaskTimeoutError: Если исполнитель не завершился за task.timeout
            TaskCancelledError: Если asyncio-задача исполнителя была отменена
            Exception: Ошибка самого исполнителя
        """
        verbose = self.config.log_execution_details
        if verbose:
            logger.debug(f"Executing task {task.id} (attempt {task.retry_count + 1}, timeout {task.timeout:.3f}s)")

        started = time.perf_counter()
        execution = asyncio.ensure_future(invoke(task.executor))
        done, _ = await asyncio.wait({execution}, timeout=task.timeout)
        elapsed = time.perf_counter() - started

        if execution not in done:
            execution.add_done_callback(_discard_late_outcome)
            self._metrics.record(elapsed, "timeout")
            logger.warning(f"Task {task.id} timed out after {task.timeout:.3f}s, executor detached")
            raise TaskTimeoutError(f"Request timeout after {task.timeout:.3f}s (task {task.id})")

        if execution.cancelled():
            self._metrics.record(elapsed, "failure")
            raise TaskCancelledError(f"Request cancelled: executor of task {task.id} was cancelled")

        error = execution.exception()
        if error is not None:
            self._metrics.record(elapsed, "failure")
            if verbose:
                logger.debug(f"Attempt of task {task.id} failed after {elapsed:.3f}s: {error!r}")
            raise error

        self._metrics.record(elapsed, "success")
        if verbose:
            logger.debug(f"Attempt of task {task.id} succeeded in {elapsed:.3f}s")
        return execution.result()

    def get_metrics(self) -> Dict[str, Any]:
        """Метрики попыток выполнения."""
        return self._metrics.to_dict()

    def reset_metrics(self):
        self._metrics = ExecutionMetrics()
        logger.debug("TaskExecutor metrics reset")

    def __repr__(self) -> str:
        return f"TaskExecutor(executions={self._metrics.total_executions})"
