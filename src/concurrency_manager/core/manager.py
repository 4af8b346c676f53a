"""
Менеджер конкурентности: ограниченное число одновременно выполняемых задач.
"""

import asyncio
from typing import Any, Callable, Dict, Optional, Set, Union
from dataclasses import dataclass, field

from .priority_queue import PriorityQueue
from .retry_policy import RetryPolicy, RetryConfig
from .task_executor import TaskExecutor, ExecutionConfig
from .graceful_shutdown import GracefulShutdown, ShutdownConfig, ShutdownStatus
from .progress import ProgressReporter, ProgressCallback

from ..models.task import QueuedTask, RequestOptions, TaskPriority, TaskStatus
from ..models.stats import ConcurrencyStats, StatsCollector
from ..models.batch import ProgressEvent, ProgressStatus

from ..utils.logger import get_logger
from ..exceptions import (
    DuplicateTaskError,
    ManagerCleanupError,
    ShutdownError,
    TaskCancelledError,
    TaskTimeoutError
)


logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENCY = 2
DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY = 1.0


@dataclass
class ManagerConfig:
    """Конфигурация менеджера конкурентности."""

    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT  # секунды
    retry_count: int = DEFAULT_RETRY_COUNT
    retry_delay: float = DEFAULT_RETRY_DELAY  # секунды, умножается на номер ретрая
    default_priority: TaskPriority = TaskPriority.NORMAL
    enable_progress_tracking: bool = True

    # Конфигурации компонентов
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    execution_config: ExecutionConfig = field(default_factory=ExecutionConfig)
    shutdown_config: ShutdownConfig = field(default_factory=ShutdownConfig)


class ConcurrencyManager:
    """
    Планировщик задач с ограничением конкурентности, таймаутами и ретраями.

    Все изменения очереди, множества активных задач и статистики происходят
    только внутри этого объекта и только в одном цикле событий.

    Отмена и таймаут не прерывают исполнителя принудительно: вызывающий
    получает ошибку сразу, а исполнитель может доработать в фоне, и его
    результат будет отброшен. Если нужна настоящая остановка, исполнитель
    сам должен следить за признаком отмены.
    """

    def __init__(
        self,
        config: Optional[ManagerConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        reporter: Optional[ProgressReporter] = None
    ):
        self.config = config or ManagerConfig()
        self._validate_config()

        # Инициализация компонентов
        self._queue = PriorityQueue()
        self._retry_policy = retry_policy or RetryPolicy(self.config.retry_config)
        self._task_executor = TaskExecutor(self.config.execution_config)
        self._graceful_shutdown = GracefulShutdown(self.config.shutdown_config)
        self._reporter = reporter or ProgressReporter(self.config.enable_progress_tracking)
        self._stats = StatsCollector()

        self._active: Dict[str, QueuedTask] = {}
        self._retrying: Dict[str, QueuedTask] = {}
        self._retry_handles: Dict[str, asyncio.TimerHandle] = {}
        self._runners: Set[asyncio.Future] = set()
        self._processing = False
        self._accepting = True

        logger.info(f"ConcurrencyManager initialized with config: {self.config}")

    def _validate_config(self):
        """Приведение недопустимых значений к безопасным значениям по умолчанию."""
        if self.config.max_concurrency <= 0:
            logger.warning(
                f"Invalid max_concurrency {self.config.max_concurrency}, using {DEFAULT_MAX_CONCURRENCY}"
            )
            self.config.max_concurrency = DEFAULT_MAX_CONCURRENCY

        if self.config.timeout <= 0:
            logger.warning(f"Invalid timeout {self.config.timeout}, using {DEFAULT_TIMEOUT}")
            self.config.timeout = DEFAULT_TIMEOUT

        if self.config.retry_count < 0:
            logger.warning(f"Invalid retry_count {self.config.retry_count}, using {DEFAULT_RETRY_COUNT}")
            self.config.retry_count = DEFAULT_RETRY_COUNT

        if self.config.retry_delay < 0:
            logger.warning(f"Invalid retry_delay {self.config.retry_delay}, using {DEFAULT_RETRY_DELAY}")
            self.config.retry_delay = DEFAULT_RETRY_DELAY

        self.config.default_priority = TaskPriority.coerce(self.config.default_priority)

    @property
    def max_concurrency(self) -> int:
        return self.config.max_concurrency

    @property
    def default_timeout(self) -> float:
        return self.config.timeout

    @property
    def default_retry_count(self) -> int:
        return self.config.retry_count

    async def execute(
        self,
        executor: Callable[[], Any],
        request_id: str,
        options: Union[RequestOptions, Dict[str, Any], None] = None
    ) -> Any:
        """
        Выполнение задачи с ограничением конкурентности.

        Args:
            executor: Функция без аргументов (корутинная или обычная)
            request_id: Уникальный ID среди незавершенных задач
            options: Таймаут, число ретраев, задержка и приоритет

        Returns:
            Результат исполнителя

        Raises:
            DuplicateTaskError: Если задача с таким ID еще не завершена
            ShutdownError: Если менеджер завершает работу
            TaskTimeoutError, TaskCancelledError, ManagerCleanupError или
            исходная ошибка исполнителя после исчерпания ретраев
        """
        if not self._accepting:
            raise ShutdownError("Manager is shutting down")

        if self.has_request(request_id):
            raise DuplicateTaskError(f"Task with ID {request_id} is already in progress")

        task = self._create_task(executor, request_id, options)
        task.future = asyncio.get_running_loop().create_future()
        task.future.add_done_callback(lambda future: self._on_caller_gone(task, future))

        self._stats.record_submitted()
        self._queue.insert(task)
        self._update_stats()
        self._process_queue()

        return await task.future

    def _create_task(
        self,
        executor: Callable[[], Any],
        request_id: str,
        options: Union[RequestOptions, Dict[str, Any], None]
    ) -> QueuedTask:
        if options is None:
            options = RequestOptions()
        elif isinstance(options, dict):
            options = RequestOptions(**options)

        timeout = options.timeout if options.timeout is not None else self.config.timeout
        retry_count = options.retry_count if options.retry_count is not None else self.config.retry_count
        retry_delay = options.retry_delay if options.retry_delay is not None else self.config.retry_delay

        return QueuedTask(
            id=request_id,
            executor=executor,
            priority=TaskPriority.coerce(options.priority or self.config.default_priority),
            timeout=timeout if timeout > 0 else self.config.timeout,
            max_retries=max(0, retry_count),
            retry_delay=max(0.0, retry_delay)
        )

    def cancel_request(self, request_id: str) -> bool:
        """
        Отмена запроса.

        Задача в очереди или в ожидании ретрая удаляется и больше не запускается.
        Для активной задачи вызывающий сразу получает TaskCancelledError, но
        исполнитель не прерывается.

        Args:
            request_id: ID задачи

        Returns:
            True если было выполнено какое-либо действие
        """
        task = self._active.pop(request_id, None)
        if task is None:
            task = self._queue.remove(request_id)
        if task is None:
            task = self._pop_retrying(request_id)
        if task is None:
            return False

        task.mark_finished(TaskStatus.CANCELLED)
        self._stats.record_cancelled()
        self._settle(task, error=TaskCancelledError(f"Request cancelled: {request_id}"))
        logger.info(f"Task {request_id} cancelled")

        self._update_stats()
        self._report(task, ProgressStatus.FAILED, "Request cancelled")
        self._process_queue()
        return True

    def _on_caller_gone(self, task: QueuedTask, future: asyncio.Future):
        """Вызывающий отменил ожидание: задача снимается с учета."""
        if not future.cancelled():
            return
        registered = (self._active.get(task.id) or self._queue.get(task.id)
                      or self._retrying.get(task.id))
        if registered is task:
            logger.debug(f"Caller of task {task.id} went away, withdrawing it")
            self.cancel_request(task.id)

    def cleanup(self):
        """Отклонение всех ожидающих и активных задач с ManagerCleanupError."""
        tasks = list(self._active.values()) + self._queue.drain() + list(self._retrying.values())

        for handle in self._retry_handles.values():
            handle.cancel()
        self._retry_handles.clear()
        self._retrying.clear()
        self._active.clear()

        for task in tasks:
            task.mark_finished(TaskStatus.CANCELLED)
            self._stats.record_cancelled()
            self._settle(task, error=ManagerCleanupError("Manager cleanup"))

        self._update_stats()
        for task in tasks:
            self._report(task, ProgressStatus.FAILED, "Manager cleanup")
        if tasks:
            logger.info(f"Manager cleanup rejected {len(tasks)} outstanding tasks")

    async def shutdown(self) -> ShutdownStatus:
        """
        Graceful shutdown: прекратить прием, дождаться задач, очистить остаток.

        Returns:
            Финальный статус завершения работы
        """
        logger.info("Stopping ConcurrencyManager...")
        self._graceful_shutdown.initiate_shutdown()

        return await self._graceful_shutdown.execute_shutdown(
            stop_new_tasks_callback=self._stop_accepting_requests,
            get_pending_tasks_callback=self.get_pending_request_count,
            terminate_callback=self.cleanup
        )

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        """Запуск graceful shutdown по SIGTERM/SIGINT."""
        loop = loop or asyncio.get_running_loop()
        return self._graceful_shutdown.register_signal_handlers(
            loop, lambda: loop.create_task(self.shutdown())
        )

    def _stop_accepting_requests(self):
        self._accepting = False
        logger.info("Stopping new request acceptance")

    def _process_queue(self):
        """Перенос задач из очереди в свободные слоты."""
        if self._processing:
            return

        self._processing = True
        try:
            while len(self._queue) > 0 and len(self._active) < self.config.max_concurrency:
                task = self._queue.pop_head()
                self._start_task(task)
        finally:
            self._processing = False

    def _start_task(self, task: QueuedTask):
        self._active[task.id] = task
        task.mark_started()
        self._update_stats()

        runner = asyncio.ensure_future(self._run_task(task))
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)

        logger.debug(f"Task {task.id} admitted ({len(self._active)}/{self.config.max_concurrency} slots)")
        self._report(task, ProgressStatus.PROCESSING)

    async def _run_task(self, task: QueuedTask):
        try:
            result = await self._task_executor.run(task)
        except Exception as error:
            self._on_task_failed(task, error)
        else:
            self._on_task_succeeded(task, result)

    def _is_current(self, task: QueuedTask) -> bool:
        """Задача все еще активна (не отменена и не очищена)."""
        return self._active.get(task.id) is task

    def _on_task_succeeded(self, task: QueuedTask, result: Any):
        if not self._is_current(task):
            logger.debug(f"Discarding result of task {task.id}: no longer active")
            return

        del self._active[task.id]
        task.mark_finished(TaskStatus.COMPLETED)
        self._stats.record_success(task.execution_time)
        self._settle(task, result=result)

        logger.info(f"Task {task.id} completed successfully after {task.retry_count + 1} attempts")
        self._update_stats()
        self._report(task, ProgressStatus.COMPLETED)
        self._process_queue()

    def _on_task_failed(self, task: QueuedTask, error: Exception):
        if not self._is_current(task):
            logger.debug(f"Discarding failure of task {task.id}: no longer active")
            return

        del self._active[task.id]
        task.error = error
        is_timeout = isinstance(error, TaskTimeoutError)

        if self._retry_policy.should_retry(error, task.retry_count, task.max_retries):
            task.mark_finished(TaskStatus.RETRYING)
            task.retry_count += 1
            self._retry_policy.record_retry()
            self._stats.record_retry(is_timeout)
            self._schedule_retry(task)
            self._report(task, ProgressStatus.RETRYING, error=str(error))
        else:
            task.mark_finished(TaskStatus.FAILED)
            self._stats.record_failure(task.execution_time, is_timeout)
            self._settle(task, error=error)
            logger.error(f"Task {task.id} failed after {task.retry_count + 1} attempts: {error}")
            self._report(task, ProgressStatus.FAILED, error=str(error))

        self._update_stats()
        self._process_queue()

    def _schedule_retry(self, task: QueuedTask):
        delay = self._retry_policy.delay_for(task.retry_count, task.retry_delay)
        logger.warning(f"Retrying task {task.id} in {delay:.2f} seconds (retry {task.retry_count}/{task.max_retries})")

        loop = asyncio.get_running_loop()
        self._retrying[task.id] = task
        self._retry_handles[task.id] = loop.call_later(delay, self._requeue, task)

    def _requeue(self, task: QueuedTask):
        if self._retrying.get(task.id) is not task:
            return

        self._pop_retrying(task.id)
        task.status = TaskStatus.PENDING
        self._queue.insert(task)
        self._update_stats()
        self._process_queue()

    def _pop_retrying(self, request_id: str) -> Optional[QueuedTask]:
        handle = self._retry_handles.pop(request_id, None)
        if handle is not None:
            handle.cancel()
        return self._retrying.pop(request_id, None)

    def _settle(self, task: QueuedTask, result: Any = None, error: Optional[BaseException] = None) -> bool:
        """Однократная доставка результата вызывающему."""
        future = task.future
        if future is None or future.done():
            return False

        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)
        return True

    def _report(
        self,
        task: QueuedTask,
        status: ProgressStatus,
        message: Optional[str] = None,
        error: Optional[str] = None
    ):
        stats = self._stats.snapshot()
        self._reporter.emit(ProgressEvent(
            processed=stats.successful_requests + stats.failed_requests + stats.cancelled_requests,
            total=stats.total_requests,
            status=status,
            message=message or f"Task {task.id} {status.value}",
            error=error,
            task_id=task.id
        ))

    def _update_stats(self):
        self._stats.update_gauges(
            active=len(self._active),
            queued=len(self._queue),
            pending_retries=len(self._retrying)
        )

    def set_progress_callback(self, callback: Optional[ProgressCallback]):
        """Установка основного наблюдателя прогресса."""
        self._reporter.set_callback(callback)

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Подписка дополнительного наблюдателя прогресса."""
        return self._reporter.subscribe(callback)

    def has_request(self, request_id: str) -> bool:
        """Проверка, находится ли задача в работе (очередь, слот или ожидание ретрая)."""
        return request_id in self._active or request_id in self._queue or request_id in self._retrying

    def get_active_request_count(self) -> int:
        """Получение количества активных задач."""
        return len(self._active)

    def get_queued_request_count(self) -> int:
        """Получение количества задач в очереди."""
        return len(self._queue)

    def get_pending_request_count(self) -> int:
        """Все незавершенные задачи, включая ожидающие ретрая."""
        return len(self._active) + len(self._queue) + len(self._retrying)

    def get_stats(self) -> ConcurrencyStats:
        """Получение снимка статистики."""
        self._update_stats()
        return self._stats.snapshot()

    def get_metrics(self) -> Dict[str, Any]:
        """Получение расширенных метрик менеджера и компонентов."""
        metrics = self.get_stats().to_dict()
        metrics.update({
            'queue_metrics': self._queue.get_metrics(),
            'retry_metrics': self._retry_policy.get_stats(),
            'execution_metrics': self._task_executor.get_metrics()
        })
        return metrics

    def is_accepting(self) -> bool:
        """Проверка приема новых задач."""
        return self._accepting

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    def __repr__(self) -> str:
        return (f"ConcurrencyManager(active={len(self._active)}/{self.config.max_concurrency}, "
                f"queued={len(self._queue)}, retrying={len(self._retrying)})")
