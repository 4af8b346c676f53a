"""
Тесты для отдельных компонентов менеджера конкурентности.
"""

import asyncio
import json
import logging
import pytest
from types import SimpleNamespace
from unittest.mock import Mock

from concurrency_manager.core.priority_queue import PriorityQueue
from concurrency_manager.core.retry_policy import RetryPolicy, RetryConfig, BackoffStrategy
from concurrency_manager.core.task_executor import TaskExecutor, ExecutionConfig, invoke
from concurrency_manager.core.graceful_shutdown import GracefulShutdown, ShutdownConfig, ShutdownPhase
from concurrency_manager.core.progress import ProgressReporter
from concurrency_manager.core.deduplicator import RequestDeduplicator
from concurrency_manager.config import (
    Config,
    load_config,
    save_config,
    load_config_from_env,
    merge_configs
)

from concurrency_manager.models.task import QueuedTask, TaskPriority, TaskStatus
from concurrency_manager.models.stats import StatsCollector, ConcurrencyStats
from concurrency_manager.models.batch import ProgressEvent, ProgressStatus
from concurrency_manager.utils import logger as logger_module
from concurrency_manager.utils import monitoring
from concurrency_manager.exceptions import (
    ConfigurationError,
    ManagerCleanupError,
    NonRetryableError,
    ShutdownError,
    TaskCancelledError,
    TaskTimeoutError
)


def make_task(task_id, priority=TaskPriority.NORMAL, executor=None, **kwargs):
    return QueuedTask(id=task_id, executor=executor or (lambda: task_id), priority=priority, **kwargs)


class TestModels:
    """Тесты для моделей данных."""

    def test_priority_coercion(self):
        """Тест приведения приоритетов из строк и чисел."""
        assert TaskPriority.coerce(None) is TaskPriority.NORMAL
        assert TaskPriority.coerce("high") is TaskPriority.HIGH
        assert TaskPriority.coerce(" Critical ") is TaskPriority.CRITICAL
        assert TaskPriority.coerce(1) is TaskPriority.LOW
        assert TaskPriority.coerce(TaskPriority.LOW) is TaskPriority.LOW

        with pytest.raises(ValueError):
            TaskPriority.coerce("urgent")

    def test_queued_task_validation(self):
        """Тест валидации задачи."""
        with pytest.raises(ValueError):
            QueuedTask(id="", executor=lambda: None)

        with pytest.raises(ValueError):
            QueuedTask(id="task", executor="not callable")

    def test_queued_task_timing(self):
        """Тест отметок времени выполнения."""
        task = make_task("timed")
        assert task.execution_time is None

        task.mark_started()
        assert task.status == TaskStatus.RUNNING
        task.mark_finished(TaskStatus.COMPLETED)

        assert task.status == TaskStatus.COMPLETED
        assert task.execution_time >= 0
        assert task.completed_at is not None

    def test_stats_collector_real_average(self):
        """Тест средней длительности по реальным измерениям."""
        collector = StatsCollector()
        collector.record_submitted()
        collector.record_submitted()
        collector.record_success(1.0)
        collector.record_failure(3.0, is_timeout=True)

        stats = collector.snapshot()
        assert stats.total_requests == 2
        assert stats.successful_requests == 1
        assert stats.failed_requests == 1
        assert stats.timed_out_requests == 1
        assert stats.average_execution_time == pytest.approx(2.0)
        assert stats.min_execution_time == pytest.approx(1.0)
        assert stats.max_execution_time == pytest.approx(3.0)
        assert stats.success_rate == pytest.approx(50.0)

    def test_stats_snapshot_is_detached(self):
        """Тест независимости снимка от сборщика."""
        collector = StatsCollector()
        snapshot = collector.snapshot()
        collector.record_submitted()

        assert snapshot.total_requests == 0
        assert collector.snapshot().total_requests == 1

    def test_max_concurrent_reached(self):
        """Тест фиксации максимума одновременных задач."""
        collector = StatsCollector()
        collector.update_gauges(active=3, queued=1)
        collector.update_gauges(active=1, queued=0)

        assert collector.snapshot().max_concurrent_reached == 3

    def test_empty_stats(self):
        """Тест пустой статистики."""
        stats = ConcurrencyStats()
        assert stats.success_rate == 0.0
        assert stats.to_dict()['success_rate'] == 0.0

    def test_progress_event_percentage(self):
        """Тест процента выполнения."""
        event = ProgressEvent(processed=25, total=100, status=ProgressStatus.PROCESSING)
        assert event.percentage == 25.0
        assert event.to_dict()['status'] == "processing"
        assert 'task_id' not in event.to_dict()

        assert ProgressEvent(processed=0, total=0, status=ProgressStatus.STARTED).percentage == 0.0


class TestPriorityQueue:
    """Тесты для приоритетной очереди."""

    def test_queue_initialization(self):
        """Тест инициализации очереди."""
        queue = PriorityQueue()
        assert len(queue) == 0
        assert queue.pop_head() is None
        assert queue.peek() is None

    def test_priority_order(self):
        """Тест выборки по приоритету."""
        queue = PriorityQueue()

        queue.insert(make_task("low", TaskPriority.LOW))
        queue.insert(make_task("normal", TaskPriority.NORMAL))
        queue.insert(make_task("critical", TaskPriority.CRITICAL))
        queue.insert(make_task("high", TaskPriority.HIGH))

        order = [queue.pop_head().id for _ in range(4)]
        assert order == ["critical", "high", "normal", "low"]

    def test_fifo_within_priority(self):
        """Тест порядка поступления внутри одного приоритета."""
        queue = PriorityQueue()
        for i in range(5):
            queue.insert(make_task(f"task-{i}", TaskPriority.HIGH))
        queue.insert(make_task("late-critical", TaskPriority.CRITICAL))

        assert queue.pop_head().id == "late-critical"
        assert [queue.pop_head().id for _ in range(5)] == [f"task-{i}" for i in range(5)]

    def test_duplicate_insert(self):
        """Тест повторной вставки задачи с тем же ID."""
        queue = PriorityQueue()
        queue.insert(make_task("dup"))

        with pytest.raises(ValueError):
            queue.insert(make_task("dup"))

    def test_remove_task(self):
        """Тест удаления конкретной задачи."""
        queue = PriorityQueue()
        queue.insert(make_task("a"))
        queue.insert(make_task("b"))
        queue.insert(make_task("c"))

        removed = queue.remove("b")
        assert removed.id == "b"
        assert "b" not in queue
        assert queue.remove("missing") is None
        assert [task.id for task in queue.drain()] == ["a", "c"]
        assert len(queue) == 0

    def test_queue_metrics(self):
        """Тест метрик очереди."""
        queue = PriorityQueue()
        queue.insert(make_task("a", TaskPriority.LOW))
        queue.insert(make_task("b", TaskPriority.HIGH))
        queue.pop_head()
        queue.remove("a")

        metrics = queue.get_metrics()
        assert metrics['tasks_inserted'] == 2
        assert metrics['tasks_popped'] == 1
        assert metrics['tasks_removed'] == 1
        assert metrics['max_size_reached'] == 2
        assert metrics['current_size'] == 0
        assert metrics['priority_stats'] == {'low': 1, 'high': 1}


class TestRetryPolicy:
    """Тесты для политики ретраев."""

    def test_linear_backoff(self):
        """Тест линейного роста задержки."""
        policy = RetryPolicy()

        assert policy.delay_for(1, 0.5) == pytest.approx(0.5)
        assert policy.delay_for(2, 0.5) == pytest.approx(1.0)
        assert policy.delay_for(3, 0.5) == pytest.approx(1.5)

    def test_other_strategies(self):
        """Тест фиксированной и экспоненциальной задержки."""
        fixed = RetryPolicy(RetryConfig(strategy=BackoffStrategy.FIXED))
        assert fixed.delay_for(5, 1.0) == pytest.approx(1.0)

        exponential = RetryPolicy(RetryConfig(strategy=BackoffStrategy.EXPONENTIAL))
        assert exponential.delay_for(1, 1.0) == pytest.approx(1.0)
        assert exponential.delay_for(3, 1.0) == pytest.approx(4.0)

    def test_max_delay_cap(self):
        """Тест ограничения задержки сверху."""
        policy = RetryPolicy(RetryConfig(max_delay=2.0))
        assert policy.delay_for(10, 1.0) == pytest.approx(2.0)

    def test_should_retry_until_exhausted(self):
        """Тест исчерпания ретраев."""
        policy = RetryPolicy()
        error = RuntimeError("temporary failure")

        assert policy.should_retry(error, 0, 2)
        assert policy.should_retry(error, 1, 2)
        assert not policy.should_retry(error, 2, 2)
        assert policy.get_stats()['exhausted'] == 1

    def test_non_retryable_by_message(self):
        """Тест неповторяемых ошибок по тексту сообщения."""
        policy = RetryPolicy()

        assert not policy.is_retryable(RuntimeError("Invalid API key provided"))
        assert not policy.is_retryable(RuntimeError("Authentication failed for user"))
        assert not policy.should_retry(RuntimeError("Request cancelled"), 0, 3)
        assert policy.get_stats()['denied_non_retryable'] == 1
        assert policy.is_retryable(RuntimeError("Connection reset"))

    def test_non_retryable_by_type(self):
        """Тест неповторяемых ошибок по типу."""
        policy = RetryPolicy()

        class QuotaExceeded(NonRetryableError):
            pass

        assert not policy.is_retryable(QuotaExceeded("quota"))
        assert not policy.is_retryable(TaskCancelledError("gone"))
        assert not policy.is_retryable(ManagerCleanupError("cleanup"))
        assert policy.is_retryable(TaskTimeoutError("slow"))

    def test_custom_messages(self):
        """Тест собственного списка неповторяемых сообщений."""
        policy = RetryPolicy(RetryConfig(non_retryable_messages=["quota exceeded"]))

        assert not policy.is_retryable(RuntimeError("monthly quota exceeded"))
        assert policy.is_retryable(RuntimeError("Invalid API key"))


class TestTaskExecutor:
    """Тесты для исполнителя задач."""

    @pytest.mark.asyncio
    async def test_invoke_sync_and_async(self):
        """Тест вызова обычной и корутинной функции."""
        async def double(x):
            return x * 2

        assert await invoke(lambda x: x + 1, 1) == 2
        assert await invoke(double, 4) == 8

    @pytest.mark.asyncio
    async def test_successful_execution(self):
        """Тест успешного выполнения."""
        executor = TaskExecutor()

        async def work():
            await asyncio.sleep(0.01)
            return "done"

        result = await executor.run(make_task("ok", executor=work, timeout=1.0))

        assert result == "done"
        metrics = executor.get_metrics()
        assert metrics['total_executions'] == 1
        assert metrics['successful_executions'] == 1
        assert metrics['success_rate'] == 100.0

    @pytest.mark.asyncio
    async def test_executor_error_propagates(self):
        """Тест проброса ошибки исполнителя."""
        executor = TaskExecutor(ExecutionConfig(log_execution_details=False))

        def failing():
            raise ValueError("broken")

        with pytest.raises(ValueError, match="broken"):
            await executor.run(make_task("fail", executor=failing))

        assert executor.get_metrics()['failed_executions'] == 1

    @pytest.mark.asyncio
    async def test_timeout_detaches_executor(self):
        """Тест таймаута: вызывающий получает ошибку, исполнитель дорабатывает в фоне."""
        executor = TaskExecutor()
        finished = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.1)
            finished.set()
            raise RuntimeError("late failure")

        with pytest.raises(TaskTimeoutError, match="Request timeout"):
            await executor.run(make_task("slow", executor=slow, timeout=0.02))

        await asyncio.wait_for(finished.wait(), timeout=1.0)
        await asyncio.sleep(0)

        metrics = executor.get_metrics()
        assert metrics['timeout_executions'] == 1
        assert metrics['detached_executions'] == 1

    @pytest.mark.asyncio
    async def test_cancelled_executor(self):
        """Тест исполнителя, который сам был отменен."""
        executor = TaskExecutor()

        async def self_cancelling():
            raise asyncio.CancelledError()

        with pytest.raises(TaskCancelledError):
            await executor.run(make_task("cancelled", executor=self_cancelling))

    @pytest.mark.asyncio
    async def test_reset_metrics(self):
        """Тест сброса метрик."""
        executor = TaskExecutor()
        await executor.run(make_task("reset"))
        assert executor.get_metrics()['total_executions'] == 1

        executor.reset_metrics()

        metrics = executor.get_metrics()
        assert metrics['total_executions'] == 0
        assert metrics['min_execution_time'] == 0.0


class TestProgressReporter:
    """Тесты для рассылки прогресса."""

    def _event(self):
        return ProgressEvent(processed=1, total=2, status=ProgressStatus.PROCESSING)

    def test_subscribe_and_unsubscribe(self):
        """Тест подписки и отписки."""
        reporter = ProgressReporter()
        observer = Mock()

        unsubscribe = reporter.subscribe(observer)
        reporter.emit(self._event())
        unsubscribe()
        reporter.emit(self._event())

        assert observer.call_count == 1
        assert reporter.observer_count == 0

    def test_failing_observer_is_isolated(self):
        """Тест изоляции наблюдателя, бросающего исключение."""
        reporter = ProgressReporter()
        failing = Mock(side_effect=RuntimeError("observer broke"))
        healthy = Mock()

        reporter.subscribe(failing)
        reporter.subscribe(healthy)
        reporter.emit(self._event())

        healthy.assert_called_once()
        assert reporter.error_count == 1

    def test_set_callback_replaces_primary(self):
        """Тест замены основного наблюдателя."""
        reporter = ProgressReporter()
        first = Mock()
        second = Mock()
        extra = Mock()

        reporter.subscribe(extra)
        reporter.set_callback(first)
        reporter.set_callback(second)
        reporter.emit(self._event())

        first.assert_not_called()
        second.assert_called_once()
        extra.assert_called_once()

        reporter.set_callback(None)
        assert reporter.observer_count == 1

    def test_disabled_reporter(self):
        """Тест отключенной рассылки."""
        reporter = ProgressReporter(enabled=False)
        observer = Mock()
        reporter.subscribe(observer)
        reporter.emit(self._event())

        observer.assert_not_called()

    def test_invalid_callback(self):
        """Тест подписки не вызываемого объекта."""
        with pytest.raises(ValueError):
            ProgressReporter().subscribe("not callable")


class TestGracefulShutdown:
    """Тесты для graceful shutdown."""

    def test_shutdown_initialization(self):
        """Тест инициализации shutdown."""
        shutdown = GracefulShutdown()
        assert not shutdown.is_shutdown_initiated()
        assert not shutdown.is_shutdown_completed()

    @pytest.mark.asyncio
    async def test_execute_without_initiation(self):
        """Тест выполнения без инициации."""
        with pytest.raises(ShutdownError):
            await GracefulShutdown().execute_shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_phases(self):
        """Тест прохождения всех фаз."""
        shutdown = GracefulShutdown(ShutdownConfig(task_completion_timeout=1.0, poll_interval=0.01))
        pending = [3]
        calls = []

        def get_pending():
            pending[0] = max(0, pending[0] - 1)
            return pending[0]

        async def async_cleanup():
            calls.append("async_cleanup")

        shutdown.add_cleanup_callback(async_cleanup)
        shutdown.initiate_shutdown()
        status = await shutdown.execute_shutdown(
            stop_new_tasks_callback=lambda: calls.append("stop"),
            get_pending_tasks_callback=get_pending,
            terminate_callback=lambda: calls.append("terminate")
        )

        assert status.completed
        assert status.phase == ShutdownPhase.COMPLETED
        assert not status.timed_out
        assert calls == ["stop", "terminate", "async_cleanup"]
        assert status.cleanup_callbacks_executed == 1
        assert shutdown.is_shutdown_completed()

    @pytest.mark.asyncio
    async def test_shutdown_timeout(self):
        """Тест таймаута ожидания задач."""
        shutdown = GracefulShutdown(ShutdownConfig(task_completion_timeout=0.05, poll_interval=0.01))
        terminate = Mock()

        shutdown.initiate_shutdown()
        status = await shutdown.execute_shutdown(
            get_pending_tasks_callback=lambda: 2,
            terminate_callback=terminate
        )

        assert status.timed_out
        assert status.pending_at_timeout == 2
        assert status.completed
        terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_failing_cleanup_callback(self):
        """Тест ошибки в cleanup callback'е."""
        shutdown = GracefulShutdown()
        healthy = Mock()

        shutdown.initiate_shutdown()
        status = await shutdown.execute_shutdown(
            cleanup_callbacks=[Mock(side_effect=RuntimeError("boom")), healthy]
        )

        assert status.completed
        assert status.error_count == 1
        assert status.cleanup_callbacks_executed == 1
        healthy.assert_called_once()

    def test_reset(self):
        """Тест сброса состояния."""
        shutdown = GracefulShutdown()
        shutdown.initiate_shutdown()
        shutdown.reset()

        assert shutdown.get_status() is None
        assert "not_initiated" in repr(shutdown)


class TestRequestDeduplicator:
    """Тесты для объединения одинаковых запросов."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_execution(self):
        """Тест общего выполнения для одинакового ключа."""
        deduplicator = RequestDeduplicator()
        calls = []

        async def fetch():
            calls.append(1)
            await asyncio.sleep(0.02)
            return "payload"

        results = await asyncio.gather(
            deduplicator.execute("key", fetch),
            deduplicator.execute("key", fetch),
            deduplicator.execute("key", fetch)
        )

        assert results == ["payload"] * 3
        assert len(calls) == 1
        assert deduplicator.get_pending_count() == 0

    @pytest.mark.asyncio
    async def test_sequential_calls_run_again(self):
        """Тест повторного запуска после завершения."""
        deduplicator = RequestDeduplicator()
        counter = Mock(return_value="value")

        await deduplicator.execute("key", counter)
        await deduplicator.execute("key", counter)

        assert counter.call_count == 2

    @pytest.mark.asyncio
    async def test_error_reaches_all_callers(self):
        """Тест доставки ошибки всем ожидающим."""
        deduplicator = RequestDeduplicator()

        async def failing():
            await asyncio.sleep(0.01)
            raise RuntimeError("upstream down")

        results = await asyncio.gather(
            deduplicator.execute("key", failing),
            deduplicator.execute("key", failing),
            return_exceptions=True
        )

        assert all(isinstance(result, RuntimeError) for result in results)
        assert deduplicator.get_pending_count() == 0

    @pytest.mark.asyncio
    async def test_cancel_forgets_key(self):
        """Тест забывания выполняющегося запроса."""
        deduplicator = RequestDeduplicator()
        release = asyncio.Event()

        async def blocked():
            await release.wait()
            return "done"

        first = asyncio.ensure_future(deduplicator.execute("key", blocked))
        await asyncio.sleep(0)

        assert deduplicator.get_pending_count() == 1
        assert deduplicator.cancel("key")
        assert not deduplicator.cancel("key")
        assert deduplicator.get_pending_count() == 0

        release.set()
        assert await first == "done"


class TestConfig:
    """Тесты для конфигурации."""

    def test_default_config(self):
        """Тест конфигурации по умолчанию."""
        config = Config()

        assert config.max_concurrency == 2
        assert config.timeout == 30.0
        assert config.retry_count == 3
        assert config.retry_delay == 1.0
        assert config.batch.batch_size == 100
        assert config.validate()

    def test_from_dict(self):
        """Тест создания из словаря."""
        config = Config.from_dict({
            'max_concurrency': 5,
            'default_priority': 'high',
            'retry': {'strategy': 'fixed', 'max_delay': 10.0},
            'batch': {'batch_size': 20, 'continue_on_error': False}
        })

        assert config.max_concurrency == 5
        assert config.retry.strategy == BackoffStrategy.FIXED
        assert config.retry.max_delay == 10.0
        assert config.batch.batch_size == 20
        assert not config.batch.continue_on_error

    def test_from_dict_rejects_unknown(self):
        """Тест неизвестных ключей и стратегий."""
        with pytest.raises(ConfigurationError):
            Config.from_dict({'max_workers': 10})

        with pytest.raises(ConfigurationError):
            Config.from_dict({'retry': {'strategy': 'random'}})

    def test_validation_collects_errors(self):
        """Тест валидации с несколькими ошибками."""
        config = Config(max_concurrency=0, timeout=-1, default_priority="urgent")
        config.batch.batch_size = 5000

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()

        message = str(exc_info.value)
        assert "max_concurrency" in message
        assert "timeout" in message
        assert "default_priority" in message
        assert "batch.batch_size" in message

    def test_to_dict_is_serializable(self):
        """Тест сериализации в простые типы."""
        data = Config().to_dict()

        assert data['retry']['strategy'] == "linear"
        json.dumps(data)

    def test_update(self):
        """Тест обновления конфигурации."""
        config = Config().update(max_concurrency=8)

        assert config.max_concurrency == 8
        assert config.retry.strategy == BackoffStrategy.LINEAR

    def test_merge_configs(self):
        """Тест наложения частичной конфигурации."""
        merged = merge_configs(Config(), {'batch': {'max_retries': 1}, 'timeout': 5.0})

        assert merged.batch.max_retries == 1
        assert merged.batch.batch_size == 100
        assert merged.timeout == 5.0

    def test_save_and_load_yaml(self, tmp_path):
        """Тест сохранения и загрузки YAML."""
        config = Config(max_concurrency=4, default_priority="low")
        path = tmp_path / "nested" / "config.yaml"

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.max_concurrency == 4
        assert loaded.default_priority == "low"
        assert loaded.to_dict() == config.to_dict()

    def test_load_json(self, tmp_path):
        """Тест загрузки JSON."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'timeout': 12.5, 'shutdown': {'task_completion_timeout': 3}}))

        config = load_config(path)
        assert config.timeout == 12.5
        assert config.shutdown.task_completion_timeout == 3

    def test_load_errors(self, tmp_path):
        """Тест ошибок загрузки."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

        path = tmp_path / "config.toml"
        path.write_text("max_concurrency = 2")
        with pytest.raises(ConfigurationError):
            load_config(path)

        with pytest.raises(ConfigurationError):
            save_config(Config(), tmp_path / "config.ini", format="ini")

    def test_load_from_env(self, monkeypatch):
        """Тест загрузки из переменных окружения."""
        monkeypatch.setenv("CONCURRENCY_MAX_CONCURRENCY", "6")
        monkeypatch.setenv("CONCURRENCY_DEFAULT_PRIORITY", "critical")
        monkeypatch.setenv("RETRY_STRATEGY", "exponential")
        monkeypatch.setenv("BATCH_SIZE", "250")
        monkeypatch.setenv("BATCH_CONTINUE_ON_ERROR", "false")
        monkeypatch.setenv("SHUTDOWN_TIMEOUT", "7.5")

        config = load_config_from_env()

        assert config.max_concurrency == 6
        assert config.default_priority == "critical"
        assert config.retry.strategy == BackoffStrategy.EXPONENTIAL
        assert config.batch.batch_size == 250
        assert config.batch.continue_on_error is False
        assert config.shutdown.task_completion_timeout == 7.5

    def test_invalid_env_value(self, monkeypatch):
        """Тест некорректного значения в окружении."""
        monkeypatch.setenv("CONCURRENCY_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError):
            load_config_from_env()

    def test_create_components(self):
        """Тест создания менеджера и батч-процессора."""
        config = Config(max_concurrency=3, timeout=5.0, default_priority="high")
        config.batch.batch_size = 10

        manager = config.create_manager()
        assert manager.max_concurrency == 3
        assert manager.default_timeout == 5.0
        assert manager.config.default_priority is TaskPriority.HIGH

        processor = config.create_batch_processor()
        assert processor.config.batch_size == 10
        assert processor.config is not config.batch


class TestLoggingAndMonitoring:
    """Тесты для логирования и мониторинга."""

    def test_log_metrics(self):
        """Тест подсчета записей по уровням."""
        logger_module.setup_logging(level="INFO", enable_console=False)
        logger_module.reset_log_metrics()

        log = logger_module.get_logger("concurrency_manager.tests")
        log.info("info message")
        log.warning("warning message")
        log.error("error message")

        metrics = logger_module.get_log_metrics()
        assert metrics['info_count'] >= 1
        assert metrics['warning_count'] >= 1
        assert metrics['error_count'] >= 1

    def test_formatter_outside_event_loop(self):
        """Тест форматтера вне цикла событий."""
        formatter = logger_module.ConcurrencyFormatter()
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

        output = formatter.format(record)
        assert "hello" in output
        assert record.task_name == "MainThread"

    @pytest.mark.asyncio
    async def test_formatter_inside_task(self):
        """Тест форматтера внутри asyncio-задачи."""
        formatter = logger_module.ConcurrencyFormatter()

        async def log_inside():
            record = logging.LogRecord("test", logging.INFO, __file__, 1, "inside", None, None)
            formatter.format(record)
            return record.task_name

        assert await asyncio.create_task(log_inside(), name="worker-task") == "worker-task"

    def test_memory_stats(self, monkeypatch):
        """Тест статистики памяти через psutil."""
        monkeypatch.setattr(monitoring.psutil, "virtual_memory", lambda: SimpleNamespace(
            used=512 * 1024 * 1024,
            available=1536 * 1024 * 1024,
            total=2048 * 1024 * 1024,
            percent=25.0
        ))
        monkeypatch.setattr(monitoring.psutil, "Process", lambda: SimpleNamespace(
            memory_info=lambda: SimpleNamespace(rss=64 * 1024 * 1024)
        ))

        stats = monitoring.get_memory_stats()
        assert stats.total_mb == pytest.approx(2048.0)
        assert stats.process_rss_mb == pytest.approx(64.0)
        assert stats.usage_percentage == 25.0
        assert monitoring.is_memory_usage_safe(80.0)
        assert not monitoring.is_memory_usage_safe(20.0)

    def test_memory_stats_failure(self, monkeypatch):
        """Тест ошибки чтения памяти."""
        def broken():
            raise OSError("no /proc")

        monkeypatch.setattr(monitoring.psutil, "virtual_memory", broken)

        stats = monitoring.get_memory_stats()
        assert stats.usage_percentage == 0.0
