"""
Последовательная обработка больших коллекций батчами с ретраями.
"""

import asyncio
import time
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple
from dataclasses import dataclass, replace

from .progress import ProgressReporter, ProgressCallback
from .retry_policy import RetryPolicy
from .task_executor import invoke

from ..models.batch import (
    BatchPerformance,
    BatchReport,
    ChunkError,
    ProgressEvent,
    ProgressStatus,
    ValidationResult
)
from ..models.stats import ConcurrencyStats, StatsCollector
from ..utils.logger import get_logger, StructuredLogger
from ..utils.monitoring import is_memory_usage_safe
from ..exceptions import ChunkFailedError, MemoryThresholdError, ValidationError


logger = get_logger(__name__)

MAX_BATCH_SIZE = 1000
MAX_RETRIES_LIMIT = 10


@dataclass
class BatchConfig:
    """Конфигурация батч-обработки."""
    batch_size: int = 100
    max_retries: int = 3
    retry_delay: float = 1.0  # секунды, умножается на номер попытки
    continue_on_error: bool = True  # Продолжать со следующего батча после ошибки
    enable_progress_tracking: bool = True
    memory_threshold: Optional[float] = None  # Порог памяти в процентах, None - без проверки


def validate_batch_config(config: BatchConfig) -> ValidationResult:
    """
    Валидация конфигурации батч-обработки.

    Args:
        config: Проверяемая конфигурация

    Returns:
        Результат со списком найденных проблем
    """
    errors = []

    if config.batch_size <= 0:
        errors.append("batch_size must be > 0")
    elif config.batch_size > MAX_BATCH_SIZE:
        errors.append(f"batch_size must not exceed {MAX_BATCH_SIZE}")

    if config.max_retries < 0:
        errors.append("max_retries must be >= 0")
    elif config.max_retries > MAX_RETRIES_LIMIT:
        errors.append(f"max_retries must not exceed {MAX_RETRIES_LIMIT}")

    if config.retry_delay < 0:
        errors.append("retry_delay must be >= 0")

    threshold = config.memory_threshold
    if threshold is not None and not 0 < threshold <= 100:
        errors.append("memory_threshold must be in (0, 100]")

    return ValidationResult(is_valid=not errors, errors=errors)


class BatchProcessor:
    """
    Батч-процессор.

    Делит элементы на последовательные батчи по batch_size и обрабатывает их
    строго по порядку: следующий батч не начинается, пока предыдущий не
    завершился успехом или не исчерпал ретраи. Ошибки батчей попадают в
    отчет, частичный успех является нормальным результатом.
    """

    def __init__(
        self,
        config: Optional[BatchConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        reporter: Optional[ProgressReporter] = None
    ):
        self.config = config or BatchConfig()
        self._retry_policy = retry_policy or RetryPolicy()
        self._reporter = reporter or ProgressReporter()
        self._stats = StatsCollector()
        self._structured = StructuredLogger(__name__)

        logger.info(f"BatchProcessor initialized with config: {self.config}")

    def set_progress_callback(self, callback: Optional[ProgressCallback]):
        """Установка основного наблюдателя прогресса."""
        self._reporter.set_callback(callback)

    def subscribe(self, callback: ProgressCallback):
        """Подписка дополнительного наблюдателя прогресса."""
        return self._reporter.subscribe(callback)

    def validate_config(self) -> ValidationResult:
        """Валидация текущей конфигурации."""
        return validate_batch_config(self.config)

    async def process(
        self,
        items: Iterable[Any],
        processor: Callable[[List[Any]], Any]
    ) -> BatchReport:
        """
        Обработка всех элементов.

        Args:
            items: Упорядоченная коллекция элементов
            processor: Функция обработки батча, возвращает список результатов

        Returns:
            Итоговый отчет

        Raises:
            ValidationError: Если конфигурация недопустима (до запуска батчей)
        """
        validation = self.validate_config()
        if not validation.is_valid:
            raise ValidationError(
                f"Invalid batch configuration: {'; '.join(validation.errors)}",
                validation.errors
            )

        items = list(items)
        total_items = len(items)

        if total_items == 0:
            now = time.time()
            return BatchReport(
                success=True,
                processed_items=0,
                total_items=0,
                performance=BatchPerformance(start_time=now, end_time=now)
            )

        batch_size = self.config.batch_size
        chunks = [items[i:i + batch_size] for i in range(0, total_items, batch_size)]
        total_batches = len(chunks)

        self._report(0, total_items, ProgressStatus.STARTED,
                     total_batches=total_batches, message="Batch processing started")

        results: List[Any] = []
        errors: List[ChunkError] = []
        batch_times: List[float] = []
        processed = 0
        attempts = 0

        start_time = time.time()
        start_clock = time.perf_counter()

        for index, chunk in enumerate(chunks):
            self._report(processed, total_items, ProgressStatus.PROCESSING,
                         current_batch=index + 1, total_batches=total_batches,
                         message=f"Processing batch {index + 1}/{total_batches}")

            self._stats.record_submitted()
            self._stats.update_gauges(active=1, queued=total_batches - index - 1)
            chunk_clock = time.perf_counter()

            try:
                chunk_results, chunk_attempts = await self._process_chunk(
                    chunk, processor, index, total_batches, processed, total_items
                )
            except ChunkFailedError as e:
                chunk_time = time.perf_counter() - chunk_clock
                attempts += e.attempts
                batch_times.append(chunk_time)
                self._stats.record_failure(chunk_time)

                cause = e.__cause__ or e
                errors.append(ChunkError(
                    batch_index=index,
                    start_index=index * batch_size,
                    item_count=len(chunk),
                    attempts=e.attempts,
                    message=str(cause),
                    error_type=type(cause).__name__
                ))
                logger.error(str(e))
                self._report(processed, total_items, ProgressStatus.FAILED,
                             current_batch=index + 1, total_batches=total_batches,
                             message=f"Batch {index + 1}/{total_batches} failed", error=str(cause))

                if not self.config.continue_on_error:
                    logger.warning(f"Stopping after failed batch {index + 1}/{total_batches}")
                    break
                continue

            chunk_time = time.perf_counter() - chunk_clock
            attempts += chunk_attempts
            batch_times.append(chunk_time)
            self._stats.record_success(chunk_time)
            self._structured.log_metric("batch_time", chunk_time, "s", batch=index + 1)

            results.extend(chunk_results)
            processed += len(chunk)

        duration = time.perf_counter() - start_clock
        self._stats.update_gauges(active=0, queued=0)

        all_failed = processed == 0
        self._report(processed, total_items,
                     ProgressStatus.FAILED if all_failed else ProgressStatus.COMPLETED,
                     total_batches=total_batches,
                     message=("Batch processing completed" if not errors
                              else f"Batch processing completed with {len(errors)} errors"))

        performance = BatchPerformance(
            start_time=start_time,
            end_time=start_time + duration,
            duration=duration,
            average_batch_time=duration / attempts if attempts else 0.0,
            retry_count=attempts - len(batch_times),
            attempts=attempts,
            batch_times=batch_times
        )

        self._structured.log_event(
            "batch_processing_finished",
            processed_items=processed,
            total_items=total_items,
            failed_batches=len(errors),
            retries=performance.retry_count
        )

        return BatchReport(
            success=not errors,
            processed_items=processed,
            total_items=total_items,
            results=results,
            errors=errors,
            performance=performance
        )

    async def _process_chunk(
        self,
        chunk: List[Any],
        processor: Callable[[List[Any]], Any],
        index: int,
        total_batches: int,
        processed: int,
        total_items: int
    ) -> Tuple[List[Any], int]:
        """
        Обработка одного батча с ретраями.

        Returns:
            Результаты батча и число выполненных попыток

        Raises:
            ChunkFailedError: Если батч исчерпал ретраи или ошибка неповторяемая
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                self._check_memory()
                batch_results = await invoke(processor, chunk)
                return ([] if batch_results is None else list(batch_results)), attempt

            except Exception as error:
                if not self._retry_policy.should_retry(error, attempt - 1, self.config.max_retries):
                    raise ChunkFailedError(
                        f"Batch {index + 1}/{total_batches} failed after {attempt} attempts: {error}",
                        batch_index=index,
                        attempts=attempt
                    ) from error

                self._retry_policy.record_retry()
                self._stats.record_retry()
                delay = self._retry_policy.delay_for(attempt, self.config.retry_delay)

                self._report(processed, total_items, ProgressStatus.RETRYING,
                             current_batch=index + 1, total_batches=total_batches,
                             message=f"Batch {index + 1}/{total_batches} retrying ({attempt}/{self.config.max_retries})",
                             error=str(error))
                logger.warning(f"Batch {index + 1}/{total_batches} failed on attempt {attempt}: {error}. "
                               f"Retrying in {delay:.2f}s")

                await asyncio.sleep(delay)

    def _check_memory(self):
        threshold = self.config.memory_threshold
        if threshold is not None and not is_memory_usage_safe(threshold):
            raise MemoryThresholdError(f"Memory usage exceeds threshold {threshold}%, processing paused")

    def _report(self, processed: int, total: int, status: ProgressStatus, **kwargs):
        if not self.config.enable_progress_tracking:
            return
        self._reporter.emit(ProgressEvent(processed=processed, total=total, status=status, **kwargs))

    def get_stats(self) -> ConcurrencyStats:
        """Накопленная статистика батчей по всем вызовам process()."""
        return self._stats.snapshot()

    def __repr__(self) -> str:
        return f"BatchProcessor(batch_size={self.config.batch_size}, max_retries={self.config.max_retries})"


def create_smart_batch_processor(
    items: Sequence[Any],
    base_config: Optional[BatchConfig] = None,
    **kwargs
) -> BatchProcessor:
    """
    Создание процессора с размером батча, подобранным по количеству элементов.

    Args:
        items: Элементы, которые предстоит обработать
        base_config: Базовая конфигурация
        **kwargs: Аргументы конструктора BatchProcessor

    Returns:
        Настроенный процессор
    """
    item_count = len(items)
    if item_count > 10000:
        batch_size = 200
    elif item_count > 1000:
        batch_size = 100
    else:
        batch_size = 50

    config = replace(base_config or BatchConfig(), batch_size=batch_size)
    return BatchProcessor(config, **kwargs)
