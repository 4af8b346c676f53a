"""
Менеджер конкурентности для asyncio: ограничение числа одновременных задач,
приоритетная очередь, таймауты, ретраи с линейным backoff и батч-обработка.

Основные компоненты:
- ConcurrencyManager: планировщик задач с ограничением конкурентности
- BatchProcessor: последовательная обработка коллекций батчами
- RetryPolicy: политика ретраев с линейным backoff
- GracefulShutdown: механизм корректного завершения работы
"""

from .core.manager import ConcurrencyManager, ManagerConfig
from .core.batch_processor import BatchProcessor, BatchConfig, create_smart_batch_processor
from .core.retry_policy import RetryPolicy, RetryConfig, BackoffStrategy
from .core.graceful_shutdown import GracefulShutdown, ShutdownConfig
from .core.progress import ProgressReporter
from .core.deduplicator import RequestDeduplicator
from .models.task import QueuedTask, RequestOptions, TaskStatus, TaskPriority
from .models.stats import ConcurrencyStats
from .models.batch import BatchReport, ChunkError, ProgressEvent, ProgressStatus, ValidationResult
from .config import Config, load_config
from .utils.logger import get_logger, setup_logging
from .exceptions import (
    ConcurrencyManagerError,
    TaskTimeoutError,
    TaskCancelledError,
    ManagerCleanupError,
    DuplicateTaskError,
    ShutdownError,
    ConfigurationError,
    ValidationError,
    ChunkFailedError,
    MemoryThresholdError,
    NonRetryableError
)

__version__ = "1.0.0"
__author__ = "Concurrency Manager Team"

__all__ = [
    "ConcurrencyManager",
    "ManagerConfig",
    "BatchProcessor",
    "BatchConfig",
    "create_smart_batch_processor",
    "RetryPolicy",
    "RetryConfig",
    "BackoffStrategy",
    "GracefulShutdown",
    "ShutdownConfig",
    "ProgressReporter",
    "RequestDeduplicator",
    "QueuedTask",
    "RequestOptions",
    "TaskStatus",
    "TaskPriority",
    "ConcurrencyStats",
    "BatchReport",
    "ChunkError",
    "ProgressEvent",
    "ProgressStatus",
    "ValidationResult",
    "Config",
    "load_config",
    "get_logger",
    "setup_logging",
    "ConcurrencyManagerError",
    "TaskTimeoutError",
    "TaskCancelledError",
    "ManagerCleanupError",
    "DuplicateTaskError",
    "ShutdownError",
    "ConfigurationError",
    "ValidationError",
    "ChunkFailedError",
    "MemoryThresholdError",
    "NonRetryableError"
]
