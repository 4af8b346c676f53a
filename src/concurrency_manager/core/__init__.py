"""
Основные компоненты менеджера конкурентности.
"""

from .manager import ConcurrencyManager, ManagerConfig
from .priority_queue import PriorityQueue
from .retry_policy import RetryPolicy, RetryConfig, BackoffStrategy
from .task_executor import TaskExecutor, ExecutionConfig
from .graceful_shutdown import GracefulShutdown, ShutdownConfig
from .progress import ProgressReporter
from .deduplicator import RequestDeduplicator
from .batch_processor import BatchProcessor, BatchConfig, create_smart_batch_processor

__all__ = [
    "ConcurrencyManager",
    "ManagerConfig",
    "PriorityQueue",
    "RetryPolicy",
    "RetryConfig",
    "BackoffStrategy",
    "TaskExecutor",
    "ExecutionConfig",
    "GracefulShutdown",
    "ShutdownConfig",
    "ProgressReporter",
    "RequestDeduplicator",
    "BatchProcessor",
    "BatchConfig",
    "create_smart_batch_processor"
]
