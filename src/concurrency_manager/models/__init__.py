"""
Модели данных для менеджера конкурентности.
"""

from .task import QueuedTask, RequestOptions, TaskStatus, TaskPriority
from .stats import ConcurrencyStats, StatsCollector
from .batch import (
    BatchPerformance,
    BatchReport,
    ChunkError,
    ProgressEvent,
    ProgressStatus,
    ValidationResult
)

__all__ = [
    "QueuedTask",
    "RequestOptions",
    "TaskStatus",
    "TaskPriority",
    "ConcurrencyStats",
    "StatsCollector",
    "BatchPerformance",
    "BatchReport",
    "ChunkError",
    "ProgressEvent",
    "ProgressStatus",
    "ValidationResult"
]
