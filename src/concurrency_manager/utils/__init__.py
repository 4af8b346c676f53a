"""
Утилиты для менеджера конкурентности.
"""

from .logger import get_logger, setup_logging, get_log_metrics, reset_log_metrics, StructuredLogger
from .monitoring import MemoryStats, get_memory_stats, is_memory_usage_safe

__all__ = [
    "get_logger",
    "setup_logging",
    "get_log_metrics",
    "reset_log_metrics",
    "StructuredLogger",
    "MemoryStats",
    "get_memory_stats",
    "is_memory_usage_safe"
]
