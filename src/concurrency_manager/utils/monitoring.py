"""
Мониторинг ресурсов для батч-обработки.
"""

import psutil
from dataclasses import dataclass, field
from datetime import datetime

from ..utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class MemoryStats:
    """Использование памяти процессом и системой."""
    process_rss_mb: float = 0.0
    used_mb: float = 0.0
    available_mb: float = 0.0
    total_mb: float = 0.0
    usage_percentage: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)


def get_memory_stats() -> MemoryStats:
    """
    Получение статистики использования памяти.

    Returns:
        Снимок памяти; нулевой снимок, если psutil не смог прочитать данные
    """
    try:
        memory = psutil.virtual_memory()
        process_rss = psutil.Process().memory_info().rss
    except (psutil.Error, OSError) as e:
        logger.error(f"Error collecting memory stats: {e}")
        return MemoryStats()

    return MemoryStats(
        process_rss_mb=process_rss / (1024 * 1024),
        used_mb=memory.used / (1024 * 1024),
        available_mb=memory.available / (1024 * 1024),
        total_mb=memory.total / (1024 * 1024),
        usage_percentage=memory.percent
    )


def is_memory_usage_safe(threshold_percentage: float = 80.0) -> bool:
    """
    Проверка, что использование памяти ниже порога.

    Args:
        threshold_percentage: Порог в процентах

    Returns:
        True если использование памяти ниже порога
    """
    stats = get_memory_stats()
    return stats.usage_percentage < threshold_percentage
