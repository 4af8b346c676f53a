"""
Статистика менеджера конкурентности и батч-процессора.
"""

from typing import Any, Dict
from dataclasses import dataclass, asdict, replace


@dataclass
class ConcurrencyStats:
    """Снимок статистики. Простые данные без ссылок на внутренности менеджера."""

    # Накопительные счетчики
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    retried_requests: int = 0
    timed_out_requests: int = 0
    cancelled_requests: int = 0

    # Мгновенные значения
    active_requests: int = 0
    queued_requests: int = 0
    pending_retries: int = 0
    max_concurrent_reached: int = 0

    # Производные метрики (секунды)
    average_execution_time: float = 0.0
    max_execution_time: float = 0.0
    min_execution_time: float = 0.0

    @property
    def success_rate(self) -> float:
        """Процент успешных запросов среди завершенных."""
        settled = self.successful_requests + self.failed_requests
        if settled == 0:
            return 0.0
        return (self.successful_requests / settled) * 100

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        data = asdict(self)
        data['success_rate'] = self.success_rate
        return data


class StatsCollector:
    """Сборщик статистики: счетчики, мгновенные значения и время выполнения."""

    def __init__(self):
        self._stats = ConcurrencyStats()
        self._total_execution_time = 0.0
        self._timed_executions = 0
        self._min_execution_time = float('inf')

    def record_submitted(self):
        """Учет нового запроса."""
        self._stats.total_requests += 1

    def record_success(self, execution_time: float):
        """Учет успешного завершения."""
        self._stats.successful_requests += 1
        self._record_execution_time(execution_time)

    def record_failure(self, execution_time: float, is_timeout: bool = False):
        """Учет окончательной ошибки."""
        self._stats.failed_requests += 1
        if is_timeout:
            self._stats.timed_out_requests += 1
        self._record_execution_time(execution_time)

    def record_retry(self, is_timeout: bool = False):
        """Учет повторной попытки."""
        self._stats.retried_requests += 1
        if is_timeout:
            self._stats.timed_out_requests += 1

    def record_cancelled(self):
        """Учет отмены."""
        self._stats.cancelled_requests += 1

    def update_gauges(self, active: int, queued: int, pending_retries: int = 0):
        """Обновление мгновенных значений."""
        self._stats.active_requests = active
        self._stats.queued_requests = queued
        self._stats.pending_retries = pending_retries
        self._stats.max_concurrent_reached = max(self._stats.max_concurrent_reached, active)

    def _record_execution_time(self, execution_time: float):
        if execution_time is None:
            return
        self._timed_executions += 1
        self._total_execution_time += execution_time
        self._min_execution_time = min(self._min_execution_time, execution_time)
        self._stats.max_execution_time = max(self._stats.max_execution_time, execution_time)
        self._stats.average_execution_time = self._total_execution_time / self._timed_executions
        self._stats.min_execution_time = self._min_execution_time

    def snapshot(self) -> ConcurrencyStats:
        """Получение согласованной копии статистики."""
        return replace(self._stats)

    def reset(self):
        """Сброс статистики."""
        self.__init__()
