"""
Модели батч-обработки и событий прогресса.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field


class ProgressStatus(Enum):
    """Статусы событий прогресса."""
    STARTED = "started"
    PROCESSING = "processing"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """Снимок прогресса, передаваемый наблюдателям."""
    processed: int
    total: int
    status: ProgressStatus
    current_batch: Optional[int] = None
    total_batches: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None
    task_id: Optional[str] = None

    @property
    def percentage(self) -> float:
        """Процент выполнения."""
        if self.total <= 0:
            return 0.0
        return (self.processed / self.total) * 100

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        data = {
            'processed': self.processed,
            'total': self.total,
            'percentage': self.percentage,
            'status': self.status.value,
        }
        for key in ('current_batch', 'total_batches', 'message', 'error', 'task_id'):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class ChunkError:
    """Ошибка батча, исчерпавшего все попытки."""
    batch_index: int
    start_index: int
    item_count: int
    attempts: int
    message: str
    error_type: str

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        return {
            'batch_index': self.batch_index,
            'start_index': self.start_index,
            'item_count': self.item_count,
            'attempts': self.attempts,
            'message': self.message,
            'error_type': self.error_type,
        }


@dataclass(frozen=True)
class BatchPerformance:
    """Временные показатели батч-обработки (секунды)."""
    start_time: float = 0.0
    end_time: float = 0.0
    duration: float = 0.0
    average_batch_time: float = 0.0
    retry_count: int = 0
    attempts: int = 0
    batch_times: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        return {
            'start_time': self.start_time,
            'end_time': self.end_time,
            'duration': self.duration,
            'average_batch_time': self.average_batch_time,
            'retry_count': self.retry_count,
            'attempts': self.attempts,
            'batch_times': list(self.batch_times),
        }


@dataclass(frozen=True)
class BatchReport:
    """Итоговый отчет одного вызова process()."""
    success: bool
    processed_items: int
    total_items: int
    results: List[Any] = field(default_factory=list)
    errors: List[ChunkError] = field(default_factory=list)
    performance: BatchPerformance = field(default_factory=BatchPerformance)

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        return {
            'success': self.success,
            'processed_items': self.processed_items,
            'total_items': self.total_items,
            'results': list(self.results),
            'errors': [error.to_dict() for error in self.errors],
            'performance': self.performance.to_dict(),
        }


@dataclass(frozen=True)
class ValidationResult:
    """Результат валидации конфигурации."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
