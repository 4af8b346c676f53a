"""
Модели задач для менеджера конкурентности.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Optional, Dict, Union
from dataclasses import dataclass, field
from datetime import datetime


class TaskStatus(Enum):
    """Статусы задач."""
    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskPriority(Enum):
    """Приоритеты задач (большее значение допускается к выполнению раньше)."""
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def coerce(cls, value: Union["TaskPriority", str, int, None]) -> "TaskPriority":
        """
        Приведение значения к приоритету.

        Args:
            value: Приоритет, его имя ("low", "high") или числовое значение

        Returns:
            Приоритет задачи
        """
        if value is None:
            return cls.NORMAL
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown task priority: {value!r}") from None
        return cls(value)


@dataclass
class RequestOptions:
    """Параметры отдельного запроса. None означает значение менеджера по умолчанию."""
    timeout: Optional[float] = None  # секунды
    retry_count: Optional[int] = None
    retry_delay: Optional[float] = None  # секунды, умножается на номер попытки
    priority: Union[TaskPriority, str, None] = None


@dataclass
class QueuedTask:
    """Задача, принятая менеджером и ожидающая выполнения."""

    id: str
    executor: Callable[[], Any]
    priority: TaskPriority = TaskPriority.NORMAL
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[BaseException] = None
    future: Optional[asyncio.Future] = field(default=None, repr=False, compare=False)
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Монотонные отметки для измерения длительности
    _start_clock: Optional[float] = field(default=None, repr=False, compare=False)
    _end_clock: Optional[float] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        """Валидация после инициализации."""
        if not self.id:
            raise ValueError("Task id is required")
        if not callable(self.executor):
            raise ValueError("Task executor must be callable")

    def mark_started(self):
        """Отметка начала выполнения попытки."""
        self.status = TaskStatus.RUNNING
        self.started_at = datetime.now()
        self._start_clock = time.perf_counter()
        self._end_clock = None

    def mark_finished(self, status: TaskStatus):
        """Отметка окончания попытки."""
        self.status = status
        self.completed_at = datetime.now()
        self._end_clock = time.perf_counter()

    @property
    def execution_time(self) -> Optional[float]:
        """Длительность последней попытки в секундах."""
        if self._start_clock is None:
            return None
        end = self._end_clock if self._end_clock is not None else time.perf_counter()
        return end - self._start_clock

    def is_settled(self) -> bool:
        """Проверка, получил ли вызывающий уже результат или ошибку."""
        return self.future is not None and self.future.done()
