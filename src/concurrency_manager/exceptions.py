"""
Исключения для менеджера конкурентности.
"""

from typing import List, Optional


class ConcurrencyManagerError(Exception):
    """Базовое исключение для менеджера конкурентности."""
    pass


class TaskTimeoutError(ConcurrencyManagerError, TimeoutError):
    """Задача не завершилась за отведенный таймаут."""
    pass


class TaskCancelledError(ConcurrencyManagerError):
    """Задача отменена вызывающей стороной."""
    pass


class ManagerCleanupError(ConcurrencyManagerError):
    """Задача отклонена при очистке менеджера."""
    pass


class DuplicateTaskError(ConcurrencyManagerError):
    """Задача с таким ID уже находится в работе."""
    pass


class ShutdownError(ConcurrencyManagerError):
    """Ошибка при завершении работы."""
    pass


class ConfigurationError(ConcurrencyManagerError):
    """Ошибка конфигурации."""
    pass


class ValidationError(ConcurrencyManagerError):
    """Ошибка валидации."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ChunkFailedError(ConcurrencyManagerError):
    """Батч исчерпал все попытки обработки."""

    def __init__(self, message: str, batch_index: int, attempts: int):
        super().__init__(message)
        self.batch_index = batch_index
        self.attempts = attempts


class MemoryThresholdError(ConcurrencyManagerError):
    """Использование памяти превысило допустимый порог."""
    pass


class NonRetryableError(ConcurrencyManagerError):
    """Базовый класс для ошибок, которые не имеет смысла повторять."""
    pass
