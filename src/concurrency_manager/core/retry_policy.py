"""
Политика ретраев с линейным backoff.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Type
from dataclasses import dataclass, field
from enum import Enum

from ..utils.logger import get_logger
from ..exceptions import ManagerCleanupError, NonRetryableError, TaskCancelledError


logger = get_logger(__name__)


DEFAULT_NON_RETRYABLE_MESSAGES = (
    "Request cancelled",
    "Manager cleanup",
    "Invalid API key",
    "Authentication failed",
)

DEFAULT_NON_RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    TaskCancelledError,
    ManagerCleanupError,
    NonRetryableError,
)


class BackoffStrategy(Enum):
    """Стратегии backoff."""
    LINEAR = "linear"
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass
class RetryConfig:
    """Конфигурация ретраев."""
    strategy: BackoffStrategy = BackoffStrategy.LINEAR
    exponential_base: float = 2.0  # База для экспоненциального роста
    max_delay: Optional[float] = None  # Верхняя граница задержки в секундах
    non_retryable_messages: List[str] = field(
        default_factory=lambda: list(DEFAULT_NON_RETRYABLE_MESSAGES)
    )


class RetryPolicy:
    """Решает, нужен ли повтор после ошибки, и через какое время."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        non_retryable_exceptions: Sequence[Type[BaseException]] = DEFAULT_NON_RETRYABLE_EXCEPTIONS
    ):
        self.config = config or RetryConfig()
        self.non_retryable_exceptions = tuple(non_retryable_exceptions)

        # Статистика
        self._stats = {
            'total_retries': 0,
            'denied_non_retryable': 0,
            'exhausted': 0
        }

        logger.debug(f"RetryPolicy initialized with config: {self.config}")

    def is_retryable(self, error: BaseException) -> bool:
        """
        Проверка ошибки по категории и по тексту сообщения.

        Args:
            error: Исключение

        Returns:
            False если ошибка входит в набор неповторяемых
        """
        if isinstance(error, self.non_retryable_exceptions):
            return False

        message = str(error)
        return not any(fragment in message for fragment in self.config.non_retryable_messages)

    def should_retry(self, error: BaseException, attempt: int, max_retries: int) -> bool:
        """
        Определение необходимости ретрая.

        Args:
            error: Исключение последней попытки
            attempt: Сколько ретраев уже выполнено
            max_retries: Максимальное количество ретраев

        Returns:
            True если нужен ретрай, False иначе
        """
        if attempt >= max_retries:
            self._stats['exhausted'] += 1
            return False

        if not self.is_retryable(error):
            self._stats['denied_non_retryable'] += 1
            logger.debug(f"Error is not retryable: {type(error).__name__}: {error}")
            return False

        return True

    def delay_for(self, attempt: int, base_delay: float) -> float:
        """
        Расчет задержки перед повтором.

        Args:
            attempt: Номер ретрая (начиная с 1)
            base_delay: Базовая задержка в секундах

        Returns:
            Задержка в секундах
        """
        attempt = max(attempt, 1)

        if self.config.strategy == BackoffStrategy.FIXED:
            delay = base_delay
        elif self.config.strategy == BackoffStrategy.EXPONENTIAL:
            delay = base_delay * (self.config.exponential_base ** (attempt - 1))
        else:
            delay = base_delay * attempt

        if self.config.max_delay is not None:
            delay = min(delay, self.config.max_delay)

        return max(0.0, delay)

    def record_retry(self):
        """Учет запланированного ретрая."""
        self._stats['total_retries'] += 1

    def get_stats(self) -> Dict[str, Any]:
        """Получение статистики ретраев."""
        return self._stats.copy()

    def __repr__(self) -> str:
        return f"RetryPolicy(strategy={self.config.strategy.value}, retries={self._stats['total_retries']})"
