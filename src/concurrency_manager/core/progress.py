"""
Рассылка событий прогресса наблюдателям.
"""

from typing import Callable, List, Optional

from ..models.batch import ProgressEvent
from ..utils.logger import get_logger


logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """
    Синхронная рассылка ProgressEvent подписчикам.

    События не буферизуются: медленный наблюдатель задерживает того, кто
    сообщает о прогрессе, но не саму работу. Исключение наблюдателя
    логируется и не мешает остальным подписчикам.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._observers: List[ProgressCallback] = []
        self._primary: Optional[ProgressCallback] = None
        self._errors = 0

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """
        Подписка на события.

        Args:
            callback: Функция, принимающая ProgressEvent

        Returns:
            Функция отписки
        """
        if not callable(callback):
            raise ValueError("Progress callback must be callable")

        self._observers.append(callback)
        logger.debug(f"Added progress observer: {callback}")
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: ProgressCallback) -> bool:
        """Отписка наблюдателя."""
        try:
            self._observers.remove(callback)
        except ValueError:
            return False
        if callback is self._primary:
            self._primary = None
        return True

    def set_callback(self, callback: Optional[ProgressCallback]):
        """Замена единственного основного наблюдателя (остальные подписки сохраняются)."""
        if self._primary is not None:
            self.unsubscribe(self._primary)
        if callback is not None:
            self.subscribe(callback)
            self._primary = callback

    def emit(self, event: ProgressEvent):
        """Синхронная доставка события всем наблюдателям."""
        if not self.enabled:
            return

        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                self._errors += 1
                logger.error(f"Error in progress observer {observer}: {e}")

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    @property
    def error_count(self) -> int:
        return self._errors
