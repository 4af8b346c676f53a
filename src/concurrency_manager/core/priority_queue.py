"""
Приоритетная очередь ожидающих задач.
"""

from collections import defaultdict, deque
from typing import Deque, Dict, Iterator, List, Optional

from ..models.task import QueuedTask, TaskPriority
from ..utils.logger import get_logger


logger = get_logger(__name__)

# Порядок выборки: от высшего приоритета к низшему
_PRIORITY_ORDER = sorted(TaskPriority, key=lambda p: p.value, reverse=True)


class PriorityQueue:
    """
    Очередь задач, упорядоченная по приоритету и порядку поступления.

    Для каждого приоритета ведется отдельная FIFO-очередь, поэтому внутри
    одного приоритета задачи выходят строго в порядке вставки, а задача
    с большим приоритетом всегда выходит раньше.
    """

    def __init__(self):
        self._queues: Dict[TaskPriority, Deque[QueuedTask]] = {
            priority: deque() for priority in _PRIORITY_ORDER
        }
        self._index: Dict[str, QueuedTask] = {}

        # Метрики
        self._metrics = {
            'tasks_inserted': 0,
            'tasks_popped': 0,
            'tasks_removed': 0,
            'max_size_reached': 0
        }
        self._priority_stats = defaultdict(int)

    def insert(self, task: QueuedTask):
        """
        Добавление задачи в конец полосы ее приоритета.

        Args:
            task: Задача для постановки в очередь

        Raises:
            ValueError: Если задача с таким ID уже в очереди
        """
        if task.id in self._index:
            raise ValueError(f"Task {task.id} is already queued")

        self._queues[task.priority].append(task)
        self._index[task.id] = task

        self._metrics['tasks_inserted'] += 1
        self._metrics['max_size_reached'] = max(self._metrics['max_size_reached'], len(self))
        self._priority_stats[task.priority.name.lower()] += 1

        logger.debug(f"Task {task.id} queued with priority {task.priority.name}")

    def pop_head(self) -> Optional[QueuedTask]:
        """
        Извлечение задачи с наивысшим приоритетом, самой ранней в своей полосе.

        Returns:
            Задача или None если очередь пуста
        """
        for priority in _PRIORITY_ORDER:
            band = self._queues[priority]
            if band:
                task = band.popleft()
                del self._index[task.id]
                self._metrics['tasks_popped'] += 1
                return task
        return None

    def peek(self) -> Optional[QueuedTask]:
        """Просмотр головы очереди без извлечения."""
        for priority in _PRIORITY_ORDER:
            band = self._queues[priority]
            if band:
                return band[0]
        return None

    def remove(self, task_id: str) -> Optional[QueuedTask]:
        """
        Удаление конкретной задачи (используется при отмене).

        Args:
            task_id: ID задачи

        Returns:
            Удаленная задача или None если ее не было в очереди
        """
        task = self._index.pop(task_id, None)
        if task is None:
            return None

        self._queues[task.priority].remove(task)
        self._metrics['tasks_removed'] += 1
        logger.debug(f"Task {task_id} removed from queue")
        return task

    def get(self, task_id: str) -> Optional[QueuedTask]:
        """Получение задачи по ID без удаления."""
        return self._index.get(task_id)

    def drain(self) -> List[QueuedTask]:
        """
        Извлечение всех задач в порядке выборки.

        Returns:
            Список задач, очередь после вызова пуста
        """
        tasks = list(self)
        for band in self._queues.values():
            band.clear()
        self._index.clear()
        return tasks

    def get_queue_sizes(self) -> Dict[str, int]:
        """Получение размеров полос по приоритетам."""
        return {priority.name.lower(): len(band) for priority, band in self._queues.items()}

    def get_metrics(self) -> dict:
        """Получение метрик очереди."""
        metrics = self._metrics.copy()
        metrics['current_size'] = len(self)
        metrics['priority_stats'] = dict(self._priority_stats)
        return metrics

    def __iter__(self) -> Iterator[QueuedTask]:
        for priority in _PRIORITY_ORDER:
            yield from self._queues[priority]

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._index

    def __repr__(self) -> str:
        return f"PriorityQueue(size={len(self)}, bands={self.get_queue_sizes()})"
