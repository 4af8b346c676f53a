"""
Система логирования для менеджера конкурентности.
"""

import asyncio
import logging
import sys
import threading
from collections import Counter
from typing import Any, Dict, Iterable, Optional
from pathlib import Path


DEFAULT_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-30s | %(task_name)-15s | %(message)s'

# Логгеры сторонних библиотек, которые слишком болтливы на DEBUG
NOISY_LOGGERS = ('urllib3', 'requests', 'asyncio')


def _current_task_name() -> str:
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    if task is None:
        return threading.current_thread().name
    return task.get_name()


class ConcurrencyFormatter(logging.Formatter):
    """Форматтер, который вместо имени потока выводит имя текущей asyncio-задачи."""

    def __init__(self, fmt: str = DEFAULT_FORMAT):
        super().__init__(fmt=fmt, datefmt='%H:%M:%S')

    def format(self, record):
        if not hasattr(record, 'task_name'):
            record.task_name = _current_task_name()
        return super().format(record)


class LevelCounterHandler(logging.Handler):
    """Подсчет записей по уровням: сколько было ретраев, ошибок и т.д."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def emit(self, record):
        # Уровни выше ERROR (CRITICAL) учитываются как ошибки
        name = 'error' if record.levelno >= logging.ERROR else record.levelname.lower()
        with self._lock:
            self._counts['total'] += 1
            self._counts[name] += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            counts = dict(self._counts)
        result = {'total_logs': counts.pop('total', 0)}
        for level in ('error', 'warning', 'info', 'debug'):
            result[f'{level}_count'] = counts.get(level, 0)
        return result

    def clear(self):
        with self._lock:
            self._counts.clear()


_level_counter = LevelCounterHandler()


def _make_handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_metrics: bool = True,
    log_format: Optional[str] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS
):
    """
    Настройка корневого логгера.

    Args:
        level: Уровень логирования
        log_file: Путь к файлу логов (директория создается при необходимости)
        enable_console: Вывод в stdout
        enable_metrics: Подсчет записей по уровням (см. get_log_metrics)
        log_format: Формат записей; по умолчанию с именем asyncio-задачи
        quiet_loggers: Логгеры, которые поднимаются до WARNING
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    formatter = ConcurrencyFormatter(log_format or DEFAULT_FORMAT)
    handlers = []

    if enable_console:
        handlers.append(_make_handler(logging.StreamHandler(sys.stdout), numeric_level, formatter))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_make_handler(logging.FileHandler(log_file, encoding='utf-8'), numeric_level, formatter))

    if enable_metrics:
        handlers.append(_level_counter)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Логгер модуля."""
    return logging.getLogger(name)


def get_log_metrics() -> Dict[str, int]:
    """Количество записей по уровням с момента настройки или сброса."""
    return _level_counter.snapshot()


def reset_log_metrics():
    _level_counter.clear()


class StructuredLogger:
    """
    Логгер событий и метрик в виде пар ключ=значение.

    Контекст (например batch или task_id) привязывается через bind() и
    добавляется к каждой записи; исходный логгер при этом не меняется.
    """

    def __init__(self, name: str, **context):
        self.logger = get_logger(name)
        self.context: Dict[str, Any] = context

    def bind(self, **context) -> 'StructuredLogger':
        """Новый логгер с дополненным контекстом."""
        bound = StructuredLogger(self.logger.name)
        bound.context = {**self.context, **context}
        return bound

    def _render(self, prefix: str, fields: Dict[str, Any]) -> str:
        pairs = ' '.join(f"{key}={value}" for key, value in {**self.context, **fields}.items())
        return f"{prefix} {pairs}" if pairs else prefix

    def log_event(self, event: str, level: int = logging.INFO, **data):
        """Запись события с данными."""
        self.logger.log(level, self._render(f"event={event}", data),
                        extra={'event': event, 'event_data': {**self.context, **data}})

    def log_metric(self, metric_name: str, value: float, unit: str = "", **tags):
        """Запись метрики на уровне DEBUG."""
        rendered = f"{value:.6f}{unit}" if isinstance(value, float) else f"{value}{unit}"
        self.logger.debug(self._render(f"metric={metric_name} value={rendered}", tags),
                          extra={'metric': metric_name, 'metric_value': value})
