"""
Система конфигурации для менеджера конкурентности.
"""

import json
import yaml
import os
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path

from .core.manager import ConcurrencyManager, ManagerConfig
from .core.batch_processor import BatchConfig, BatchProcessor, validate_batch_config
from .core.retry_policy import BackoffStrategy, RetryConfig, RetryPolicy
from .core.graceful_shutdown import ShutdownConfig
from .core.task_executor import ExecutionConfig
from .models.task import TaskPriority
from .utils.logger import get_logger
from .exceptions import ConfigurationError


logger = get_logger(__name__)


@dataclass
class Config:
    """Основная конфигурация менеджера конкурентности и батч-процессора."""

    # Основные параметры менеджера
    max_concurrency: int = 2
    timeout: float = 30.0  # секунды
    retry_count: int = 3
    retry_delay: float = 1.0  # секунды
    default_priority: str = "normal"
    enable_progress_tracking: bool = True
    log_level: str = "INFO"

    # Конфигурации компонентов
    retry: RetryConfig = field(default_factory=RetryConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь из простых типов (пригоден для YAML/JSON)."""
        return _to_plain(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Config':
        """
        Создание из словаря.

        Raises:
            ConfigurationError: Если в словаре есть неизвестные ключи
        """
        data = dict(data or {})

        retry_data = dict(data.pop('retry', None) or {})
        execution_data = data.pop('execution', None) or {}
        shutdown_data = data.pop('shutdown', None) or {}
        batch_data = data.pop('batch', None) or {}

        if 'strategy' in retry_data:
            try:
                retry_data['strategy'] = BackoffStrategy(retry_data['strategy'])
            except ValueError:
                raise ConfigurationError(f"Unknown retry strategy: {retry_data['strategy']!r}") from None

        try:
            return cls(
                retry=RetryConfig(**retry_data),
                execution=ExecutionConfig(**execution_data),
                shutdown=ShutdownConfig(**shutdown_data),
                batch=BatchConfig(**batch_data),
                **data
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def validate(self) -> bool:
        """
        Валидация конфигурации.

        Raises:
            ConfigurationError: Со списком всех найденных проблем
        """
        errors = []

        # Проверка основных параметров
        if self.max_concurrency < 1:
            errors.append("max_concurrency must be >= 1")

        if self.timeout <= 0:
            errors.append("timeout must be > 0")

        if self.retry_count < 0:
            errors.append("retry_count must be >= 0")

        if self.retry_delay < 0:
            errors.append("retry_delay must be >= 0")

        try:
            TaskPriority.coerce(self.default_priority)
        except ValueError:
            errors.append(f"default_priority must be one of {[p.name.lower() for p in TaskPriority]}")

        # Проверка конфигурации ретраев
        if self.retry.exponential_base < 1:
            errors.append("retry.exponential_base must be >= 1")

        if self.retry.max_delay is not None and self.retry.max_delay < 0:
            errors.append("retry.max_delay must be >= 0")

        # Проверка конфигурации shutdown
        if self.shutdown.task_completion_timeout < 0:
            errors.append("shutdown.task_completion_timeout must be >= 0")

        if self.shutdown.poll_interval <= 0:
            errors.append("shutdown.poll_interval must be > 0")

        # Проверка конфигурации батчей
        errors.extend(f"batch.{error}" for error in validate_batch_config(self.batch).errors)

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        return True

    def update(self, **kwargs) -> 'Config':
        """Обновление конфигурации с новыми значениями."""
        new_config = self.to_dict()
        new_config.update(kwargs)
        return Config.from_dict(new_config)

    def to_manager_config(self) -> ManagerConfig:
        """Конфигурация для ConcurrencyManager."""
        return ManagerConfig(
            max_concurrency=self.max_concurrency,
            timeout=self.timeout,
            retry_count=self.retry_count,
            retry_delay=self.retry_delay,
            default_priority=TaskPriority.coerce(self.default_priority),
            enable_progress_tracking=self.enable_progress_tracking,
            retry_config=replace(self.retry),
            execution_config=replace(self.execution),
            shutdown_config=replace(self.shutdown)
        )

    def create_manager(self, **kwargs) -> ConcurrencyManager:
        """Создание менеджера по этой конфигурации."""
        return ConcurrencyManager(self.to_manager_config(), **kwargs)

    def create_batch_processor(self, **kwargs) -> BatchProcessor:
        """Создание батч-процессора; ретраи батчей следуют секции retry."""
        kwargs.setdefault('retry_policy', RetryPolicy(replace(self.retry)))
        return BatchProcessor(replace(self.batch), **kwargs)


def _to_plain(value: Any) -> Any:
    """Рекурсивное преобразование dataclass'ов и enum'ов в простые типы."""
    if is_dataclass(value):
        return {f.name: _to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


def load_config(file_path: Union[str, Path]) -> Config:
    """
    Загрузка конфигурации из файла.

    Args:
        file_path: Путь к файлу конфигурации

    Returns:
        Объект конфигурации
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    loader = _LOADERS.get(path.suffix.lower())
    if loader is None:
        raise ConfigurationError(f"Unsupported configuration file format: {path.suffix}")

    with path.open('r', encoding='utf-8') as stream:
        config = Config.from_dict(loader(stream))
    config.validate()

    logger.info(f"Configuration loaded from {path}")
    return config


def save_config(config: Config, file_path: Union[str, Path], format: str = 'yaml'):
    """
    Сохранение конфигурации в файл.

    Args:
        config: Объект конфигурации
        file_path: Путь к файлу (недостающие директории создаются)
        format: 'yaml' или 'json'
    """
    dumper = _DUMPERS.get(format.lower())
    if dumper is None:
        raise ConfigurationError(f"Unsupported format: {format}")

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8') as stream:
        dumper(config.to_dict(), stream)

    logger.debug(f"Configuration saved to {path}")


_LOADERS = {
    '.yaml': yaml.safe_load,
    '.yml': yaml.safe_load,
    '.json': json.load,
}

_DUMPERS = {
    'yaml': lambda data, stream: yaml.safe_dump(data, stream, default_flow_style=False, sort_keys=False),
    'json': lambda data, stream: json.dump(data, stream, indent=2, ensure_ascii=False),
}


def _env(name: str, cast: Callable[[str], Any]) -> Any:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from None


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _collect(mapping: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


def load_config_from_env() -> Config:
    """
    Загрузка конфигурации из переменных окружения.

    Returns:
        Объект конфигурации
    """
    # Основные параметры
    config_data = _collect({
        'max_concurrency': _env('CONCURRENCY_MAX_CONCURRENCY', int),
        'timeout': _env('CONCURRENCY_TIMEOUT', float),
        'retry_count': _env('CONCURRENCY_RETRY_COUNT', int),
        'retry_delay': _env('CONCURRENCY_RETRY_DELAY', float),
        'default_priority': _env('CONCURRENCY_DEFAULT_PRIORITY', str),
        'enable_progress_tracking': _env('CONCURRENCY_ENABLE_PROGRESS', _env_bool),
        'log_level': _env('CONCURRENCY_LOG_LEVEL', str),
    })

    # Конфигурация ретраев
    retry_data = _collect({
        'strategy': _env('RETRY_STRATEGY', str),
        'exponential_base': _env('RETRY_EXPONENTIAL_BASE', float),
        'max_delay': _env('RETRY_MAX_DELAY', float),
    })
    if retry_data:
        config_data['retry'] = retry_data

    # Конфигурация батчей
    batch_data = _collect({
        'batch_size': _env('BATCH_SIZE', int),
        'max_retries': _env('BATCH_MAX_RETRIES', int),
        'retry_delay': _env('BATCH_RETRY_DELAY', float),
        'continue_on_error': _env('BATCH_CONTINUE_ON_ERROR', _env_bool),
        'memory_threshold': _env('BATCH_MEMORY_THRESHOLD', float),
    })
    if batch_data:
        config_data['batch'] = batch_data

    # Конфигурация shutdown
    shutdown_data = _collect({
        'task_completion_timeout': _env('SHUTDOWN_TIMEOUT', float),
    })
    if shutdown_data:
        config_data['shutdown'] = shutdown_data

    return Config.from_dict(config_data)


def create_default_config() -> Config:
    """Создание конфигурации по умолчанию."""
    return Config()


def merge_configs(base_config: Config, override_config: Dict[str, Any]) -> Config:
    """
    Наложение частичной конфигурации на базовую.

    Args:
        base_config: Базовая конфигурация
        override_config: Переопределяемые значения (вложенные секции сливаются)

    Returns:
        Объединенная конфигурация
    """
    def merge_dicts(base: dict, override: dict) -> dict:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    return Config.from_dict(merge_dicts(base_config.to_dict(), override_config))
