"""
Базовый пример использования менеджера конкурентности.
"""

import asyncio
import random

from concurrency_manager import (
    ConcurrencyManager,
    ManagerConfig,
    RequestOptions,
    TaskPriority,
    TaskCancelledError,
    setup_logging
)


async def simple_task(x: int) -> int:
    """Простая задача для демонстрации."""
    print(f"Выполняется задача с аргументом {x}")
    await asyncio.sleep(random.uniform(0.1, 0.3))  # Имитация работы
    return x * 2


async def failing_task(x: int) -> int:
    """Задача, которая может завершиться с ошибкой."""
    if random.random() < 0.5:
        raise ConnectionError(f"Временная ошибка в задаче {x}")

    await asyncio.sleep(0.1)
    return x * 3


def print_progress(event):
    print(f"   [{event.status.value:>10}] {event.task_id}: {event.processed}/{event.total}")


async def run():
    """Основная функция с примерами использования."""
    print("=== Базовый пример использования менеджера конкурентности ===\n")

    config = ManagerConfig(max_concurrency=2, timeout=5.0, retry_count=3, retry_delay=0.2)

    async with ConcurrencyManager(config) as manager:
        manager.set_progress_callback(print_progress)

        # Пример 1: Простые задачи
        print("1. Пять задач при двух слотах:")
        results = await asyncio.gather(*[
            manager.execute(lambda i=i: simple_task(i), f"simple_{i}") for i in range(5)
        ])
        print(f"   Результаты: {results}")

        # Пример 2: Задачи с приоритетами
        print("\n2. Задачи с разными приоритетами:")
        results = await asyncio.gather(
            manager.execute(lambda: simple_task(100), "low_priority", RequestOptions(priority=TaskPriority.LOW)),
            manager.execute(lambda: simple_task(200), "normal_priority"),
            manager.execute(lambda: simple_task(300), "high_priority", RequestOptions(priority="high")),
            manager.execute(lambda: simple_task(400), "critical_priority", RequestOptions(priority="critical"))
        )
        print(f"   Результаты: {results}")

        # Пример 3: Ретраи
        print("\n3. Задачи с ретраями:")
        outcomes = await asyncio.gather(*[
            manager.execute(lambda i=i: failing_task(i), f"flaky_{i}") for i in range(3)
        ], return_exceptions=True)
        for i, outcome in enumerate(outcomes):
            print(f"   flaky_{i}: {outcome!r}")

        # Пример 4: Отмена
        print("\n4. Отмена задачи в очереди:")
        pending = [
            asyncio.ensure_future(manager.execute(lambda i=i: simple_task(i), f"cancel_{i}"))
            for i in range(3)
        ]
        await asyncio.sleep(0)
        manager.cancel_request("cancel_2")
        for task in pending:
            try:
                print(f"   Результат: {await task}")
            except TaskCancelledError as e:
                print(f"   Отменена: {e}")

        # Статистика
        stats = manager.get_stats()
        print("\n=== Статистика ===")
        print(f"Всего запросов: {stats.total_requests}")
        print(f"Успешных: {stats.successful_requests}")
        print(f"Неудачных: {stats.failed_requests}")
        print(f"Ретраев: {stats.retried_requests}")
        print(f"Отмененных: {stats.cancelled_requests}")
        print(f"Максимум одновременно: {stats.max_concurrent_reached}")
        print(f"Среднее время выполнения: {stats.average_execution_time:.3f}s")


def main():
    setup_logging(level="WARNING")
    asyncio.run(run())


if __name__ == "__main__":
    main()
