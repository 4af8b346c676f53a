#!/usr/bin/env python3
"""
Скрипт для запуска примеров использования менеджера конкурентности.
"""

import sys
import argparse
from pathlib import Path


def main():
    """Основная функция скрипта."""
    parser = argparse.ArgumentParser(description="Запуск примеров менеджера конкурентности")
    parser.add_argument(
        "example",
        choices=["basic", "batch"],
        help="Тип примера для запуска"
    )

    args = parser.parse_args()

    # Добавление пути к примерам
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

    try:
        if args.example == "basic":
            print("Запуск базового примера...")
            import examples.basic_usage
            examples.basic_usage.main()
        elif args.example == "batch":
            print("Запуск примера батч-обработки...")
            import examples.batch_usage
            examples.batch_usage.main()

        print("Пример завершен успешно!")

    except KeyboardInterrupt:
        print("\nПрервано пользователем")
        sys.exit(1)
    except Exception as e:
        print(f"Ошибка при выполнении примера: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
