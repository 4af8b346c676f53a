#!/usr/bin/env python3
"""
Скрипт для запуска тестов менеджера конкурентности.
"""

import sys
import subprocess
import argparse


SUITES = {
    "all": "tests/",
    "components": "tests/test_components.py",
    "manager": "tests/test_concurrency_manager.py",
    "batch": "tests/test_batch_processor.py",
}


def build_command(args) -> list:
    """Сборка команды pytest по аргументам."""
    cmd = [sys.executable, "-m", "pytest", SUITES[args.suite]]

    if args.coverage:
        cmd.extend(["--cov=concurrency_manager", "--cov-report=term-missing"])

    if args.verbose:
        cmd.append("-v")

    if args.failfast:
        cmd.append("-x")

    if args.durations:
        # Тесты с таймаутами и ретраями чувствительны к задержкам
        cmd.append(f"--durations={args.durations}")

    if args.test_pattern:
        cmd.extend(["-k", args.test_pattern])

    return cmd


def main():
    """Основная функция скрипта."""
    parser = argparse.ArgumentParser(description="Запуск тестов менеджера конкурентности")
    parser.add_argument(
        "suite",
        nargs="?",
        choices=sorted(SUITES),
        default="all",
        help="Набор тестов"
    )
    parser.add_argument("--coverage", action="store_true", help="Запуск с измерением покрытия")
    parser.add_argument("--verbose", action="store_true", help="Подробный вывод")
    parser.add_argument("--failfast", action="store_true", help="Остановка на первой ошибке")
    parser.add_argument("--durations", type=int, default=0, help="Показать N самых медленных тестов")
    parser.add_argument("--test-pattern", type=str, help="Паттерн для фильтрации тестов")

    cmd = build_command(parser.parse_args())

    try:
        print(f"Запуск команды: {' '.join(cmd)}")
        result = subprocess.run(cmd, check=True)
        print("Все тесты прошли успешно!")
        return result.returncode

    except subprocess.CalledProcessError as e:
        print(f"Тесты завершились с ошибкой: {e}")
        return e.returncode
    except KeyboardInterrupt:
        print("\nПрервано пользователем")
        return 1


if __name__ == "__main__":
    sys.exit(main())
