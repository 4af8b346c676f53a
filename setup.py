"""
Установочный скрипт для менеджера конкурентности.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Чтение README
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

# Чтение requirements
requirements = []
requirements_file = this_directory / "requirements.txt"
if requirements_file.exists():
    with open(requirements_file, 'r', encoding='utf-8') as f:
        requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

setup(
    name="async-concurrency-manager",
    version="1.0.0",
    author="Concurrency Manager Team",
    author_email="team@concurrency-manager.example.com",
    description="Менеджер конкурентности для asyncio с приоритетной очередью, таймаутами, ретраями и батч-обработкой",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/example/async-concurrency-manager",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Framework :: AsyncIO",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-mock>=3.10.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=1.0.0",
            "isort>=5.12.0",
        ],
    },
    keywords="asyncio concurrency limit priority queue retry backoff timeout batch processing",
    project_urls={
        "Bug Reports": "https://github.com/example/async-concurrency-manager/issues",
        "Source": "https://github.com/example/async-concurrency-manager",
    },
)
