"""Настройка логирования для приложения circa."""

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Настроить корневой логгер со структурированным форматом.

    Args:
        level: Имя уровня логирования (DEBUG, INFO, WARNING, ERROR).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root = logging.getLogger()
    root.setLevel(numeric_level)
    # Повторный вызов не должен дублировать вывод
    root.handlers.clear()
    root.addHandler(handler)

    # Приглушить HTTP-клиент, драйвер БД и access-лог uvicorn
    for noisy in ("httpx", "httpcore", "psycopg", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
