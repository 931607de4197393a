"""Абстрактный интерфейс хранилища паттернов падений."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from circa.patterns.models import FailurePattern, NewPattern, PatternMatch


@runtime_checkable
class PatternStore(Protocol):
    """Протокол, определяющий контракт любого хранилища паттернов.

    Хранилище разбито на scope (проект / tenant): поиск и подсчёт никогда
    не выходят за пределы переданного scope. Размерность fingerprint
    фиксирована при создании хранилища (атрибут ``dimensions``).

    Реализации:
    - InMemoryPatternStore: точный перебор в памяти процесса
    - PostgresPatternStore: pgvector, индекс ivfflat по cosine distance
    """

    dimensions: int

    def insert(self, pattern: NewPattern) -> str:
        """Сохранить новый паттерн и вернуть его идентификатор.

        first_seen = last_seen = now, occurrence_count = 1. Вставка атомарна.

        Raises:
            StorageError: Бэкенд недоступен или превышен таймаут.
        """
        ...

    def query_similar(
        self,
        fingerprint: list[float],
        scope: str,
        *,
        top_k: int = 5,
        threshold: float = 0.75,
    ) -> list[PatternMatch]:
        """Найти паттерны scope со схожестью строго выше ``threshold``.

        Не более ``top_k`` результатов, по убыванию схожести; при равной
        схожести раньше идёт паттерн, вставленный раньше. Пустой список —
        нормальный результат, не ошибка.

        Raises:
            StorageError: Бэкенд недоступен или превышен таймаут.
        """
        ...

    def get(self, pattern_id: str) -> FailurePattern | None:
        """Найти паттерн по идентификатору."""
        ...

    def count(self, scope: str) -> int:
        """Количество паттернов в scope."""
        ...


def check_dimensions(fingerprint: list[float], dimensions: int) -> None:
    """Проверить, что длина fingerprint совпадает с размерностью хранилища."""
    if len(fingerprint) != dimensions:
        raise ValueError(
            f"Размерность fingerprint {len(fingerprint)} не совпадает "
            f"с размерностью хранилища {dimensions}"
        )
