"""Fingerprint текста ошибки — вектор фиксированной размерности.

Текущий алгоритм — детерминированный хэш символов, а не семантический
эмбеддинг: одинаковый текст всегда даёт одинаковый вектор, но близость
векторов слабо отражает близость смысла. Реальную модель эмбеддингов
можно подключить через протокол ``EmbeddingProvider``.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

import numpy as np

FINGERPRINT_DIMENSIONS = 1536
"""Размерность по умолчанию — совпадает с колонкой ``vector(1536)`` в БД."""


def generate_fingerprint(text: str, dimensions: int = FINGERPRINT_DIMENSIONS) -> list[float]:
    """Построить единичный вектор длины ``dimensions`` по тексту.

    Для символа с кодом ``c`` на позиции ``i`` в ячейку ``(c * i) % D``
    добавляется ``c / 255`` с заворачиванием по модулю 1 после каждого
    сложения. Затем вектор нормируется на евклидову длину.

    Текст перебирается по кодовым точкам Unicode (``ord``). Для символов вне
    BMP (эмодзи и т.п.) это одна позиция, а не суррогатная пара UTF-16,
    поэтому такой текст даёт иной fingerprint, чем хэш по UTF-16 единицам.

    Raises:
        TypeError: ``text`` не строка.
        ValueError: Пустой текст или текст, дающий нулевой вектор —
            норма не определена.
    """
    if not isinstance(text, str):
        raise TypeError(f"Ожидался str, получен {type(text).__name__}")
    if not text:
        raise ValueError("Нельзя построить fingerprint для пустого текста")

    # Накопление по модулю 1 не векторизуется: порядок сложений важен.
    vector = [0.0] * dimensions
    for i, char in enumerate(text):
        code = ord(char)
        idx = (code * i) % dimensions
        vector[idx] = math.fmod(vector[idx] + code / 255, 1.0)

    arr = np.asarray(vector, dtype=np.float64)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        raise ValueError("Fingerprint текста — нулевой вектор, нормировка невозможна")
    return (arr / norm).tolist()


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Протокол источника эмбеддингов для хранилища паттернов.

    Реализации:
    - HashEmbedder: офлайн-хэш символов (по умолчанию)
    - Будущее: модель эмбеддингов (sentence-transformers, внешний API)
    """

    dimensions: int

    def embed(self, text: str) -> list[float]:
        """Вернуть единичный вектор длины ``dimensions``."""
        ...


class HashEmbedder:
    """EmbeddingProvider поверх ``generate_fingerprint``."""

    def __init__(self, dimensions: int = FINGERPRINT_DIMENSIONS) -> None:
        self.dimensions = dimensions

    def embed(self, text: str) -> list[float]:
        return generate_fingerprint(text, self.dimensions)
