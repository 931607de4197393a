"""Pydantic-модели хранилища паттернов падений."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class NewPattern(BaseModel):
    """Данные для вставки нового паттерна.

    ``fingerprint`` вычисляется вызывающим кодом заранее (EmbeddingProvider);
    идентификатор, счётчик и временные метки назначает хранилище.
    """

    scope: str = Field(min_length=1, description="Проект / tenant, в рамках которого хранится паттерн")
    fingerprint: list[float]
    summary: str
    error_message: str
    stack_trace: str | None = None
    affected_files: list[str] = Field(default_factory=list)
    test_name: str | None = None


class FailurePattern(BaseModel):
    """Сохранённый fingerprint ранее встреченного падения."""

    id: str
    scope: str
    fingerprint: list[float]
    summary: str
    error_message: str
    stack_trace: str | None = None
    affected_files: list[str] = Field(default_factory=list)
    test_name: str | None = None
    occurrence_count: int = Field(default=1, ge=1)
    first_seen: datetime
    last_seen: datetime


class PatternSnapshot(BaseModel):
    """Read-only копия полей паттерна, возвращаемая вместе с совпадением."""

    summary: str
    error_message: str
    stack_trace: str | None = None
    affected_files: list[str] = Field(default_factory=list)
    test_name: str | None = None
    occurrence_count: int = 1


class PatternMatch(BaseModel):
    """Результат поиска похожих паттернов."""

    pattern_id: str
    similarity: float = Field(ge=0.0, le=1.0, description="1 - cosine distance, выше — похожее")
    pattern: PatternSnapshot

    @field_validator("similarity", mode="before")
    @classmethod
    def _clamp_similarity(cls, value: float) -> float:
        # Погрешность float даёт 1.0000000002 для совпадающих векторов
        return min(1.0, max(0.0, float(value)))

    @property
    def similarity_percent(self) -> str:
        """Схожесть в процентах для JSON-ответа и причин рекомендаций."""
        return f"{self.similarity * 100:.1f}%"
