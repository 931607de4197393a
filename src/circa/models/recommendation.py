"""Модель рекомендованного к запуску теста."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RecommendedTest(BaseModel):
    """Тест, рекомендованный к запуску, с объяснением и уверенностью."""

    model_config = ConfigDict(populate_by_name=True)

    test_name: str = Field(alias="testName")
    reason: str
    confidence_score: float = Field(alias="confidenceScore", ge=0.0, le=1.0)
