"""Результат обработки одного отчёта о падении."""

from __future__ import annotations

from dataclasses import dataclass, field

from circa.models.recommendation import RecommendedTest
from circa.patterns.models import PatternMatch


@dataclass
class ProcessResult:
    """Всё, что orchestrator возвращает вызывающему коду."""

    new_pattern_id: str
    analysis_text: str | None = None
    matches: list[PatternMatch] = field(default_factory=list)
    recommendations: list[RecommendedTest] = field(default_factory=list)
    changed_files: list[str] = field(default_factory=list)
    fingerprint_dimensions: int = 0
