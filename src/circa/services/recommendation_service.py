"""Ранжирование рекомендованных к запуску тестов.

Источники (tiers), в порядке обработки:
  1. Похожие паттерны с известным тестом — confidence = similarity * 0.8.
  2. Изменённые файлы — до четырёх конвенциональных имён тест-файлов, 0.6.
  3. Упавшие сейчас тесты — перезапуск, 0.9.

Одно имя теста — одна рекомендация: при повторной номинации остаётся
запись с большей уверенностью (при равной — первая).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from circa.models.recommendation import RecommendedTest
from circa.models.report import FailedTest
from circa.patterns.models import PatternMatch

logger = logging.getLogger(__name__)

_SOURCE_EXT_RE = re.compile(r"\.(ts|js|tsx|jsx)$")
_SRC_PREFIX_RE = re.compile(r"^src/")

RERUN_REASON = "re-run previously failed test"


@dataclass(frozen=True)
class RecommendationConfig:
    """Веса и лимиты ранжирования."""

    pattern_weight: float = 0.8
    changed_file_confidence: float = 0.6
    rerun_confidence: float = 0.9
    max_results: int = 10


def derive_test_file_variants(path: str) -> list[str]:
    """Конвенциональные имена тест-файлов для изменённого файла.

    ``x.ts`` → ``x.test.ts``, ``x.spec.ts``; ``src/x.ts`` → ``tests/x.test.ts``
    и ``__tests__/x.ts``. Совпадающие варианты схлопываются.
    """
    variants = [
        _SOURCE_EXT_RE.sub(r".test.\1", path),
        _SOURCE_EXT_RE.sub(r".spec.\1", path),
        _SOURCE_EXT_RE.sub(r".test.\1", _SRC_PREFIX_RE.sub("tests/", path)),
        _SRC_PREFIX_RE.sub("__tests__/", path),
    ]
    return list(dict.fromkeys(variants))


class RecommendationService:
    """Объединяет сигналы в дедуплицированный список рекомендаций."""

    def __init__(self, config: RecommendationConfig | None = None) -> None:
        self._config = config or RecommendationConfig()

    def recommend(
        self,
        failed_tests: list[FailedTest],
        changed_files: list[str],
        pattern_matches: list[PatternMatch],
    ) -> list[RecommendedTest]:
        """Построить рекомендации, отсортированные по уверенности (desc).

        Returns:
            Не более ``max_results`` записей с уникальными именами тестов.
        """
        cfg = self._config
        recommendations: dict[str, RecommendedTest] = {}

        # 1. Тесты из похожих паттернов
        for match in pattern_matches:
            test_name = match.pattern.test_name
            if not test_name:
                continue
            self._nominate(
                recommendations,
                test_name,
                reason=(
                    f"Similar failure pattern ({match.similarity_percent} match) "
                    f"occurred {match.pattern.occurrence_count} time(s)"
                ),
                confidence=match.similarity * cfg.pattern_weight,
            )

        # 2. Тесты, связанные с изменёнными файлами
        for path in changed_files:
            for variant in derive_test_file_variants(path):
                self._nominate(
                    recommendations,
                    f"Test: {variant}",
                    reason=f"Related to changed file: {path}",
                    confidence=cfg.changed_file_confidence,
                )

        # 3. Перезапуск упавших тестов
        for test in failed_tests:
            self._nominate(
                recommendations,
                test.test_name,
                reason=RERUN_REASON,
                confidence=cfg.rerun_confidence,
            )

        ranked = sorted(
            recommendations.values(),
            key=lambda r: r.confidence_score,
            reverse=True,
        )[: cfg.max_results]

        logger.debug(
            "Рекомендации: кандидатов=%d, выдано=%d (паттернов=%d, файлов=%d, упавших=%d)",
            len(recommendations), len(ranked),
            len(pattern_matches), len(changed_files), len(failed_tests),
        )
        return ranked

    @staticmethod
    def _nominate(
        recommendations: dict[str, RecommendedTest],
        test_name: str,
        *,
        reason: str,
        confidence: float,
    ) -> None:
        existing = recommendations.get(test_name)
        if existing is not None and existing.confidence_score >= confidence:
            return
        recommendations[test_name] = RecommendedTest(
            test_name=test_name,
            reason=reason,
            confidence_score=min(1.0, max(0.0, confidence)),
        )
