"""In-memory реализация хранилища паттернов.

Точный перебор по cosine similarity — подходит для тестов, CLI и
нагрузок до ~10^5 паттернов на scope.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from circa.patterns.base import check_dimensions
from circa.patterns.models import FailurePattern, NewPattern, PatternMatch, PatternSnapshot
from circa.utils.fingerprint import FINGERPRINT_DIMENSIONS

logger = logging.getLogger(__name__)


class InMemoryPatternStore:
    """Реализация PatternStore в памяти процесса.

    Все операции выполняются под одним ``threading.Lock``: параллельные
    вставки и поиски из разных потоков не повреждают данные.

    Реализует Protocol PatternStore.
    """

    def __init__(self, dimensions: int = FINGERPRINT_DIMENSIONS) -> None:
        self.dimensions = dimensions
        self._lock = threading.Lock()
        self._patterns: dict[str, FailurePattern] = {}
        # scope → id в порядке вставки (он же tie-break при равной схожести)
        self._by_scope: dict[str, list[str]] = {}

    def insert(self, pattern: NewPattern) -> str:
        check_dimensions(pattern.fingerprint, self.dimensions)
        now = datetime.now(timezone.utc)
        pattern_id = str(uuid.uuid4())
        record = FailurePattern(
            id=pattern_id,
            scope=pattern.scope,
            fingerprint=list(pattern.fingerprint),
            summary=pattern.summary,
            error_message=pattern.error_message,
            stack_trace=pattern.stack_trace,
            affected_files=list(pattern.affected_files),
            test_name=pattern.test_name,
            occurrence_count=1,
            first_seen=now,
            last_seen=now,
        )
        with self._lock:
            self._patterns[pattern_id] = record
            self._by_scope.setdefault(pattern.scope, []).append(pattern_id)
        logger.debug("MemoryStore: вставлен паттерн %s (scope=%s)", pattern_id, pattern.scope)
        return pattern_id

    def query_similar(
        self,
        fingerprint: list[float],
        scope: str,
        *,
        top_k: int = 5,
        threshold: float = 0.75,
    ) -> list[PatternMatch]:
        check_dimensions(fingerprint, self.dimensions)
        with self._lock:
            candidates = [self._patterns[pid] for pid in self._by_scope.get(scope, [])]

        if not candidates or top_k <= 0:
            return []

        query = np.asarray(fingerprint, dtype=np.float64)
        matrix = np.asarray([p.fingerprint for p in candidates], dtype=np.float64)
        similarities = cosine_similarity(query[None, :], matrix)[0]

        # Стабильная сортировка сохраняет порядок вставки при равной схожести
        order = np.argsort(-similarities, kind="stable")
        matches: list[PatternMatch] = []
        for idx in order:
            similarity = min(1.0, max(0.0, float(similarities[idx])))
            if similarity <= threshold:
                break
            matches.append(_to_match(candidates[idx], similarity))
            if len(matches) >= top_k:
                break

        logger.debug(
            "MemoryStore: scope=%s, кандидатов=%d, совпадений=%d (threshold=%.2f)",
            scope, len(candidates), len(matches), threshold,
        )
        return matches

    def get(self, pattern_id: str) -> FailurePattern | None:
        with self._lock:
            return self._patterns.get(pattern_id)

    def count(self, scope: str) -> int:
        with self._lock:
            return len(self._by_scope.get(scope, []))


def _to_match(pattern: FailurePattern, similarity: float) -> PatternMatch:
    return PatternMatch(
        pattern_id=pattern.id,
        similarity=similarity,
        pattern=PatternSnapshot(
            summary=pattern.summary,
            error_message=pattern.error_message,
            stack_trace=pattern.stack_trace,
            affected_files=list(pattern.affected_files),
            test_name=pattern.test_name,
            occurrence_count=pattern.occurrence_count,
        ),
    )
