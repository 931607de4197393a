"""Общая логика обработки отчёта — используется и CLI, и HTTP-сервером."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from circa.config import Settings
from circa.exceptions import ConfigurationError
from circa.models.recommendation import RecommendedTest
from circa.models.report import FailedTest, FailureReport
from circa.models.result import ProcessResult
from circa.patterns.base import PatternStore
from circa.patterns.models import NewPattern, PatternMatch
from circa.services.analysis_service import ANALYSIS_UNAVAILABLE, FailureAnalyzer
from circa.services.recommendation_service import RecommendationConfig, RecommendationService
from circa.services.report_parser import (
    build_failure_logs,
    build_failure_summary,
    resolve_failed_tests,
)
from circa.utils.diff_utils import extract_changed_files
from circa.utils.fingerprint import EmbeddingProvider, HashEmbedder

logger = logging.getLogger(__name__)


@dataclass
class _Prepared:
    """Результат шагов до вставки: только чтение, хранилище не изменено."""

    failed_tests: list[FailedTest]
    changed_files: list[str]
    summary: str
    fingerprint: list[float]
    matches: list[PatternMatch]
    recommendations: list[RecommendedTest]


async def process(
    report: FailureReport,
    store: PatternStore,
    *,
    scope: str,
    settings: Settings | None = None,
    embedder: EmbeddingProvider | None = None,
    analyzer: FailureAnalyzer | None = None,
    timeout: float | None = None,
) -> ProcessResult:
    """Обработать один отчёт о падении.

    Цепочка: нормализация → diff → fingerprint → поиск похожих →
    рекомендации → вставка паттерна → AI-анализ (best-effort).

    ``timeout`` ограничивает шаги до вставки: при его срабатывании
    хранилище не меняется. Начатая вставка доводится до конца (её
    ограничивает таймаут хранилища, ошибка — StorageError), поэтому
    идентификатор сохранённого паттерна всегда возвращается вызывающему.
    AI-анализ выполняется после вставки со своим бюджетом
    ``settings.analysis_timeout``; любая его ошибка заменяется заглушкой.

    Args:
        report: Отчёт CI-репортера.
        store: Хранилище паттернов (одно на все вызовы, состояния в процессе нет).
        scope: Проект / tenant, в рамках которого ищутся и сохраняются паттерны.
        settings: Пороги и лимиты. None → значения по умолчанию.
        embedder: Источник fingerprint. None → HashEmbedder размерности хранилища.
        analyzer: AI-анализатор. None → анализ не выполняется.
        timeout: Таймаут шагов до вставки в секундах. None → ``settings.process_timeout``.

    Returns:
        ProcessResult с идентификатором нового паттерна.

    Raises:
        ValidationError: В отчёте нет ни одного упавшего теста.
        StorageError: Хранилище недоступно.
        TimeoutError: Превышен таймаут шагов до вставки (паттерн не сохранён).
    """
    settings = settings or Settings()
    if timeout is None:
        timeout = settings.process_timeout

    coro = _prepare(report, store, scope, settings, embedder)
    if timeout is None:
        prepared = await coro
    else:
        prepared = await asyncio.wait_for(coro, timeout=timeout)

    # Вставка — единственный изменяющий шаг
    first = prepared.failed_tests[0]
    new_pattern = NewPattern(
        scope=scope,
        fingerprint=prepared.fingerprint,
        summary=prepared.summary[: settings.summary_max_chars],
        error_message=first.error_message,
        stack_trace=first.stack_trace,
        affected_files=prepared.changed_files,
        test_name=first.test_name,
    )
    new_pattern_id = await asyncio.to_thread(store.insert, new_pattern)
    logger.info("Сохранён паттерн %s (scope=%s)", new_pattern_id, scope)

    analysis_text: str | None = None
    if analyzer is not None:
        analysis_text = await _run_analysis(
            analyzer, report, prepared.failed_tests, settings.analysis_timeout,
        )

    return ProcessResult(
        new_pattern_id=new_pattern_id,
        analysis_text=analysis_text,
        matches=prepared.matches,
        recommendations=prepared.recommendations,
        changed_files=prepared.changed_files,
        fingerprint_dimensions=len(prepared.fingerprint),
    )


async def _prepare(
    report: FailureReport,
    store: PatternStore,
    scope: str,
    settings: Settings,
    embedder: EmbeddingProvider | None,
) -> _Prepared:
    # 1. Нормализация входа — до любых обращений к хранилищу
    failed_tests = resolve_failed_tests(report)

    # 2. Изменённые файлы
    changed_files = extract_changed_files(report.git_diff)

    # 3. Fingerprint
    embedder = embedder or HashEmbedder(store.dimensions)
    summary = build_failure_summary(failed_tests, changed_files)
    fingerprint = embedder.embed(summary)

    # 4. Похожие паттерны
    matches = await asyncio.to_thread(
        store.query_similar,
        fingerprint,
        scope,
        top_k=settings.similarity_top_k,
        threshold=settings.similarity_threshold,
    )
    logger.info(
        "Отчёт %s@%s: упавших тестов=%d, изменённых файлов=%d, похожих паттернов=%d",
        report.commit_hash[:12], report.branch,
        len(failed_tests), len(changed_files), len(matches),
    )

    # 5. Рекомендации
    ranker = RecommendationService(
        RecommendationConfig(max_results=settings.max_recommendations)
    )
    recommendations = ranker.recommend(failed_tests, changed_files, matches)

    return _Prepared(
        failed_tests=failed_tests,
        changed_files=changed_files,
        summary=summary,
        fingerprint=fingerprint,
        matches=matches,
        recommendations=recommendations,
    )


async def _run_analysis(
    analyzer: FailureAnalyzer,
    report: FailureReport,
    failed_tests: list[FailedTest],
    timeout: float | None,
) -> str:
    """AI-анализ: любая ошибка или таймаут → ``ANALYSIS_UNAVAILABLE``."""
    coro = analyzer.analyze(build_failure_logs(report, failed_tests), report.git_diff)
    try:
        if timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError:
        logger.warning("AI-анализ пропущен: превышен таймаут (%ss)", timeout)
    except Exception as exc:
        logger.warning("AI-анализ пропущен: %s", exc)
    return ANALYSIS_UNAVAILABLE


def build_pattern_store(settings: Settings) -> PatternStore:
    """Создать хранилище паттернов по настройкам.

    Raises:
        ConfigurationError: postgres-бэкенд без DSN.
    """
    if settings.store_backend == "postgres":
        if not settings.postgres_dsn:
            raise ConfigurationError(
                "CIRCA_STORE_BACKEND=postgres, но не задан CIRCA_POSTGRES_DSN"
            )
        from circa.patterns.postgres_store import PostgresPatternStore

        return PostgresPatternStore(
            settings.postgres_dsn,
            dimensions=settings.fingerprint_dimensions,
            timeout=settings.store_timeout,
            probes=settings.ivfflat_probes,
        )

    from circa.patterns.memory_store import InMemoryPatternStore

    return InMemoryPatternStore(settings.fingerprint_dimensions)


def build_analyzer(settings: Settings):
    """Создать AI-анализатор по настройкам (None, если LLM выключен).

    Returns:
        Пара (AnalysisService | None, ChatCompletionClient | None) — клиент
        нужно закрыть вызывающему коду.

    Raises:
        ConfigurationError: LLM включён, но не задан API-ключ.
    """
    if not settings.llm_enabled:
        return None, None
    if not settings.llm_api_key:
        raise ConfigurationError(
            "LLM включён (CIRCA_LLM_ENABLED=true), но не задан CIRCA_LLM_API_KEY"
        )

    from circa.clients.llm_client import ChatCompletionClient
    from circa.services.analysis_service import AnalysisService

    client = ChatCompletionClient(
        settings.llm_base_url,
        settings.llm_api_key,
        settings.llm_model,
        timeout=settings.llm_timeout,
        max_retries=settings.llm_max_retries,
        retry_base_delay=settings.llm_retry_base_delay,
    )
    service = AnalysisService(
        client,
        logs_max_chars=settings.analysis_logs_max_chars,
        diff_max_chars=settings.analysis_diff_max_chars,
    )
    return service, client
