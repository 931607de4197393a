"""HTTP-сервер circa — ingestion API для отчётов о падениях CI."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

import pydantic
from fastapi import Body, FastAPI, Header, HTTPException
from pydantic import BaseModel

from circa import __version__

logger = logging.getLogger(__name__)


# --- Модели ответов ---


class SimilarPatternDetail(BaseModel):
    """Похожий паттерн в ответе; схожесть — строка с процентами."""

    id: str
    similarity: str
    summary: str


class RecommendationDetail(BaseModel):
    testName: str
    reason: str
    confidenceScore: float


class ReportResponse(BaseModel):
    """JSON-ответ POST /api/v1/report."""

    status: str
    patternId: str
    analysis: str | None = None
    similarPatterns: int
    similarPatternsDetails: list[SimilarPatternDetail]
    recommendations: list[RecommendationDetail]
    creditsUsed: int
    creditsRemaining: int
    vectorEmbeddingDimensions: int


class HealthResponse(BaseModel):
    """JSON-ответ GET /health."""

    status: str
    version: str


class ErrorResponse(BaseModel):
    """Стандартный ответ при ошибке."""

    detail: str


# --- Состояние приложения ---


class _AppState:
    """Долгоживущие объекты, разделяемые между запросами."""

    def __init__(self) -> None:
        self.settings: Any = None
        self.store: Any = None
        self.directory: Any = None
        self.analyzer: Any = None
        self.dispatchers: list[Any] = []


_state = _AppState()


# --- Lifespan ---


@asynccontextmanager
async def _lifespan(app: FastAPI):  # noqa: ARG001
    """Инициализация при старте, очистка при остановке."""
    from circa.config import Settings
    from circa.logging_config import setup_logging
    from circa.orchestrator import build_analyzer, build_pattern_store
    from circa.projects import InMemoryProjectDirectory, PostgresProjectDirectory

    settings = Settings()
    setup_logging(settings.log_level)

    logger.info("circa server v%s запускается (store=%s)", __version__, settings.store_backend)

    store = build_pattern_store(settings)
    if settings.store_backend == "postgres":
        directory: Any = PostgresProjectDirectory(
            settings.postgres_dsn, timeout=settings.store_timeout,
        )
    else:
        directory = InMemoryProjectDirectory(
            settings.api_keys, credits=settings.default_credits,
        )

    analyzer, llm_client = build_analyzer(settings)

    dispatchers: list[Any] = []
    if settings.webhook_url:
        from circa.clients.webhook_client import WebhookNotifier

        dispatchers.append(
            WebhookNotifier(settings.webhook_url, timeout=settings.webhook_timeout)
        )

    _state.settings = settings
    _state.store = store
    _state.directory = directory
    _state.analyzer = analyzer
    _state.dispatchers = dispatchers

    yield

    logger.info("circa server останавливается")
    if llm_client is not None:
        await llm_client.close()
    for dispatcher in dispatchers:
        await dispatcher.close()


# --- FastAPI ---


app = FastAPI(
    title="circa",
    description="Поиск похожих падений CI и рекомендации тестов — ingestion API",
    version=__version__,
    lifespan=_lifespan,
)


# --- Маршруты ---


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Проверка работоспособности сервера."""
    return HealthResponse(status="ok", version=__version__)


@app.post(
    "/api/v1/report",
    response_model=ReportResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Некорректный отчёт"},
        401: {"model": ErrorResponse, "description": "Ошибка аутентификации"},
        402: {"model": ErrorResponse, "description": "Недостаточно кредитов"},
        500: {"model": ErrorResponse, "description": "Ошибка хранилища паттернов"},
        504: {"model": ErrorResponse, "description": "Превышен таймаут обработки"},
    },
)
async def submit_report(
    payload: dict[str, Any] = Body(...),
    x_api_key: str | None = Header(default=None, alias="x-api-key"),
    x_test_mode: str | None = Header(default=None, alias="x-test-mode"),
) -> dict[str, Any]:
    """Принять отчёт о падении и вернуть анализ, похожие паттерны и рекомендации.

    Аутентификация по ``x-api-key``, проверка баланса, обработка отчёта,
    списание одного кредита, уведомления (best-effort).
    """
    from circa.exceptions import (
        AuthenticationError,
        QuotaExceededError,
        StorageError,
        ValidationError,
    )
    from circa.models.report import FailureReport
    from circa.orchestrator import process
    from circa.services.notification_service import dispatch_notifications

    directory = _state.directory
    try:
        project = directory.authenticate(x_api_key)
        directory.ensure_credits(project)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    except QuotaExceededError as exc:
        raise HTTPException(status_code=402, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    try:
        report = FailureReport.model_validate(payload)
    except pydantic.ValidationError as exc:
        logger.warning("Отчёт не прошёл валидацию: %d ошибок", exc.error_count())
        raise HTTPException(status_code=400, detail=f"Validation failed: {exc}")

    try:
        result = await process(
            report,
            _state.store,
            scope=project.id,
            settings=_state.settings,
            analyzer=_state.analyzer,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError as exc:
        logger.error("Ошибка хранилища при обработке отчёта: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))
    except TimeoutError:
        raise HTTPException(status_code=504, detail="Report processing timed out")

    try:
        credits_remaining = directory.consume_credit(project)
    except StorageError as exc:
        logger.error("Кредит не списан для проекта %s: %s", project.id, exc)
        raise HTTPException(status_code=500, detail=str(exc))

    is_test_traffic = (x_test_mode or "").lower() == "true" or report.is_test_traffic
    if _state.dispatchers and not is_test_traffic:
        await dispatch_notifications(_state.dispatchers, report, result)

    logger.info(
        "Отчёт обработан: pattern=%s, project=%s, кредитов осталось=%d",
        result.new_pattern_id, project.id, credits_remaining,
    )

    return {
        "status": "processed",
        "patternId": result.new_pattern_id,
        "analysis": result.analysis_text,
        "similarPatterns": len(result.matches),
        "similarPatternsDetails": [
            {
                "id": m.pattern_id,
                "similarity": m.similarity_percent,
                "summary": m.pattern.summary,
            }
            for m in result.matches
        ],
        "recommendations": [r.model_dump(by_alias=True) for r in result.recommendations],
        "creditsUsed": 1,
        "creditsRemaining": credits_remaining,
        "vectorEmbeddingDimensions": result.fingerprint_dimensions,
    }


def main() -> None:
    """Точка входа консольного скрипта circa-server."""
    import sys

    from circa.config import Settings

    try:
        settings = Settings()
    except Exception as exc:
        print(
            f"Ошибка конфигурации: {exc}\n\n"
            f"Переменные окружения задаются с префиксом CIRCA_.\n"
            f"Подробности см. в .env.example.",
            file=sys.stderr,
        )
        sys.exit(2)

    import uvicorn

    uvicorn.run(
        "circa.server:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
