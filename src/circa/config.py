"""Конфигурация приложения, загружаемая из переменных окружения."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Конфигурация приложения circa.

    Все значения задаются через переменные окружения с префиксом ``CIRCA_``
    или через файл ``.env`` в рабочей директории. Обязательных полей нет:
    без настроек circa работает с in-memory хранилищем и без LLM.
    """

    model_config = SettingsConfigDict(
        env_prefix="CIRCA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Уровень логирования")

    store_backend: Literal["memory", "postgres"] = Field(
        default="memory",
        description="Бэкенд хранилища паттернов: memory (процесс) или postgres (pgvector)",
    )
    postgres_dsn: str = Field(
        default="",
        description="DSN PostgreSQL (libpq / URI), обязателен при store_backend=postgres",
    )
    store_timeout: float = Field(
        default=10.0, gt=0,
        description="Таймаут подключения и одного запроса к хранилищу в секундах",
    )
    ivfflat_probes: int = Field(
        default=100, ge=1,
        description="ivfflat.probes для поиска в PostgreSQL; 100 = все списки индекса (точный результат)",
    )

    fingerprint_dimensions: int = Field(
        default=1536, ge=1,
        description="Размерность fingerprint; фиксируется при создании хранилища",
    )
    similarity_threshold: float = Field(
        default=0.75, ge=0.0, le=1.0,
        description="Порог схожести: в выдачу попадают паттерны со схожестью строго выше порога",
    )
    similarity_top_k: int = Field(default=5, ge=1, description="Макс. число похожих паттернов")
    summary_max_chars: int = Field(
        default=500, ge=1,
        description="Максимальная длина summary, сохраняемого вместе с паттерном",
    )
    max_recommendations: int = Field(default=10, ge=1, description="Макс. число рекомендованных тестов")

    process_timeout: float | None = Field(
        default=None, gt=0,
        description="Таймаут шагов до вставки паттерна в секундах (None — без ограничения)",
    )
    analysis_timeout: float | None = Field(
        default=None, gt=0,
        description="Бюджет AI-анализа после вставки паттерна в секундах (None — без ограничения)",
    )

    llm_enabled: bool = Field(default=False, description="Включить/выключить AI-анализ падений")
    llm_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Базовый URL OpenAI-совместимого API (chat/completions)",
    )
    llm_api_key: str = Field(default="", description="API-ключ LLM-провайдера (Bearer token)")
    llm_model: str = Field(default="llama-3.3-70b-versatile", description="Имя модели")
    llm_timeout: int = Field(default=60, ge=1, description="Таймаут одного LLM-запроса в секундах")
    llm_max_retries: int = Field(default=3, ge=0, description="Повторы при 429 / 5xx / сетевых ошибках")
    llm_retry_base_delay: float = Field(default=1.0, ge=0, description="Базовая задержка backoff в секундах")
    analysis_logs_max_chars: int = Field(
        default=4000, ge=1, description="Сколько символов логов падения отправлять в LLM",
    )
    analysis_diff_max_chars: int = Field(
        default=3000, ge=1, description="Сколько символов git diff отправлять в LLM",
    )

    webhook_url: str = Field(
        default="",
        description="URL для JSON-уведомлений о результатах анализа (пусто — уведомления выключены)",
    )
    webhook_timeout: int = Field(default=10, ge=1, description="Таймаут отправки уведомления в секундах")

    api_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Ключи ingestion API для in-memory каталога проектов: {api_key: project_id}",
    )
    default_credits: int = Field(
        default=5, ge=0,
        description="Стартовый баланс кредитов проекта в in-memory каталоге",
    )

    server_host: str = Field(default="0.0.0.0", description="Хост для HTTP-сервера")
    server_port: int = Field(default=3000, ge=1, le=65535, description="Порт для HTTP-сервера")
