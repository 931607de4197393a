"""Сервис AI-анализа падения: промпт, вызов LLM, деградация до заглушки."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from circa.clients.llm_client import ChatCompletionClient
from circa.exceptions import AnalysisProviderError

logger = logging.getLogger(__name__)

ANALYSIS_UNAVAILABLE = "Analysis unavailable due to AI service error."
NO_ANALYSIS_GENERATED = "No analysis generated."
NO_DIFF_PROVIDED = "No git diff provided"

_RULE = "━" * 52


@runtime_checkable
class FailureAnalyzer(Protocol):
    """Протокол внешнего анализатора падений.

    ``analyze`` никогда не должен прерывать обработку отчёта: реализации
    сами возвращают текст-заглушку при сбое провайдера.
    """

    async def analyze(self, failure_logs: str, git_diff: str | None) -> str:
        ...


def build_analysis_prompt(
    failure_logs: str,
    git_diff: str | None,
    *,
    logs_max_chars: int = 4000,
    diff_max_chars: int = 3000,
) -> str:
    """Собрать промпт анализа: логи и diff обрезаются независимо."""
    diff = git_diff or NO_DIFF_PROVIDED
    return "\n".join([
        "You are an expert Senior DevOps/QA Engineer with deep knowledge of "
        "CI/CD pipelines, test automation, and debugging.",
        "",
        "Analyze this CI test failure comprehensively:",
        "",
        _RULE,
        "FAILURE LOGS:",
        _RULE,
        failure_logs[:logs_max_chars],
        "",
        _RULE,
        "GIT CHANGES (RECENT COMMIT):",
        _RULE,
        diff[:diff_max_chars],
        "",
        "Provide a detailed analysis in this exact format:",
        "",
        "**Failure Analysis:**",
        "",
        "1. **Why it failed:** the technical root cause; name the code change, "
        "configuration or environment issue responsible.",
        "2. **Specific fix:** actionable step-by-step instructions, including "
        "exact code changes, commands or configuration updates.",
        "3. **Confidence rating:** X% - your confidence level and reasoning.",
        "",
        "**Additional Context:**",
        "- If this is a test issue vs actual bug",
        "- If environment/dependencies are involved",
        "- If this could affect other parts of the system",
        "",
        "Be thorough but concise. Focus on actionable insights.",
    ])


class AnalysisService:
    """Анализ падения через LLM с деградацией до заглушки.

    Повторы при 429 / 5xx выполняет ChatCompletionClient; если они
    исчерпаны или провайдер вернул иную ошибку — возвращается
    ``ANALYSIS_UNAVAILABLE``, исключение наружу не выходит.

    Реализует Protocol FailureAnalyzer.
    """

    def __init__(
        self,
        client: ChatCompletionClient,
        *,
        logs_max_chars: int = 4000,
        diff_max_chars: int = 3000,
    ) -> None:
        self._client = client
        self._logs_max_chars = logs_max_chars
        self._diff_max_chars = diff_max_chars

    async def analyze(self, failure_logs: str, git_diff: str | None) -> str:
        prompt = build_analysis_prompt(
            failure_logs,
            git_diff,
            logs_max_chars=self._logs_max_chars,
            diff_max_chars=self._diff_max_chars,
        )
        try:
            text = await self._client.complete(prompt)
        except AnalysisProviderError as exc:
            logger.error("AI-анализ недоступен: %s", exc)
            return ANALYSIS_UNAVAILABLE

        if not text.strip():
            logger.warning("LLM вернул пустой ответ")
            return NO_ANALYSIS_GENERATED
        logger.info("AI-анализ получен (%d символов)", len(text))
        return text
