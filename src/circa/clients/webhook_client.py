"""HTTP-клиент для JSON-уведомлений о результатах анализа."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from circa.models.report import FailureReport
from circa.models.result import ProcessResult

logger = logging.getLogger(__name__)


def build_notification_payload(report: FailureReport, result: ProcessResult) -> dict[str, Any]:
    """Собрать JSON-payload уведомления (без форматирования под конкретный чат)."""
    failed = report.failed_tests or []
    return {
        "commitHash": report.commit_hash,
        "branch": report.branch,
        "author": report.author,
        "prNumber": report.pr_number,
        "patternId": result.new_pattern_id,
        "failureMessage": (
            failed[0].error_message if failed else (report.failure_logs or "")[:500] or None
        ),
        "analysis": result.analysis_text,
        "similarPatterns": [
            {
                "id": m.pattern_id,
                "similarity": m.similarity_percent,
                "summary": m.pattern.summary,
            }
            for m in result.matches
        ],
        "recommendations": [r.model_dump(by_alias=True) for r in result.recommendations],
    }


class WebhookNotifier:
    """Отправляет результат анализа POST-запросом на webhook.

    Реализует Protocol NotificationDispatcher.

    Raises (из ``dispatch``):
        httpx.HTTPError: Сетевая ошибка или ответ 4xx/5xx.
    """

    def __init__(self, url: str, *, timeout: int = 10) -> None:
        self._url = url
        self._http = httpx.AsyncClient(timeout=timeout)

    async def dispatch(self, report: FailureReport, result: ProcessResult) -> None:
        payload = build_notification_payload(report, result)
        resp = await self._http.post(self._url, json=payload)
        resp.raise_for_status()
        logger.debug("Webhook: уведомление отправлено (HTTP %d)", resp.status_code)

    async def close(self) -> None:
        """Освободить ресурсы HTTP-клиента."""
        await self._http.aclose()

    async def __aenter__(self) -> WebhookNotifier:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
