"""Абстрактные интерфейсы внешних получателей результатов анализа."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from circa.models.report import FailureReport
from circa.models.result import ProcessResult


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Протокол доставки результатов анализа (чат, PR-комментарий, почта).

    Оформление сообщений — забота реализации. Ошибки доставки не должны
    влиять на ответ ingestion API: вызывающий код логирует и глотает их
    (см. ``dispatch_notifications``).

    Реализации:
    - WebhookNotifier: POST JSON-payload на настроенный URL
    """

    async def dispatch(self, report: FailureReport, result: ProcessResult) -> None:
        """Доставить результат анализа отчёта."""
        ...
