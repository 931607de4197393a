"""Рассылка результатов анализа с изоляцией ошибок доставки."""

from __future__ import annotations

import logging

from circa.clients.base import NotificationDispatcher
from circa.models.report import FailureReport
from circa.models.result import ProcessResult

logger = logging.getLogger(__name__)


async def dispatch_notifications(
    dispatchers: list[NotificationDispatcher],
    report: FailureReport,
    result: ProcessResult,
) -> int:
    """Разослать результат всем получателям.

    Ошибка одного получателя логируется и не мешает остальным; наружу
    исключения не выходят.

    Returns:
        Количество успешных доставок.
    """
    delivered = 0
    for dispatcher in dispatchers:
        name = type(dispatcher).__name__
        try:
            await dispatcher.dispatch(report, result)
        except Exception as exc:
            logger.error("Уведомление %s не доставлено: %s", name, exc)
            continue
        delivered += 1
        logger.info("Уведомление %s доставлено (pattern=%s)", name, result.new_pattern_id)
    return delivered
