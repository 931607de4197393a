"""Нормализация входящего отчёта и построение текста для fingerprint."""

from __future__ import annotations

import logging
import re

from circa.exceptions import ValidationError
from circa.models.report import FailedTest, FailureReport

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR_RE = re.compile(r"\n\s*\n")
_TEST_LINE_RE = re.compile(r"Test: (.+)")
_ERROR_RE = re.compile(r"Error: (.+)", re.DOTALL)

UNKNOWN_TEST_NAME = "Unknown Test"


def parse_failure_logs(failure_logs: str) -> list[FailedTest]:
    """Восстановить упавшие тесты из свободного текста логов.

    Блоки разделены пустой строкой. В блоке ищутся ``Test: <имя>`` и
    ``Error: <сообщение до конца блока>``; без них имя — ``Unknown Test``,
    сообщение — весь блок. Сам блок сохраняется как стек-трейс.
    """
    tests: list[FailedTest] = []
    for block in _BLOCK_SEPARATOR_RE.split(failure_logs):
        if not block.strip():
            continue
        test_match = _TEST_LINE_RE.search(block)
        error_match = _ERROR_RE.search(block)
        tests.append(
            FailedTest(
                test_name=test_match.group(1).strip() if test_match else UNKNOWN_TEST_NAME,
                error_message=error_match.group(1).strip() if error_match else block.strip(),
                stack_trace=block,
            )
        )
    return tests


def resolve_failed_tests(report: FailureReport) -> list[FailedTest]:
    """Свести все варианты входа к одному списку упавших тестов.

    Приоритет: явный ``failed_tests``, затем разбор ``failure_logs``.

    Raises:
        ValidationError: Ни одного упавшего теста получить не удалось.
    """
    if report.failed_tests:
        return list(report.failed_tests)

    if report.failure_logs and report.failure_logs.strip():
        tests = parse_failure_logs(report.failure_logs)
        if tests:
            logger.debug("Из failure_logs восстановлено %d упавших тестов", len(tests))
            return tests

    raise ValidationError("No failed tests provided")


def build_failure_summary(failed_tests: list[FailedTest], changed_files: list[str]) -> str:
    """Текст падения, по которому строится fingerprint."""
    lines = [
        f"Failed {len(failed_tests)} test(s).",
        f"Changed files: {', '.join(changed_files) or 'none'}",
        "",
        "Errors:",
    ]
    lines.extend(f"- {t.test_name}: {t.error_message}" for t in failed_tests)
    return "\n".join(lines)


def build_failure_logs(report: FailureReport, failed_tests: list[FailedTest]) -> str:
    """Логи для AI-анализа: исходный текст или сводка по упавшим тестам."""
    if report.failure_logs and report.failure_logs.strip():
        return report.failure_logs
    return "\n".join(f"{t.test_name}: {t.error_message}" for t in failed_tests)
