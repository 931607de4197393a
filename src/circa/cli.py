"""Точка входа CLI circa: обработка отчёта о падении из JSON-файла."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from circa import __version__

if TYPE_CHECKING:
    from circa.models.result import ProcessResult

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="circa",
        description="Поиск похожих падений CI и рекомендации тестов по отчёту CI-репортера",
    )
    parser.add_argument(
        "report",
        nargs="?",
        help="Путь к JSON-отчёту о падении ('-' — читать из stdin)",
    )
    parser.add_argument(
        "--scope",
        default="default",
        help="Проект / tenant, в рамках которого ищутся паттерны (по умолчанию: default)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Порог схожести (переопределяет CIRCA_SIMILARITY_THRESHOLD)",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="Макс. число похожих паттернов (переопределяет CIRCA_SIMILARITY_TOP_K)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Уровень логирования (переопределяет CIRCA_LOG_LEVEL)",
    )
    parser.add_argument(
        "--output-format",
        choices=["text", "json"],
        default="text",
        help="Формат вывода (по умолчанию: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"circa {__version__}",
    )
    return parser


def _read_report_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


async def async_main(args: argparse.Namespace) -> int:
    """Собрать зависимости и обработать отчёт. Возвращает код выхода."""
    # Отложенные импорты — чтобы --help работал быстро
    import pydantic

    from circa.config import Settings
    from circa.exceptions import CircaError, ConfigurationError, ValidationError
    from circa.logging_config import setup_logging
    from circa.models.report import FailureReport
    from circa.orchestrator import build_analyzer, build_pattern_store, process

    # 1. Загрузка настроек
    try:
        overrides: dict[str, object] = {}
        if args.threshold is not None:
            overrides["similarity_threshold"] = args.threshold
        if args.top_k is not None:
            overrides["similarity_top_k"] = args.top_k
        settings = Settings(**overrides)  # type: ignore[arg-type]
    except pydantic.ValidationError as exc:
        print(f"Ошибка конфигурации: {exc}", file=sys.stderr)
        return 2

    # 2. Настройка логирования
    setup_logging(args.log_level or settings.log_level)

    # 3. Чтение отчёта
    if args.report is None:
        logger.error("Не указан отчёт. Передайте путь к JSON: circa <report.json>")
        return 2
    try:
        report = FailureReport.model_validate_json(_read_report_text(args.report))
    except OSError as exc:
        logger.error("Не удалось прочитать отчёт: %s", exc)
        return 2
    except pydantic.ValidationError as exc:
        logger.error("Отчёт не прошёл валидацию: %s", exc)
        return 2

    # 4. Обработка
    try:
        store = build_pattern_store(settings)
        analyzer, llm_client = build_analyzer(settings)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2

    try:
        result = await process(
            report, store, scope=args.scope, settings=settings, analyzer=analyzer,
        )
    except ValidationError as exc:
        logger.error("Некорректный отчёт: %s", exc)
        return 2
    except TimeoutError:
        logger.error(
            "Превышен таймаут обработки (CIRCA_PROCESS_TIMEOUT=%s), паттерн не сохранён",
            settings.process_timeout,
        )
        return 1
    except CircaError as exc:
        logger.error("Ошибка обработки: %s", exc)
        return 1
    finally:
        if llm_client is not None:
            await llm_client.close()

    # 5. Вывод
    if args.output_format == "json":
        output = {
            "pattern_id": result.new_pattern_id,
            "analysis": result.analysis_text,
            "changed_files": result.changed_files,
            "matches": [m.model_dump() for m in result.matches],
            "recommendations": [r.model_dump() for r in result.recommendations],
            "fingerprint_dimensions": result.fingerprint_dimensions,
        }
        print(json.dumps(output, ensure_ascii=False, indent=2))
    else:
        print(format_text_report(result))
    return 0


def format_text_report(result: ProcessResult) -> str:
    """Человекочитаемый отчёт для терминала."""
    lines = [f"Паттерн сохранён: {result.new_pattern_id}"]

    if result.changed_files:
        lines.append(f"Изменённые файлы: {', '.join(result.changed_files)}")

    lines.append("")
    if result.matches:
        lines.append(f"Похожие падения ({len(result.matches)}):")
        for m in result.matches:
            first_line = m.pattern.summary.splitlines()[0] if m.pattern.summary else ""
            lines.append(f"  [{m.similarity_percent}] {m.pattern_id} {first_line}")
    else:
        lines.append("Похожих падений не найдено — новый паттерн.")

    lines.append("")
    lines.append("Рекомендованные тесты:")
    for r in result.recommendations:
        lines.append(f"  {r.confidence_score:.2f}  {r.test_name} — {r.reason}")

    if result.analysis_text:
        lines.extend(["", "AI-анализ:", result.analysis_text])
    return "\n".join(lines)


def main() -> None:
    """Синхронная точка входа для CLI."""
    parser = build_parser()
    args = parser.parse_args()
    exit_code = asyncio.run(async_main(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
