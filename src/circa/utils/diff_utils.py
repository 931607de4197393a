"""Утилиты для разбора unified diff."""

from __future__ import annotations

import re

# Заголовок пары файлов: diff --git a/<old> b/<new>
_GIT_HEADER_RE = re.compile(r"^diff --git (?:\S+) b/(.+)$")
# Новая сторона: +++ b/<new> (опциональный таб и timestamp в конце)
_NEW_FILE_RE = re.compile(r"^\+\+\+ (?:b/)?([^\t]+)")

_DEV_NULL = "/dev/null"


def extract_changed_files(diff_text: str | None) -> list[str]:
    """Вернуть пути файлов, затронутых diff (новая сторона, без префикса ``b/``).

    Каждый путь встречается один раз, в порядке первого появления — порядок
    важен только для детерминированного текста summary. Удалённые файлы
    (``+++ /dev/null`` или ``deleted file mode``) в результат не попадают.
    Некорректный diff не ошибка: возвращается то, что удалось разобрать.
    """
    if not diff_text:
        return []

    files: dict[str, None] = {}
    deleted: set[str] = set()
    current: str | None = None

    for raw_line in diff_text.splitlines():
        line = raw_line.rstrip("\r")

        if line.startswith("diff --git"):
            match = _GIT_HEADER_RE.match(line)
            current = match.group(1).strip() if match else None
            if current:
                files.setdefault(current, None)
                deleted.discard(current)
        elif line.startswith("deleted file mode"):
            if current:
                deleted.add(current)
        elif line.startswith("+++"):
            match = _NEW_FILE_RE.match(line)
            if not match:
                continue
            path = match.group(1).strip()
            if path == _DEV_NULL:
                if current:
                    deleted.add(current)
                continue
            files.setdefault(path, None)
            deleted.discard(path)

    return [path for path in files if path not in deleted]
