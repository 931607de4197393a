"""Тесты разбора unified diff."""

from __future__ import annotations

from circa.utils.diff_utils import extract_changed_files

_MODIFIED_DIFF = """\
diff --git a/src/x.ts b/src/x.ts
index 83db48f..bf269f4 100644
--- a/src/x.ts
+++ b/src/x.ts
@@ -1,3 +1,3 @@
-const a = 1;
+const a = 2;
"""


def test_header_and_new_side_are_deduplicated() -> None:
    """diff --git и +++ указывают на один файл → одна запись."""
    assert extract_changed_files(_MODIFIED_DIFF) == ["src/x.ts"]


def test_deleted_file_is_excluded() -> None:
    """+++ /dev/null — файл удалён и в результат не попадает."""
    diff = """\
diff --git a/src/old.ts b/src/old.ts
deleted file mode 100644
index 83db48f..0000000
--- a/src/old.ts
+++ /dev/null
@@ -1 +0,0 @@
-export const old = true;
"""
    assert extract_changed_files(diff) == []


def test_dev_null_line_alone_contributes_nothing() -> None:
    assert extract_changed_files("--- a/gone.py\n+++ /dev/null\n") == []


def test_multiple_files_keep_first_appearance_order() -> None:
    diff = _MODIFIED_DIFF + """\
diff --git a/lib/util.js b/lib/util.js
--- a/lib/util.js
+++ b/lib/util.js
diff --git a/README.md b/README.md
--- a/README.md
+++ b/README.md
"""
    assert extract_changed_files(diff) == ["src/x.ts", "lib/util.js", "README.md"]


def test_new_file_is_included() -> None:
    diff = """\
diff --git a/src/new.ts b/src/new.ts
new file mode 100644
--- /dev/null
+++ b/src/new.ts
"""
    assert extract_changed_files(diff) == ["src/new.ts"]


def test_path_containing_b_slash_is_not_truncated() -> None:
    """Каталог lib/ не путается с префиксом b/."""
    diff = "diff --git a/lib/x.ts b/lib/x.ts\n+++ b/lib/x.ts\t2026-01-01 10:00:00\n"
    assert extract_changed_files(diff) == ["lib/x.ts"]


def test_plus_line_without_prefix() -> None:
    """diff --no-prefix: путь без b/."""
    assert extract_changed_files("--- src/a.py\n+++ src/a.py\n") == ["src/a.py"]


def test_empty_and_malformed_diff_give_empty_result() -> None:
    assert extract_changed_files(None) == []
    assert extract_changed_files("") == []
    assert extract_changed_files("not a diff at all\n+ added line\n") == []
