"""Pydantic-модели входящего отчёта о падении CI."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl


class FailedTest(BaseModel):
    """Описание одного упавшего теста."""

    model_config = ConfigDict(populate_by_name=True)

    test_name: str = Field(alias="testName")
    error_message: str = Field(alias="errorMessage")
    stack_trace: str | None = Field(None, alias="stackTrace")


class SnapshotUrls(BaseModel):
    """Ссылки на артефакты браузерного снапшота (передаются как есть)."""

    model_config = ConfigDict(populate_by_name=True)

    screenshot: HttpUrl | None = None
    html_dump: HttpUrl | None = Field(None, alias="htmlDump")
    har: HttpUrl | None = None
    console_logs: HttpUrl | None = Field(None, alias="consoleLogs")


class FailureReport(BaseModel):
    """Отчёт CI-репортера об одном упавшем прогоне.

    Поля приходят в camelCase; неизвестные поля игнорируются.
    Список упавших тестов может отсутствовать — тогда он восстанавливается
    из ``failure_logs`` (см. ``resolve_failed_tests``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    commit_hash: str = Field(alias="commitHash", min_length=1)
    branch: str = Field(min_length=1)
    author: EmailStr
    status: Literal["passed", "failed", "running"]
    failed_tests: list[FailedTest] | None = Field(None, alias="failedTests")
    git_diff: str | None = Field(None, alias="gitDiff")
    failure_logs: str | None = Field(None, alias="failureLogs")
    pr_number: int | None = Field(None, alias="prNumber")
    snapshot_urls: SnapshotUrls | None = Field(None, alias="snapshotUrls")

    @property
    def is_test_traffic(self) -> bool:
        """Отчёт отправлен тестовым прогоном самого репортера."""
        return "-test" in self.commit_hash
