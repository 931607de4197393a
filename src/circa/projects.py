"""Каталог проектов ingestion API: аутентификация по ключу и учёт кредитов.

Ядро обработки (``circa.orchestrator``) от каталога не зависит — он
нужен только HTTP-серверу.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import psycopg

from circa.exceptions import AuthenticationError, QuotaExceededError, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Project:
    """Проект (репозиторий), от имени которого пришёл отчёт."""

    id: str
    org_id: str
    repo_url: str | None = None


@runtime_checkable
class ProjectDirectory(Protocol):
    """Протокол каталога проектов.

    Реализации:
    - InMemoryProjectDirectory: ключи из настроек, баланс в памяти
    - PostgresProjectDirectory: таблицы circa.project / circa.organization
    """

    def authenticate(self, api_key: str | None) -> Project:
        """Найти проект по API-ключу.

        Raises:
            AuthenticationError: Ключ не передан или неизвестен.
        """
        ...

    def ensure_credits(self, project: Project) -> int:
        """Вернуть баланс организации проекта.

        Raises:
            QuotaExceededError: Баланс <= 0.
        """
        ...

    def consume_credit(self, project: Project, action: str = "analysis") -> int:
        """Списать один кредит и вернуть остаток."""
        ...


class InMemoryProjectDirectory:
    """Каталог проектов в памяти: каждый ключ — отдельный проект и организация.

    Реализует Protocol ProjectDirectory.
    """

    def __init__(self, api_keys: dict[str, str], *, credits: int = 5) -> None:
        """
        Args:
            api_keys: ``{api_key: project_id}``.
            credits: Стартовый баланс каждой организации.
        """
        self._projects = {
            key: Project(id=project_id, org_id=project_id)
            for key, project_id in api_keys.items()
        }
        self._balances = {p.org_id: credits for p in self._projects.values()}
        self._lock = threading.Lock()

    def authenticate(self, api_key: str | None) -> Project:
        if not api_key:
            raise AuthenticationError("Missing x-api-key header")
        project = self._projects.get(api_key)
        if project is None:
            raise AuthenticationError("Invalid API Key")
        return project

    def ensure_credits(self, project: Project) -> int:
        with self._lock:
            balance = self._balances.get(project.org_id, 0)
        if balance <= 0:
            raise QuotaExceededError(project.org_id)
        return balance

    def consume_credit(self, project: Project, action: str = "analysis") -> int:
        with self._lock:
            balance = self._balances.get(project.org_id, 0) - 1
            self._balances[project.org_id] = balance
        logger.debug("Списан кредит (%s): org=%s, остаток=%d", action, project.org_id, balance)
        return balance


class PostgresProjectDirectory:
    """Каталог проектов в PostgreSQL.

    Списание кредита и запись в журнал использования выполняются в одной
    транзакции. Короткоживущее соединение на каждый вызов.

    Реализует Protocol ProjectDirectory.
    """

    def __init__(self, dsn: str, *, timeout: float = 10.0) -> None:
        self._dsn = dsn
        self._timeout = timeout

    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self._dsn, connect_timeout=max(1, int(self._timeout)))

    def authenticate(self, api_key: str | None) -> Project:
        if not api_key:
            raise AuthenticationError("Missing x-api-key header")
        query = """
            SELECT id::text, org_id::text, repo_url
            FROM circa.project
            WHERE api_key = %s
        """
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (api_key,))
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"Ошибка аутентификации проекта: {exc}") from exc

        if row is None:
            logger.warning("Неизвестный API-ключ")
            raise AuthenticationError("Invalid API Key")
        return Project(id=row[0], org_id=row[1], repo_url=row[2])

    def ensure_credits(self, project: Project) -> int:
        query = "SELECT credits_balance FROM circa.organization WHERE id::text = %s"
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (project.org_id,))
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"Ошибка чтения баланса: {exc}") from exc

        balance = int(row[0]) if row and row[0] is not None else 0
        if balance <= 0:
            logger.warning("Недостаточно кредитов: org=%s", project.org_id)
            raise QuotaExceededError(project.org_id)
        return balance

    def consume_credit(self, project: Project, action: str = "analysis") -> int:
        try:
            with self._connect() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute(
                            """
                            UPDATE circa.organization
                            SET credits_balance = credits_balance - 1
                            WHERE id::text = %s
                            RETURNING credits_balance
                            """,
                            (project.org_id,),
                        )
                        row = cur.fetchone()
                        cur.execute(
                            """
                            INSERT INTO circa.usage_log (project_id, action_type, cost)
                            VALUES (%s::uuid, %s, 1)
                            """,
                            (project.id, action),
                        )
        except psycopg.Error as exc:
            raise StorageError(f"Ошибка списания кредита: {exc}") from exc
        return int(row[0]) if row else 0
