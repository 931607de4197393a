"""Тесты FastAPI-сервера: эндпоинты, маппинг ошибок, сериализация ответов."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

import circa
from circa.config import Settings
from circa.exceptions import StorageError
from circa.patterns.memory_store import InMemoryPatternStore
from circa.projects import InMemoryProjectDirectory
from circa.server import app


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


_REPORT = {
    "commitHash": "abc123",
    "branch": "main",
    "author": "dev@acme.io",
    "status": "failed",
    "failedTests": [{"testName": "Auth Test", "errorMessage": "401"}],
}


class _RecordingDispatcher:
    def __init__(self) -> None:
        self.reports: list[Any] = []

    async def dispatch(self, report, result) -> None:
        self.reports.append(report)


class _BrokenStore(InMemoryPatternStore):
    def insert(self, pattern):
        raise StorageError("database is down")


def _setup_state(
    *,
    credits: int = 5,
    store: Any = None,
    dispatchers: list[Any] | None = None,
    analyzer: Any = None,
) -> None:
    """Установить _state сервера напрямую."""
    from circa.server import _state

    _state.settings = Settings(_env_file=None)
    _state.store = store or InMemoryPatternStore()
    _state.directory = InMemoryProjectDirectory({"key-1": "project-1"}, credits=credits)
    _state.analyzer = analyzer
    _state.dispatchers = dispatchers or []


@pytest.fixture
def _http_client():
    """httpx.AsyncClient для тестирования FastAPI через ASGI transport."""
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


async def _post(client: httpx.AsyncClient, payload: dict, **headers: str) -> httpx.Response:
    return await client.post("/api/v1/report", json=payload, headers=headers)


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health_returns_ok(_http_client) -> None:
    async with _http_client as client:
        resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": circa.__version__}


# ---------------------------------------------------------------------------
# POST /api/v1/report
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_report_success(_http_client) -> None:
    _setup_state()
    async with _http_client as client:
        resp = await _post(client, _REPORT, **{"x-api-key": "key-1"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "processed"
    assert data["patternId"]
    assert data["similarPatterns"] == 0
    assert data["similarPatternsDetails"] == []
    assert data["recommendations"] == [
        {"testName": "Auth Test", "reason": "re-run previously failed test", "confidenceScore": 0.9},
    ]
    assert data["creditsUsed"] == 1
    assert data["creditsRemaining"] == 4
    assert data["vectorEmbeddingDimensions"] == 1536
    assert data["analysis"] is None


@pytest.mark.asyncio
async def test_second_report_lists_similar_pattern(_http_client) -> None:
    _setup_state()
    async with _http_client as client:
        first = await _post(client, _REPORT, **{"x-api-key": "key-1"})
        second = await _post(client, _REPORT, **{"x-api-key": "key-1"})

    details = second.json()["similarPatternsDetails"]
    assert len(details) == 1
    assert details[0]["id"] == first.json()["patternId"]
    assert details[0]["similarity"] == "100.0%"
    assert details[0]["summary"].startswith("Failed 1 test(s).")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("headers", "detail"),
    [
        ({}, "Missing x-api-key header"),
        ({"x-api-key": "wrong"}, "Invalid API Key"),
    ],
)
async def test_report_auth_errors(_http_client, headers, detail) -> None:
    _setup_state()
    async with _http_client as client:
        resp = await _post(client, _REPORT, **headers)

    assert resp.status_code == 401
    assert resp.json()["detail"] == detail


@pytest.mark.asyncio
async def test_report_out_of_credits(_http_client) -> None:
    _setup_state(credits=1)
    async with _http_client as client:
        ok = await _post(client, _REPORT, **{"x-api-key": "key-1"})
        rejected = await _post(client, _REPORT, **{"x-api-key": "key-1"})

    assert ok.status_code == 200
    assert ok.json()["creditsRemaining"] == 0
    assert rejected.status_code == 402


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {k: v for k, v in _REPORT.items() if k != "commitHash"},
        {**_REPORT, "branch": ""},
        {**_REPORT, "status": "exploded"},
        {k: v for k, v in _REPORT.items() if k != "status"},
        {**_REPORT, "author": "not-an-email"},
        {**_REPORT, "snapshotUrls": {"screenshot": "not a url"}},
        {**_REPORT, "failedTests": []},
    ],
)
async def test_report_validation_errors(_http_client, payload) -> None:
    _setup_state()
    async with _http_client as client:
        resp = await _post(client, payload, **{"x-api-key": "key-1"})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_rejected_report_does_not_consume_credit(_http_client) -> None:
    from circa.server import _state

    _setup_state(credits=1)
    async with _http_client as client:
        await _post(client, {**_REPORT, "failedTests": []}, **{"x-api-key": "key-1"})

    project = _state.directory.authenticate("key-1")
    assert _state.directory.ensure_credits(project) == 1


@pytest.mark.asyncio
async def test_report_storage_error_returns_500(_http_client) -> None:
    _setup_state(store=_BrokenStore())
    async with _http_client as client:
        resp = await _post(client, _REPORT, **{"x-api-key": "key-1"})

    assert resp.status_code == 500
    assert "database is down" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_notifications_sent_for_real_traffic(_http_client) -> None:
    dispatcher = _RecordingDispatcher()
    _setup_state(dispatchers=[dispatcher])
    async with _http_client as client:
        await _post(client, _REPORT, **{"x-api-key": "key-1"})

    assert len(dispatcher.reports) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "headers"),
    [
        ({**_REPORT, "commitHash": "abc-test"}, {"x-api-key": "key-1"}),
        (_REPORT, {"x-api-key": "key-1", "x-test-mode": "true"}),
    ],
)
async def test_notifications_skipped_for_test_traffic(_http_client, payload, headers) -> None:
    dispatcher = _RecordingDispatcher()
    _setup_state(dispatchers=[dispatcher])
    async with _http_client as client:
        resp = await _post(client, payload, **headers)

    assert resp.status_code == 200
    assert dispatcher.reports == []
