"""Тесты ChatCompletionClient: запросы, retry, ошибки, парсинг ответов."""

from __future__ import annotations

import httpx
import pytest

from circa.clients.llm_client import ChatCompletionClient
from circa.exceptions import AnalysisProviderError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _completion(text: str | None = "Root cause: expired token") -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class _MockResponse:
    """Заглушка для httpx.Response."""

    def __init__(
        self,
        json_data: dict | None = None,
        status_code: int = 200,
        text: str = "",
        *,
        invalid_json: bool = False,
    ) -> None:
        self._json_data = json_data
        self.status_code = status_code
        self.text = text
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Invalid JSON")
        return self._json_data


class _SequenceHttp:
    """HTTP-заглушка: отдаёт ответы (или бросает исключения) по очереди."""

    def __init__(self, *outcomes) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict] = []

    async def post(self, url, json, headers):
        self.calls.append({"url": url, "json": json, "headers": headers})
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        pass


def _make_client(mock_http, *, max_retries: int = 3) -> ChatCompletionClient:
    """Создать ChatCompletionClient с подменённым HTTP-клиентом и без задержек."""
    client = ChatCompletionClient(
        "https://llm.test/openai/v1/",
        "test-key",
        "test-model",
        max_retries=max_retries,
        retry_base_delay=0,
    )
    client._http = mock_http
    return client


# ---------------------------------------------------------------------------
# Успех
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_complete_success_builds_request() -> None:
    http = _SequenceHttp(_MockResponse(_completion("Hello LLM")))
    client = _make_client(http)

    text = await client.complete("why did it fail?")

    assert text == "Hello LLM"
    call = http.calls[0]
    assert call["url"] == "https://llm.test/openai/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer test-key"
    assert call["json"]["model"] == "test-model"
    assert call["json"]["messages"] == [{"role": "user", "content": "why did it fail?"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [_completion(None), {"choices": []}])
async def test_empty_completion_returns_empty_string(data) -> None:
    client = _make_client(_SequenceHttp(_MockResponse(data)))
    assert await client.complete("prompt") == ""


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_retry_on_rate_limit_then_success() -> None:
    http = _SequenceHttp(
        _MockResponse(status_code=429, text="rate limited"),
        _MockResponse(status_code=503, text="unavailable"),
        _MockResponse(_completion("ok")),
    )
    client = _make_client(http)

    assert await client.complete("prompt") == "ok"
    assert len(http.calls) == 3


@pytest.mark.asyncio
async def test_retry_on_network_error() -> None:
    http = _SequenceHttp(
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
        _MockResponse(_completion("ok")),
    )
    client = _make_client(http)

    assert await client.complete("prompt") == "ok"


@pytest.mark.asyncio
async def test_retries_exhausted_raise_last_error() -> None:
    http = _SequenceHttp(*[_MockResponse(status_code=429, text="slow down")] * 3)
    client = _make_client(http, max_retries=2)

    with pytest.raises(AnalysisProviderError) as exc_info:
        await client.complete("prompt")

    assert exc_info.value.status_code == 429
    assert len(http.calls) == 3


@pytest.mark.asyncio
async def test_client_error_is_not_retried() -> None:
    http = _SequenceHttp(_MockResponse(status_code=401, text="bad key"))
    client = _make_client(http)

    with pytest.raises(AnalysisProviderError) as exc_info:
        await client.complete("prompt")

    assert exc_info.value.status_code == 401
    assert len(http.calls) == 1


# ---------------------------------------------------------------------------
# Ошибки формата
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_invalid_json_raises() -> None:
    client = _make_client(_SequenceHttp(_MockResponse(text="<html>", invalid_json=True)))
    with pytest.raises(AnalysisProviderError, match="JSON"):
        await client.complete("prompt")


@pytest.mark.asyncio
async def test_unexpected_structure_raises() -> None:
    client = _make_client(_SequenceHttp(_MockResponse({"result": "text"})))
    with pytest.raises(AnalysisProviderError, match="Неожиданная структура"):
        await client.complete("prompt")


@pytest.mark.asyncio
async def test_async_context_manager_closes_http() -> None:
    closed = []

    class _Http(_SequenceHttp):
        async def aclose(self) -> None:
            closed.append(True)

    async with _make_client(_Http()) as client:
        assert isinstance(client, ChatCompletionClient)

    assert closed == [True]
