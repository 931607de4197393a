"""HTTP-клиент для OpenAI-совместимого Chat Completions API (Groq и др.)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from circa.exceptions import AnalysisProviderError

logger = logging.getLogger(__name__)

_RATE_LIMITED = 429


class ChatCompletionClient:
    """HTTP-клиент для ``POST {base_url}/chat/completions``.

    Отправляет один user-промпт и возвращает текст первого choice.
    Поддерживает retry с exponential backoff при 429 / 5xx /
    сетевых ошибках.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        *,
        timeout: int = 60,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._http = httpx.AsyncClient(timeout=timeout)

    async def complete(self, prompt: str) -> str:
        """Отправить промпт и вернуть текстовый ответ модели.

        Retry: при 429 / 5xx / сетевых ошибках — exponential backoff
        (delay = base * 2^attempt), до ``max_retries`` повторов.

        Returns:
            Текст ответа; пустая строка, если модель ничего не вернула.

        Raises:
            AnalysisProviderError: При HTTP-ошибках, исчерпании повторов
                или неожиданном формате ответа.
        """
        url = f"{self._base_url}/chat/completions"
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
        }

        last_error: AnalysisProviderError | None = None

        for attempt in range(1 + self._max_retries):
            logger.debug(
                "LLM запрос: POST %s prompt_length=%d attempt=%d/%d",
                url,
                len(prompt),
                attempt + 1,
                1 + self._max_retries,
            )

            retryable = False
            try:
                resp = await self._http.post(url, json=payload, headers=headers)
            except httpx.TimeoutException as exc:
                last_error = AnalysisProviderError(0, f"Таймаут запроса: {exc}", url)
                last_error.__cause__ = exc
                retryable = True
            except httpx.RequestError as exc:
                last_error = AnalysisProviderError(0, str(exc), url)
                last_error.__cause__ = exc
                retryable = True
            else:
                if resp.status_code == _RATE_LIMITED or resp.status_code >= 500:
                    last_error = AnalysisProviderError(resp.status_code, resp.text[:500], url)
                    retryable = True
                elif resp.status_code >= 400:
                    raise AnalysisProviderError(resp.status_code, resp.text[:500], url)
                else:
                    try:
                        data = resp.json()
                    except ValueError as exc:
                        raise AnalysisProviderError(
                            resp.status_code,
                            f"Ответ не является валидным JSON: {resp.text[:200]}",
                            url,
                        ) from exc
                    return self._extract_text(data, url)

            if retryable and attempt < self._max_retries:
                delay = self._retry_base_delay * (2 ** attempt)
                logger.warning(
                    "LLM ошибка (попытка %d/%d): %s — повтор через %.1fs",
                    attempt + 1,
                    1 + self._max_retries,
                    last_error,
                    delay,
                )
                await asyncio.sleep(delay)
            elif last_error is not None:
                raise last_error

        # Unreachable, но для mypy
        raise last_error  # type: ignore[misc]

    @staticmethod
    def _extract_text(data: dict[str, Any], url: str) -> str:
        """Извлечь текст из ответа: ``choices[0].message.content``."""
        try:
            choices = data["choices"]
            if not choices:
                return ""
            content = choices[0]["message"].get("content")
            if content is None:
                return ""
            if not isinstance(content, str):
                msg = f"Ожидался str, получен {type(content).__name__}"
                raise TypeError(msg)
            return content
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise AnalysisProviderError(
                0,
                f"Неожиданная структура ответа LLM: {exc}. Ответ: {str(data)[:300]}",
                url,
            ) from exc

    async def close(self) -> None:
        """Освободить ресурсы HTTP-клиента."""
        await self._http.aclose()

    async def __aenter__(self) -> ChatCompletionClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
