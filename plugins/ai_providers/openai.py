"""OpenAI LLM provider -- calls the OpenAI-compatible chat API via httpx.

No SDK dependency. Works with any OpenAI-compatible API (OpenAI, Azure, local).
Every failure surfaces as ProviderError; there are no retries here.
"""

from __future__ import annotations

import logging

import httpx

from core.errors import ProviderError

logger = logging.getLogger(__name__)

_DEFAULT_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider:
    """LLM provider for OpenAI-compatible APIs.

    Implements the LLMProvider protocol.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.7,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._url = base_url or _DEFAULT_URL
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    @property
    def name(self) -> str:
        return "openai"

    async def complete(self, system: str, user: str) -> str:
        """Send a system + user prompt and return the text response."""
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }

        try:
            response = await self._client.post(self._url, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise ProviderError(f"{self.name} request timed out") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("%s returned HTTP %d", self.name, status)
            raise ProviderError(f"{self.name} returned HTTP {status}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"{self.name} returned a malformed response") from e

        if not isinstance(content, str) or not content.strip():
            raise ProviderError(f"{self.name} returned an empty response")
        return content

    async def close(self) -> None:
        await self._client.aclose()
