"""LLM service for OpenRouter chat completions."""

import json
import logging
import re
from typing import Any

import httpx

from voicenotes.config import Settings
from voicenotes.errors import CompletionUnavailable, InvalidModelResponse
from voicenotes.services.retry import RetryPolicy, is_auth_error, is_quota_error

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first balanced JSON object in a model response.

    Markdown code fences are removed first. Braces inside JSON strings are
    ignored while looking for the end of the object.

    Raises:
        InvalidModelResponse: no object found, or the object is not valid JSON
    """
    cleaned = _FENCE.sub("", text).strip()
    start = cleaned.find("{")
    if start == -1:
        raise InvalidModelResponse(f"no JSON object in response: {cleaned[:200]!r}")

    depth = 0
    in_string = False
    escaped = False
    end = None
    for index in range(start, len(cleaned)):
        char = cleaned[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                end = index + 1
                break
    if end is None:
        raise InvalidModelResponse(f"unterminated JSON object: {cleaned[:200]!r}")

    try:
        parsed = json.loads(cleaned[start:end])
    except json.JSONDecodeError as e:
        raise InvalidModelResponse(f"invalid JSON from model: {e}") from e
    if not isinstance(parsed, dict):
        raise InvalidModelResponse("model response is not a JSON object")
    return parsed


class LLMService:
    """Service for calling a chat-completion model through OpenRouter."""

    def __init__(
        self,
        settings: Settings,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.api_key = settings.openrouter_api_key
        self.base_url = settings.openrouter_base_url
        self.model = settings.llm_model
        self.timeout = settings.llm_timeout
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _complete(self, messages: list[dict[str, str]], temperature: float) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "HTTP-Referer": self.settings.site_url,
                    "X-Title": "Voice Notes Bot",
                },
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": self.settings.llm_max_tokens,
                    "top_p": 0.9,
                },
            )
            response.raise_for_status()
            data = response.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise InvalidModelResponse(f"unexpected completion payload: {data!r}"[:300]) from e

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate a response from the LLM.

        Raises:
            CompletionUnavailable: missing key, rejected credentials or no quota
            httpx.HTTPError: transient failures once retries are exhausted
        """
        if not self.is_configured:
            raise CompletionUnavailable("OpenRouter API key not configured")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        if temperature is None:
            temperature = self.settings.llm_temperature

        try:
            return await self.retry_policy.run(
                lambda: self._complete(messages, temperature), "completion"
            )
        except httpx.HTTPStatusError as e:
            if is_auth_error(e) or is_quota_error(e):
                logger.error(
                    f"Completion service misconfigured: OpenRouter rejected the request "
                    f"({e.response.status_code})"
                )
                raise CompletionUnavailable(str(e)) from e
            raise

    async def generate_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """Generate structured JSON response from the LLM."""
        result = await self.generate(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature,
        )
        try:
            return extract_json_object(result)
        except InvalidModelResponse:
            logger.warning(f"Failed to parse LLM response as JSON. Raw response: {result[:500]}")
            raise
