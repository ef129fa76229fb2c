from typing import List, Optional

import httpx

from chatrelay.logging_config import get_logger
from chatrelay.services.errors import UpstreamAIFailure
from chatrelay.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.anthropic")


class AnthropicProvider(LLMProvider):
    """Anthropic Messages API provider."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        default_model: str = "claude-3-5-sonnet-20241022",
        api_version: str = "2023-06-01",
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.api_version = api_version
        self.base_url = "https://api.anthropic.com/v1/messages"

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        max_tokens: int = 1024,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        timeout = timeout_seconds if timeout_seconds is not None else 60.0
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        logger.debug(f"Anthropic request: model={model}, messages_count={len(messages)}")

        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    self.base_url,
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": self.api_version,
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise UpstreamAIFailure(f"Anthropic request failed: {e}") from e

        logger.debug(f"Anthropic response status: {response.status_code}")

        if response.status_code != 200:
            raise UpstreamAIFailure(f"Anthropic API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
            content = data["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamAIFailure(f"Malformed Anthropic response: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise UpstreamAIFailure("Anthropic returned empty content")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )
