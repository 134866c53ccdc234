from __future__ import annotations

from openai import AsyncOpenAI

from reviewbot_core.providers.base import BaseReviewer

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"


class OpenAIReviewer(BaseReviewer):
    MODEL = "gpt-4o"
    # Lower than the Anthropic default; leans toward stable JSON output.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, base_url: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def _call_api(self, system_prompt: str, messages: list[dict], json_mode: bool, max_tokens: int) -> str:
        request = {
            "model": self.MODEL,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "temperature": self.TEMPERATURE,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        response = await self.client.chat.completions.create(**request)
        return response.choices[0].message.content or ""


class DeepSeekReviewer(OpenAIReviewer):
    """DeepSeek exposes an OpenAI-compatible chat completions API."""

    MODEL = "deepseek-chat"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, base_url: str | None = None, **kwargs):
        super().__init__(api_key=api_key, base_url=normalize_base_url(base_url or DEEPSEEK_BASE_URL), **kwargs)


def normalize_base_url(url: str) -> str:
    """Accept either the API root or the full ``/chat/completions`` endpoint URL."""
    url = url.rstrip("/")
    suffix = "/chat/completions"
    if url.endswith(suffix):
        url = url[: -len(suffix)]
    return url
