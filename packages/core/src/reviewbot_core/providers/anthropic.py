from __future__ import annotations

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from reviewbot_core.providers.base import BaseReviewer


class AnthropicReviewer(BaseReviewer):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.client = AsyncAnthropic(api_key=api_key)

    async def _call_api(self, system_prompt: str, messages: list[dict], json_mode: bool, max_tokens: int) -> str:
        # No JSON response mode here; the analysis prompt already demands a bare JSON object.
        response = await self.client.messages.create(
            model=self.MODEL,
            system=system_prompt,
            messages=messages,
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
