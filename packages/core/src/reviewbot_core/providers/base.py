"""Base reviewer implementing the Template Method pattern.

All providers share the same request flow:
    analyze() / reply() → _call_with_retry() → _call_api()   ← only this differs per provider
    analyze() additionally → _parse()

Subclasses implement two things only:
  - __init__: build and store the async SDK client
  - _call_api: make one raw chat call and return the text response

Retry, timeout and JSON decoding live here so every provider behaves the same
way when the network or the model misbehaves.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod

from reviewbot_core.utils.retry import DEFAULT_DELAY, DEFAULT_RETRIES, with_retry

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4000
_REPLY_MAX_TOKENS = 2000
_TIMEOUT = 30.0


class LLMResponseError(ValueError):
    """The model answered, but not with a JSON object. Not worth retrying."""


class BaseReviewer(ABC):
    MODEL: str = ""
    TEMPERATURE: float = 0.3
    MAX_TOKENS: int = _MAX_TOKENS
    REPLY_MAX_TOKENS: int = _REPLY_MAX_TOKENS

    def __init__(
        self,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_DELAY,
        retry_backoff: float = 1.0,
        timeout: float = _TIMEOUT,
    ):
        self.retries = retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.timeout = timeout

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def analyze(self, system_prompt: str, user_content: str) -> dict:
        """Ask for a structured review of ``user_content`` and return the decoded JSON object.

        Transient failures are retried; once retries are exhausted the last
        error propagates. A reply that is not a JSON object raises
        LLMResponseError straight away.
        """
        messages = [{"role": "user", "content": user_content}]
        raw = await self._call_with_retry(system_prompt, messages, json_mode=True, max_tokens=self.MAX_TOKENS)
        return self._parse(raw)

    async def reply(self, system_prompt: str, messages: list[dict]) -> str:
        """Continue a conversation and return the model's free-text answer."""
        raw = await self._call_with_retry(system_prompt, messages, json_mode=False, max_tokens=self.REPLY_MAX_TOKENS)
        return raw.strip()

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _call_api(self, system_prompt: str, messages: list[dict], json_mode: bool, max_tokens: int) -> str:
        """Make a single API call and return the raw text response.

        Should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    async def _call_with_retry(self, system_prompt: str, messages: list[dict], json_mode: bool, max_tokens: int) -> str:
        async def attempt() -> str:
            return await asyncio.wait_for(
                self._call_api(system_prompt, messages, json_mode, max_tokens),
                timeout=self.timeout,
            )

        logger.debug("%s: calling %s", self.__class__.__name__, self.MODEL)
        return await with_retry(attempt, retries=self.retries, delay=self.retry_delay, backoff=self.retry_backoff)

    def _parse(self, raw: str) -> dict:
        # Strip only the outer ```json ... ``` fence, never backticks inside values.
        cleaned = re.sub(r"^```(?:json)?\s*", "", (raw or "").strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning("%s: failed to parse response as JSON: %s", self.__class__.__name__, (raw or "")[:200])
            raise LLMResponseError(f"Response is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise LLMResponseError(f"Expected a JSON object, got {type(data).__name__}")
        return data
