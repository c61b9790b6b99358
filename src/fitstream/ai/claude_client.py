"""Async Claude API wrapper."""
import asyncio
from dataclasses import dataclass
from typing import Optional

import anthropic


@dataclass
class ClaudeResponse:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ClaudeClient:
    """Thin async wrapper over the Anthropic SDK."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-5", max_retries: int = 3):
        # The SDK retries connection errors, 429s and 5xx responses itself.
        self._client = anthropic.Anthropic(api_key=api_key, max_retries=max_retries)
        self.model = model

    async def complete(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1500,
    ) -> ClaudeResponse:
        """
        Send a message to Claude and return the response text with token usage.
        Runs the sync SDK call in a thread pool executor.
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._complete_sync(user_prompt, system_prompt, max_tokens),
        )

    def _complete_sync(
        self,
        user_prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
    ) -> ClaudeResponse:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        response = self._client.messages.create(**kwargs)
        text = "".join(
            getattr(block, "text", "") for block in response.content
            if getattr(block, "type", "text") == "text"
        )
        usage = getattr(response, "usage", None)
        return ClaudeResponse(
            text=text,
            input_tokens=int(getattr(usage, "input_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "output_tokens", 0) or 0),
            model=getattr(response, "model", None) or self.model,
        )
