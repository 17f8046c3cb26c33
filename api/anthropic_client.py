from collections.abc import AsyncIterator

import anthropic

from models.generation_result import Completion, TokenUsage, normalize_finish_reason
from utils.logger import get_logger

from .base_client import DEFAULT_MAX_TOKENS, BaseChatClient

logger = get_logger(__name__)


class AnthropicChatClient(BaseChatClient):
    """
    Claude client built on the async Anthropic SDK.

    SDK-level retries are disabled: model substitution in the fallback
    orchestrator is the only retry mechanism, and every attempt must fail fast
    so it can be classified.
    """

    provider_name = "anthropic"

    def __init__(self, api_key: str, **kwargs):
        """
        Initialize the Anthropic client.

        Args:
            api_key: The Anthropic API key
            **kwargs: Additional keyword arguments
                - default_system_prompt: used when a call passes no system prompt
                - base_url: override the API endpoint
                - client: pre-built ``anthropic.AsyncAnthropic`` (tests)
        """
        super().__init__(api_key, **kwargs)
        self.client = kwargs.get("client") or anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=kwargs.get("base_url"),
            max_retries=0,
        )

    async def complete(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> Completion:
        response = await self.client.messages.create(
            model=model,
            messages=self._normalize_messages(messages),
            system=self._system_prompt(system_prompt),
            max_tokens=max_tokens,
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        usage = getattr(response, "usage", None)
        token_usage = TokenUsage(
            prompt_tokens=getattr(usage, "input_tokens", 0) or 0,
            completion_tokens=getattr(usage, "output_tokens", 0) or 0,
        )

        logger.debug(
            "Anthropic completion received",
            extra={
                "extra_fields": {
                    "model": model,
                    "stop_reason": getattr(response, "stop_reason", None),
                    "tokens": token_usage.total_tokens,
                }
            },
        )

        return Completion(
            text=text,
            model=getattr(response, "model", None) or model,
            token_usage=token_usage,
            finish_reason=normalize_finish_reason(getattr(response, "stop_reason", None)),
        )

    async def stream_text(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[str]:
        stream = await self.client.messages.create(
            model=model,
            messages=self._normalize_messages(messages),
            system=self._system_prompt(system_prompt),
            max_tokens=max_tokens,
            stream=True,
        )
        try:
            async for event in stream:
                if event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield event.delta.text
        finally:
            await stream.close()

    async def close(self) -> None:
        await self.client.close()
