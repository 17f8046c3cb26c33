from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from models.generation_result import Completion

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
DEFAULT_MAX_TOKENS = 4096


class BaseChatClient(ABC):
    """
    Abstract base class for chat model clients.

    A client performs exactly one call against exactly one model. It does not
    retry and does not classify errors: provider exceptions propagate
    unchanged so the fallback orchestrator can decide what to do with them.
    """

    provider_name: str = "unknown"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        """
        Initialize the client.

        Args:
            api_key: API key for the model service
            **kwargs: Provider-specific options
                - default_system_prompt: system prompt used when a call passes none
        """
        self.api_key = api_key
        self.default_system_prompt = kwargs.get("default_system_prompt") or DEFAULT_SYSTEM_PROMPT

    @abstractmethod
    async def complete(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> Completion:
        """
        Run one non-streaming completion.

        Args:
            model: Model identifier to call
            messages: Ordered list of {"role": "user"|"assistant", "content": str}
            system_prompt: Optional system prompt (client default when omitted)
            max_tokens: Output token budget

        Returns:
            Completion with the generated text and token usage
        """

    @abstractmethod
    def stream_text(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[str]:
        """
        Stream text fragments for one completion.

        Implementations are async generators; closing the generator early must
        release the underlying provider stream.
        """

    async def close(self) -> None:
        """Release transport resources. Default: nothing to release."""
        return None

    def _system_prompt(self, system_prompt: str | None) -> str:
        return system_prompt or self.default_system_prompt

    @staticmethod
    def _normalize_messages(messages: list[dict[str, str]]) -> list[dict[str, str]]:
        return [{"role": m["role"], "content": m["content"]} for m in messages]
