import asyncio

import pytest
from dotenv import load_dotenv

from api.base_client import BaseChatClient
from models.generation_result import Completion, TokenUsage
from orchestrator.fallback_types import FallbackConfig
from orchestrator.model_catalog import ModelCatalog

# Load environment variables from .env file for tests
load_dotenv()

M1, M2, M3, M4 = "model-1", "model-2", "model-3", "model-4"

# behavior marker: the call hangs well past any test timeout
SLOW = object()


class StatusError(Exception):
    """Provider error carrying an HTTP status, like SDK status errors do."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class FakeChatClient(BaseChatClient):
    """
    Scripted chat client.

    ``behaviors`` maps a model id to what a call against it does:
    an exception instance is raised, ``SLOW`` hangs, a string is the reply,
    and a list is streamed fragment by fragment (exceptions inside the list
    are raised at that point of the stream). Unlisted models reply
    ``"reply from <model>"``.
    """

    provider_name = "fake"

    def __init__(self, behaviors=None):
        super().__init__(api_key="test-key")
        self.behaviors = dict(behaviors or {})
        self.calls: list[str] = []
        self.max_tokens_seen: dict[str, int] = {}
        self.streams_opened = 0
        self.streams_closed = 0
        self.closed = False

    def _behavior(self, model):
        return self.behaviors.get(model, f"reply from {model}")

    async def complete(self, *, model, messages, system_prompt=None, max_tokens=4096):
        self.calls.append(model)
        self.max_tokens_seen[model] = max_tokens
        behavior = self._behavior(model)
        if isinstance(behavior, BaseException):
            raise behavior
        if behavior is SLOW:
            await asyncio.sleep(30)
        text = behavior if isinstance(behavior, str) else "".join(
            f for f in behavior if isinstance(f, str)
        )
        return Completion(
            text=text,
            model=model,
            token_usage=TokenUsage(prompt_tokens=3, completion_tokens=5),
            finish_reason="stop",
        )

    async def stream_text(self, *, model, messages, system_prompt=None, max_tokens=4096):
        self.calls.append(model)
        self.max_tokens_seen[model] = max_tokens
        self.streams_opened += 1
        behavior = self._behavior(model)
        try:
            if isinstance(behavior, BaseException):
                raise behavior
            if behavior is SLOW:
                await asyncio.sleep(30)
            fragments = [behavior] if isinstance(behavior, str) else behavior
            for fragment in fragments:
                if isinstance(fragment, BaseException):
                    raise fragment
                if fragment is SLOW:
                    await asyncio.sleep(30)
                    continue
                yield fragment
        finally:
            self.streams_closed += 1

    async def close(self):
        self.closed = True


def overloaded(message="Service unavailable"):
    return StatusError(message, 503)


def user_messages(text="Hello, duck!"):
    return [{"role": "user", "content": text}]


async def collect(stream):
    return [event async for event in stream]


@pytest.fixture
def messages():
    return user_messages()


@pytest.fixture
def ladder_config():
    return FallbackConfig(ladder=(M1, M2, M3, M4), timeout_ms=200, max_attempts=4)


@pytest.fixture(scope="session")
def catalog():
    return ModelCatalog.from_yaml()


@pytest.fixture
def mock_env(monkeypatch):
    """Fixture to mock environment variables for testing."""
    env_vars = {
        "ANTHROPIC_API_KEY": "test-anthropic-key",
        "API_KEYS": "dev-key-1,dev-key-2",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    for key in ("FALLBACK_MODELS", "FALLBACK_TIMEOUT_MS", "FALLBACK_MAX_ATTEMPTS", "DEFAULT_MODEL"):
        monkeypatch.delenv(key, raising=False)
    return env_vars
