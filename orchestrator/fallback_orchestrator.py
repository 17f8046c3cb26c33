"""
FallbackOrchestrator - resilient text generation over a ladder of Claude models.

Each logical request walks the configured ladder strictly forward:

    Attempting(start, 1) -> Succeeded
    Attempting(m, n)     -> Attempting(next(m), n + 1)   overload/timeout, budget left
    Attempting(m, n)     -> Failed                      anything else

Every attempt races the provider call against ``timeout_ms``. There is no
delay between attempts and no state survives a request, so one orchestrator
instance can serve any number of concurrent callers.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncIterator

from api.base_client import DEFAULT_MAX_TOKENS, BaseChatClient
from models.generation_result import GenerationResult
from models.stream_event import StreamEvent
from orchestrator.error_classifier import classify_error
from orchestrator.errors import AttemptTimeoutError, FallbackFailedError
from orchestrator.fallback_manager import FallbackManager
from orchestrator.fallback_types import (
    AttemptRecord,
    ErrorClass,
    FallbackConfig,
    FallbackReason,
    NextAction,
    StopReason,
)
from orchestrator.model_catalog import ModelCatalog
from utils.logger import get_logger

logger = get_logger(__name__)


class FallbackOrchestrator:
    def __init__(
        self,
        client: BaseChatClient,
        config: FallbackConfig | None = None,
        fallback_manager: FallbackManager | None = None,
        catalog: ModelCatalog | None = None,
        default_model: str | None = None,
    ):
        """
        Args:
            client: Chat client performing single-model calls
            config: Default FallbackConfig (catalog defaults, then built-in defaults)
            fallback_manager: Decision policy after a failed attempt
            catalog: Model catalog used for per-model max_tokens
            default_model: Starting model when a call names none (first ladder entry otherwise)
        """
        self.client = client
        self.catalog = catalog
        self.config = config or (catalog.default_config() if catalog else FallbackConfig())
        self.fallback_manager = fallback_manager or FallbackManager()
        self.default_model = default_model

    # ---------- helpers ----------

    def _resolve(
        self,
        messages: list[dict[str, str]],
        starting_model: str | None,
        config: FallbackConfig | None,
    ) -> tuple[FallbackConfig, str]:
        cfg = config or self.config
        if not messages:
            raise ValueError("messages must not be empty")
        model = starting_model
        if model is None:
            model = self.default_model if cfg.contains(self.default_model) else cfg.ladder[0]
        if not cfg.contains(model):
            raise ValueError(f"Starting model {model!r} is not in the fallback ladder")
        return cfg, model

    def _max_tokens(self, model: str) -> int:
        if self.catalog is not None:
            return self.catalog.max_tokens_for(model)
        return DEFAULT_MAX_TOKENS

    @staticmethod
    def _as_attempt_error(exc: BaseException, model: str, cfg: FallbackConfig) -> BaseException:
        if not isinstance(exc, asyncio.TimeoutError) or isinstance(exc, AttemptTimeoutError):
            return exc
        # wait_for expiry carries no message; a provider's own TimeoutError keeps its text
        if str(exc):
            return exc
        timeout_error = AttemptTimeoutError(model, cfg.timeout_ms)
        timeout_error.__cause__ = exc
        return timeout_error

    def _record_fallback(
        self,
        *,
        request_id: str,
        starting_model: str,
        failed_model: str,
        next_model: str,
        attempt: int,
        reason: str,
        error: BaseException,
    ) -> AttemptRecord:
        record = AttemptRecord(
            model=next_model,
            attempt=attempt,
            reason=FallbackReason(reason),
            original_model=starting_model,
            failed_model=failed_model,
            error_message=str(error) or type(error).__name__,
        )
        logger.warning(
            "Model fallback triggered",
            extra={
                "extra_fields": {
                    "request_id": request_id,
                    "original_model": record.original_model,
                    "fallback_model": record.model,
                    "failed_model": failed_model,
                    "attempt": record.attempt,
                    "reason": record.reason.value,
                    "error_type": type(error).__name__,
                }
            },
        )
        return record

    def _log_failure(
        self,
        *,
        request_id: str,
        model: str,
        attempt: int,
        error: BaseException,
        error_class: ErrorClass,
        stop_reason: str,
        history: list[AttemptRecord],
    ) -> None:
        logger.error(
            f"Generation failed on {model}: {stop_reason}",
            extra={
                "extra_fields": {
                    "request_id": request_id,
                    "model": model,
                    "attempt": attempt,
                    "error_class": error_class.value,
                    "stop_reason": stop_reason,
                    "error_type": type(error).__name__,
                    "error_message": str(error),
                    "fallback_count": len(history),
                }
            },
        )

    # ---------- public API ----------

    async def generate(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        starting_model: str | None = None,
        config: FallbackConfig | None = None,
    ) -> GenerationResult:
        """
        Generate a complete response, falling back down the ladder as needed.

        Raises:
            ValueError: empty messages or a starting model outside the ladder
            FallbackFailedError: non-recoverable error, or retry budget/ladder exhausted
        """
        cfg, starting = self._resolve(messages, starting_model, config)
        request_id = str(uuid.uuid4())
        start_time = time.monotonic()

        current = starting
        attempt = 1
        history: list[AttemptRecord] = []

        while True:
            try:
                completion = await asyncio.wait_for(
                    self.client.complete(
                        model=current,
                        messages=messages,
                        system_prompt=system_prompt,
                        max_tokens=self._max_tokens(current),
                    ),
                    timeout=cfg.timeout_s,
                )
            except Exception as exc:
                error = self._as_attempt_error(exc, current, cfg)
            else:
                latency_ms = int((time.monotonic() - start_time) * 1000)
                logger.info(
                    "Generation succeeded",
                    extra={
                        "extra_fields": {
                            "request_id": request_id,
                            "model": current,
                            "attempts": attempt,
                            "latency_ms": latency_ms,
                            "fallback_count": len(history),
                            "tokens": completion.token_usage.total_tokens,
                        }
                    },
                )
                return GenerationResult(
                    request_id=request_id,
                    text=completion.text,
                    model=current,
                    attempts=attempt,
                    latency_ms=latency_ms,
                    token_usage=completion.token_usage,
                    finish_reason=completion.finish_reason,
                    fallback=history[-1] if history else None,
                    fallback_history=tuple(history),
                )

            error_class = classify_error(error)
            decision = self.fallback_manager.decide(
                current_model=current, error_class=error_class, attempt=attempt, config=cfg
            )
            if decision.action == NextAction.FALLBACK:
                history.append(
                    self._record_fallback(
                        request_id=request_id,
                        starting_model=starting,
                        failed_model=current,
                        next_model=decision.next_model,
                        attempt=attempt + 1,
                        reason=decision.reason,
                        error=error,
                    )
                )
                current = decision.next_model
                attempt += 1
                continue

            self._log_failure(
                request_id=request_id,
                model=current,
                attempt=attempt,
                error=error,
                error_class=error_class,
                stop_reason=decision.reason,
                history=history,
            )
            raise FallbackFailedError(
                error,
                error_class=error_class,
                stop_reason=StopReason(decision.reason),
                model=current,
                attempts=attempt,
                fallback_history=history,
            ) from error

    async def generate_stream(
        self,
        messages: list[dict[str, str]],
        system_prompt: str | None = None,
        starting_model: str | None = None,
        config: FallbackConfig | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a response as StreamEvents.

        The per-attempt timeout bounds the wait for the first fragment and then
        each following fragment. Model failures never raise: the stream ends
        with one ``error`` event instead. A failure after content was emitted
        is terminal, since switching models would splice two answers together.

        Raises:
            ValueError: empty messages or a starting model outside the ladder
                (raised on the first ``__anext__``)
        """
        cfg, starting = self._resolve(messages, starting_model, config)
        request_id = str(uuid.uuid4())

        current = starting
        attempt = 1
        history: list[AttemptRecord] = []

        while True:
            fragments = self.client.stream_text(
                model=current,
                messages=messages,
                system_prompt=system_prompt,
                max_tokens=self._max_tokens(current),
            )
            started = False
            try:
                while True:
                    try:
                        text = await asyncio.wait_for(fragments.__anext__(), timeout=cfg.timeout_s)
                    except StopAsyncIteration:
                        break
                    if not text:
                        continue
                    if not started:
                        started = True
                        if history:
                            yield StreamEvent.fallback_event(history[-1], tuple(history))
                    yield StreamEvent.content_event(text, model=current, attempts=attempt)
            except Exception as exc:
                error = self._as_attempt_error(exc, current, cfg)
            else:
                if history and not started:
                    yield StreamEvent.fallback_event(history[-1], tuple(history))
                logger.info(
                    "Streaming generation succeeded",
                    extra={
                        "extra_fields": {
                            "request_id": request_id,
                            "model": current,
                            "attempts": attempt,
                            "fallback_count": len(history),
                        }
                    },
                )
                yield StreamEvent.complete_event(
                    model=current, attempts=attempt, history=tuple(history)
                )
                return
            finally:
                await fragments.aclose()

            error_class = classify_error(error)
            if started:
                stop_reason = StopReason.PARTIAL_CONTENT.value
            else:
                decision = self.fallback_manager.decide(
                    current_model=current, error_class=error_class, attempt=attempt, config=cfg
                )
                if decision.action == NextAction.FALLBACK:
                    history.append(
                        self._record_fallback(
                            request_id=request_id,
                            starting_model=starting,
                            failed_model=current,
                            next_model=decision.next_model,
                            attempt=attempt + 1,
                            reason=decision.reason,
                            error=error,
                        )
                    )
                    current = decision.next_model
                    attempt += 1
                    continue
                stop_reason = decision.reason

            self._log_failure(
                request_id=request_id,
                model=current,
                attempt=attempt,
                error=error,
                error_class=error_class,
                stop_reason=stop_reason,
                history=history,
            )
            yield StreamEvent.error_event(
                str(error) or type(error).__name__,
                model=current,
                attempts=attempt,
                history=tuple(history),
            )
            return
