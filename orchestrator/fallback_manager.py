from orchestrator.fallback_types import (
    ErrorClass,
    FallbackConfig,
    FallbackDecision,
    FallbackReason,
    NextAction,
    StopReason,
)

_REASON_BY_CLASS = {
    ErrorClass.OVERLOAD: FallbackReason.OVERLOADED,
    ErrorClass.TIMEOUT: FallbackReason.TIMEOUT,
}


class FallbackManager:
    """Decides, after a failed attempt, whether to move down the ladder or stop."""

    def decide(
        self,
        *,
        current_model: str,
        error_class: ErrorClass,
        attempt: int,
        config: FallbackConfig,
    ) -> FallbackDecision:
        if error_class not in _REASON_BY_CLASS:
            return FallbackDecision(
                action=NextAction.STOP, next_model=None, reason=StopReason.NON_RECOVERABLE.value
            )

        if attempt >= config.max_attempts:
            return FallbackDecision(
                action=NextAction.STOP,
                next_model=None,
                reason=StopReason.MAX_ATTEMPTS.value,
                details={"error_class": error_class.value},
            )

        next_model = config.next_model(current_model)
        if next_model is None:
            return FallbackDecision(
                action=NextAction.STOP,
                next_model=None,
                reason=StopReason.LADDER_EXHAUSTED.value,
                details={"error_class": error_class.value},
            )

        return FallbackDecision(
            action=NextAction.FALLBACK,
            next_model=next_model,
            reason=_REASON_BY_CLASS[error_class].value,
        )
