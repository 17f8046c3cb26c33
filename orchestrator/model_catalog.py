from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from orchestrator.fallback_types import (
    DEFAULT_FALLBACK_LADDER,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT_MS,
    AttemptRecord,
    FallbackConfig,
    FallbackReason,
)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "config" / "model_catalog.yaml"
VALID_COST_TIERS = {"low", "medium", "high"}

_REASON_PHRASES = {
    FallbackReason.OVERLOADED: "due to high API demand",
    FallbackReason.TIMEOUT: "due to slow response time",
    FallbackReason.RATE_LIMIT: "due to rate limiting",
}


@dataclass(frozen=True)
class ModelInfo:
    model: str
    display_name: str
    description: str
    cost_tier: str
    max_tokens: int
    strengths: list[str] = field(default_factory=list)
    best_for: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "display_name": self.display_name,
            "description": self.description,
            "cost_tier": self.cost_tier,
            "max_tokens": self.max_tokens,
            "strengths": list(self.strengths),
            "best_for": list(self.best_for),
        }


@dataclass
class ModelCatalog:
    _models: dict[str, ModelInfo]
    _defaults: dict[str, Any]

    @classmethod
    def from_yaml(cls, path: str | Path | None = None) -> "ModelCatalog":
        catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
        if not catalog_path.exists():
            raise ValueError(f"Model catalog not found at {catalog_path}")

        data = yaml.safe_load(catalog_path.read_text(encoding="utf-8"))
        if not data or "models" not in data:
            raise ValueError("Invalid model catalog: missing models")
        if not isinstance(data["models"], dict):
            raise ValueError("Invalid model catalog: models must be a mapping")

        models: dict[str, ModelInfo] = {}
        for model_id, mdata in data["models"].items():
            required = ["display_name", "cost_tier", "max_tokens"]
            if not isinstance(mdata, dict) or any(key not in mdata for key in required):
                raise ValueError(f"Missing required fields for model {model_id}")
            cost_tier = str(mdata["cost_tier"]).lower()
            if cost_tier not in VALID_COST_TIERS:
                raise ValueError(f"Invalid cost_tier {cost_tier!r} for model {model_id}")
            models[model_id] = ModelInfo(
                model=model_id,
                display_name=str(mdata["display_name"]),
                description=str(mdata.get("description", "")),
                cost_tier=cost_tier,
                max_tokens=int(mdata["max_tokens"]),
                strengths=list(mdata.get("strengths", [])),
                best_for=list(mdata.get("best_for", [])),
            )

        defaults = data.get("defaults", {}) or {}
        ladder = defaults.get("fallback_ladder", list(DEFAULT_FALLBACK_LADDER))
        unknown = [m for m in ladder if m not in models]
        if unknown:
            raise ValueError(f"Fallback ladder references unknown models: {unknown}")
        default_model = defaults.get("default_model")
        if default_model and default_model not in models:
            raise ValueError(f"default_model references unknown model: {default_model}")

        return cls(_models=models, _defaults=defaults)

    def defaults(self) -> dict[str, Any]:
        return self._defaults

    def get(self, model: str) -> ModelInfo | None:
        return self._models.get((model or "").strip())

    def supports_fallback(self, model: str) -> bool:
        return self.get(model) is not None

    def list_models(self) -> list[ModelInfo]:
        return list(self._models.values())

    def max_tokens_for(self, model: str) -> int:
        info = self.get(model)
        if info is not None:
            return info.max_tokens
        return int(self._defaults.get("max_tokens", 4096))

    def display_name(self, model: str) -> str:
        info = self.get(model)
        return info.display_name if info else model

    def default_model(self) -> str:
        default = self._defaults.get("default_model")
        if default:
            return default
        return self.default_config().ladder[0]

    def default_config(self) -> FallbackConfig:
        return FallbackConfig(
            ladder=tuple(self._defaults.get("fallback_ladder", DEFAULT_FALLBACK_LADDER)),
            timeout_ms=int(self._defaults.get("timeout_ms", DEFAULT_TIMEOUT_MS)),
            max_attempts=int(self._defaults.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
        )

    def explain_fallback(self, record: AttemptRecord) -> str:
        """User-facing sentence describing a model substitution."""
        reason = _REASON_PHRASES.get(record.reason, "due to an error")
        return (
            f"Switched from {self.display_name(record.original_model)} "
            f"to {self.display_name(record.model)} {reason}"
        )
