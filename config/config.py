import os
from pathlib import Path

from dotenv import load_dotenv

from orchestrator.fallback_types import FallbackConfig
from orchestrator.model_catalog import ModelCatalog


def _int_env(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


class Config:
    """Configuration management for the application."""

    def __init__(self):
        """Initialize configuration with environment variables."""
        # Load environment variables from .env file if it exists
        env_path = Path(__file__).parent.parent / ".env"
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)

        # API Configuration
        self.ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
        self.ANTHROPIC_BASE_URL = os.getenv("ANTHROPIC_BASE_URL") or None

        # Model Configuration
        self.MODEL_CATALOG_PATH = os.getenv("MODEL_CATALOG_PATH") or None
        self.DEFAULT_MODEL = os.getenv("DEFAULT_MODEL") or None
        self.DEFAULT_SYSTEM_PROMPT = os.getenv(
            "DEFAULT_SYSTEM_PROMPT", "You are a helpful AI assistant."
        )

        # Fallback Configuration (unset values fall through to the catalog defaults)
        models = os.getenv("FALLBACK_MODELS", "")
        self.FALLBACK_MODELS = [m.strip() for m in models.split(",") if m.strip()]
        self.FALLBACK_TIMEOUT_MS = _int_env("FALLBACK_TIMEOUT_MS")
        self.FALLBACK_MAX_ATTEMPTS = _int_env("FALLBACK_MAX_ATTEMPTS")

    def load_catalog(self) -> ModelCatalog:
        return ModelCatalog.from_yaml(self.MODEL_CATALOG_PATH)

    def fallback_config(self, catalog: ModelCatalog) -> FallbackConfig:
        """
        Build the default FallbackConfig: catalog defaults overridden by env.

        Raises:
            ValueError: if the resulting ladder is invalid or names unknown models
        """
        base = catalog.default_config()
        ladder = tuple(self.FALLBACK_MODELS) or base.ladder
        unknown = [m for m in ladder if not catalog.supports_fallback(m)]
        if unknown:
            raise ValueError(f"FALLBACK_MODELS references unknown models: {unknown}")
        return FallbackConfig(
            ladder=ladder,
            timeout_ms=(
                self.FALLBACK_TIMEOUT_MS
                if self.FALLBACK_TIMEOUT_MS is not None
                else base.timeout_ms
            ),
            max_attempts=(
                self.FALLBACK_MAX_ATTEMPTS
                if self.FALLBACK_MAX_ATTEMPTS is not None
                else base.max_attempts
            ),
        )

    def default_model(self, catalog: ModelCatalog, config: FallbackConfig) -> str:
        model = self.DEFAULT_MODEL or catalog.default_model()
        if not config.contains(model):
            return config.ladder[0]
        return model

    def validate(self) -> list[str]:
        """
        Validate that required configuration is present.

        Returns:
            list of human-readable problems (empty when valid)
        """
        problems = []
        if not self.ANTHROPIC_API_KEY:
            problems.append("ANTHROPIC_API_KEY is not set. Please set it in the .env file.")
        if self.FALLBACK_TIMEOUT_MS is not None and self.FALLBACK_TIMEOUT_MS <= 0:
            problems.append("FALLBACK_TIMEOUT_MS must be > 0")
        if self.FALLBACK_MAX_ATTEMPTS is not None and self.FALLBACK_MAX_ATTEMPTS < 1:
            problems.append("FALLBACK_MAX_ATTEMPTS must be >= 1")
        return problems
