# pipet/config.py
"""
Configuration for Pipet.

All configuration flows through this module. Values are loaded from environment
variables (via .env file) and validated with Pydantic. Secrets such as provider
API keys are only ever read from the environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import structlog
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

# Resolve .env relative to the project root (one level above pipet/ package),
# so the config works regardless of the user's current working directory.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class BrainConfig(BaseSettings):
    """Provider selection, tool-loop bound and request rate limit."""

    # "claude", "gemini", or "" to auto-detect from whichever key is set
    provider: Literal["", "claude", "gemini"] = Field("", alias="AI_PROVIDER")
    max_tool_iterations: int = Field(5, alias="PIPET_MAX_TOOL_ITERATIONS")
    rate_limit: int = Field(10, alias="PIPET_RATE_LIMIT")
    rate_window_seconds: float = Field(60.0, alias="PIPET_RATE_WINDOW_SECONDS")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def normalize_limits(self) -> "BrainConfig":
        self.max_tool_iterations = max(0, int(self.max_tool_iterations))
        self.rate_limit = max(1, int(self.rate_limit))
        self.rate_window_seconds = max(1.0, float(self.rate_window_seconds))
        return self


class ClaudeConfig(BaseSettings):
    """Configuration for the Anthropic Claude backend."""

    api_key: Optional[str] = Field(None, alias="ANTHROPIC_API_KEY")
    model: str = Field("claude-sonnet-4-5-20250929", alias="PIPET_CLAUDE_MODEL")
    max_tokens: int = Field(1024, alias="PIPET_MAX_TOKENS")
    request_timeout_seconds: float = Field(120.0, alias="PIPET_REQUEST_TIMEOUT_SECONDS")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_runtime_limits(self) -> "ClaudeConfig":
        self.api_key = (self.api_key or "").strip() or None
        self.max_tokens = max(1, int(self.max_tokens))
        self.request_timeout_seconds = max(1.0, float(self.request_timeout_seconds))
        return self


class GeminiConfig(BaseSettings):
    """Configuration for the Google Gemini backend."""

    api_key: Optional[str] = Field(None, alias="GOOGLE_API_KEY")
    model: str = Field("gemini-2.5-flash", alias="PIPET_GEMINI_MODEL")
    max_tokens: int = Field(1024, alias="PIPET_MAX_TOKENS")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_runtime_limits(self) -> "GeminiConfig":
        self.api_key = (self.api_key or "").strip() or None
        self.max_tokens = max(1, int(self.max_tokens))
        return self


class ShellConfig(BaseSettings):
    """Limits for the command sandbox."""

    timeout_seconds: float = Field(10.0, alias="PIPET_SHELL_TIMEOUT")
    max_output_bytes: int = Field(10240, alias="PIPET_SHELL_MAX_OUTPUT_BYTES")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_limits(self) -> "ShellConfig":
        self.timeout_seconds = max(0.1, float(self.timeout_seconds))
        self.max_output_bytes = max(1, int(self.max_output_bytes))
        return self


class PetConfig(BaseSettings):
    """Where the pet lives on disk and how often it is saved."""

    state_path: Path = Field(Path("state.json"), alias="PIPET_STATE_PATH")
    save_interval_seconds: float = Field(300.0, alias="PIPET_SAVE_INTERVAL")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_interval(self) -> "PetConfig":
        self.save_interval_seconds = max(1.0, float(self.save_interval_seconds))
        return self


class PipetConfig:
    """
    Master configuration that composes all subsystem configs.

    Every component receives its config from here. No global state.
    """

    def __init__(self) -> None:
        self.brain = BrainConfig()
        self.claude = ClaudeConfig()
        self.gemini = GeminiConfig()
        self.shell = ShellConfig()
        self.pet = PetConfig()

        logger.debug(
            "config.loaded",
            provider=self.brain.provider or "auto",
            claude_configured=self.claude.api_key is not None,
            gemini_configured=self.gemini.api_key is not None,
            state_path=str(self.pet.state_path),
        )
