"""
Provider — the one interface the brain talks to.

A provider takes a system prompt and a provider-agnostic conversation history
and returns either final text or a list of tool calls to execute. Each backend
translates history to and from its own wire format; the loop around it never
knows which backend it is driving.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

import structlog

from pipet.types import ConversationTurn, ProviderResponse

if TYPE_CHECKING:
    from pipet.config import BrainConfig, ClaudeConfig, GeminiConfig

logger = structlog.get_logger(__name__)


class ProviderError(RuntimeError):
    """A network, auth or backend failure while talking to a provider."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class Provider(Protocol):
    """A remote chat-completion backend with the run_shell tool declared."""

    name: str

    async def send(
        self,
        system_prompt: str,
        history: list[ConversationTurn],
    ) -> ProviderResponse:
        ...


def create_provider(
    brain: BrainConfig,
    claude: ClaudeConfig,
    gemini: GeminiConfig,
) -> Optional[Provider]:
    """
    Pick and build a provider backend.

    ``brain.provider`` forces a backend; when empty, Claude wins if its key is
    set, then Gemini. Returns None when the chosen backend has no key or no
    key is configured at all.
    """
    pick = brain.provider
    if not pick:
        if claude.api_key:
            pick = "claude"
        elif gemini.api_key:
            pick = "gemini"

    if pick == "claude":
        if not claude.api_key:
            logger.error("provider.missing_key", provider="claude", env="ANTHROPIC_API_KEY")
            return None
        # Deferred import: backends pull in their SDKs only when selected.
        from pipet.api.claude import ClaudeProvider

        logger.info("provider.selected", provider="claude", model=claude.model)
        return ClaudeProvider(claude)

    if pick == "gemini":
        if not gemini.api_key:
            logger.error("provider.missing_key", provider="gemini", env="GOOGLE_API_KEY")
            return None
        from pipet.api.gemini import GeminiProvider

        logger.info("provider.selected", provider="gemini", model=gemini.model)
        return GeminiProvider(gemini)

    logger.info("provider.none_configured")
    return None
