"""
Claude backend — the Anthropic Messages API behind the Provider interface.

History translation:
    user text       -> one text block
    tool results    -> tool_result blocks in a single user message
    assistant turn  -> optional text block followed by tool_use blocks

The turn is finished unless the API stops with ``tool_use``.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import anthropic
import structlog

from pipet.api.provider import ProviderError
from pipet.config import ClaudeConfig
from pipet.tools.registry import RUN_SHELL_TOOL
from pipet.types import ConversationTurn, ProviderResponse, ToolCall

logger = structlog.get_logger(__name__)


class ClaudeProvider:
    """Sends conversations to Claude with the run_shell tool declared."""

    name = "claude"

    def __init__(
        self,
        config: ClaudeConfig,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        if client is None:
            if not config.api_key:
                raise ValueError("ClaudeProvider requires ANTHROPIC_API_KEY")
            # Retries are the caller's policy, not the SDK's.
            client = anthropic.AsyncAnthropic(
                api_key=config.api_key,
                max_retries=0,
                timeout=config.request_timeout_seconds,
            )
        self._client = client
        self._model = config.model
        self._max_tokens = config.max_tokens
        self._tools = [RUN_SHELL_TOOL.to_api_format()]

        # Telemetry
        self._total_calls = 0
        self._total_input_tokens = 0
        self._total_output_tokens = 0

        logger.info("claude_provider.initialized", model=self._model, max_tokens=self._max_tokens)

    async def send(
        self,
        system_prompt: str,
        history: list[ConversationTurn],
    ) -> ProviderResponse:
        start_time = time.monotonic()
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=system_prompt,
                messages=self.to_messages(history),
                tools=self._tools,
            )
        except anthropic.APIConnectionError as e:
            logger.error(
                "claude_provider.connection_error",
                error=str(e),
                base_url=str(getattr(self._client, "base_url", "")),
            )
            raise ProviderError(self.name, f"connection error: {e}") from e
        except anthropic.RateLimitError as e:
            logger.warning("claude_provider.rate_limited", error=str(e))
            raise ProviderError(self.name, f"rate limited: {e}") from e
        except anthropic.APIError as e:
            logger.error(
                "claude_provider.api_error",
                error=str(e),
                status=getattr(e, "status_code", None),
            )
            raise ProviderError(self.name, f"API error: {e}") from e

        self._total_calls += 1
        usage = getattr(response, "usage", None)
        if usage is not None:
            self._total_input_tokens += usage.input_tokens or 0
            self._total_output_tokens += usage.output_tokens or 0

        result = self.from_message(response)
        logger.debug(
            "claude_provider.response",
            stop_reason=response.stop_reason,
            tool_calls=len(result.tool_calls),
            elapsed_seconds=round(time.monotonic() - start_time, 2),
        )
        return result

    @staticmethod
    def to_messages(history: list[ConversationTurn]) -> list[dict[str, Any]]:
        """Translate agnostic turns into Messages API ``messages``."""
        messages: list[dict[str, Any]] = []
        for turn in history:
            if turn.role == "user":
                if turn.tool_results:
                    content = [
                        {
                            "type": "tool_result",
                            "tool_use_id": result.tool_use_id,
                            "content": result.content,
                            "is_error": result.is_error,
                        }
                        for result in turn.tool_results
                    ]
                else:
                    content = [{"type": "text", "text": turn.text}]
                messages.append({"role": "user", "content": content})
                continue

            blocks: list[dict[str, Any]] = []
            if turn.text:
                blocks.append({"type": "text", "text": turn.text})
            for call in turn.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": call.input,
                })
            if blocks:
                messages.append({"role": "assistant", "content": blocks})
        return messages

    @staticmethod
    def from_message(response: Any) -> ProviderResponse:
        """Translate a Messages API response back into a ProviderResponse."""
        text_parts: list[str] = []
        calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, input=block.input))
        return ProviderResponse(
            text="\n".join(text_parts),
            tool_calls=calls,
            done=response.stop_reason != "tool_use",
        )

    @property
    def telemetry(self) -> dict[str, Any]:
        return {
            "total_calls": self._total_calls,
            "total_input_tokens": self._total_input_tokens,
            "total_output_tokens": self._total_output_tokens,
        }
