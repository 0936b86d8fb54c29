"""
Core data types shared across Pipet subsystems.

These are the provider-agnostic conversation containers. Each provider
backend translates them to and from its own wire format; the brain's loop
only ever sees these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass
class ToolCall:
    """A request from the model to invoke a tool."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """The outcome of a tool invocation, sent back to the model."""

    tool_use_id: str
    content: str
    is_error: bool = False


@dataclass
class ConversationTurn:
    """One provider-agnostic conversation turn.

    A turn is a plain message, an assistant turn proposing tool calls, or a
    user turn carrying only tool results. Calls and results never share a turn.
    """

    role: Literal["user", "assistant"]
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Unknown conversation role: {self.role!r}")
        if self.tool_calls and self.tool_results:
            raise ValueError("A turn cannot carry both tool calls and tool results")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("Only assistant turns may propose tool calls")
        if self.tool_results and self.role != "user":
            raise ValueError("Tool results must be carried by a user turn")

    @classmethod
    def user(cls, text: str) -> ConversationTurn:
        return cls(role="user", text=text)

    @classmethod
    def results(cls, results: list[ToolResult]) -> ConversationTurn:
        return cls(role="user", tool_results=list(results))


@dataclass
class ProviderResponse:
    """What a provider returns from a single send() call.

    ``done`` is True when the model is finished and ``text`` is final. When
    False, the caller must execute ``tool_calls`` and resubmit their results.
    """

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    done: bool = True
