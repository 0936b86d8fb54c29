"""
The Brain — the pet's bounded tool-use loop.

The pattern is deliberately simple:

    for round in range(max_tool_iterations + 1):
        response = provider.send(system_prompt, history)
        if response.done:
            return response.text
        history.append(assistant turn with the tool calls)
        history.append(one user turn with every tool result)
    return "got carried away" fallback

Rate limiting happens once, before the loop. The system prompt is rendered
from a fresh pet snapshot on every call. Tool failures never abort the loop;
they are handed back to the model as error results so it can adapt. Provider
failures abort the call and propagate to the caller, who decides on retries.

Each ``ask`` owns its own history, so concurrent calls from independent
conversations never see each other's turns. They do share one rate budget.
"""

from __future__ import annotations

import time
from typing import Optional

import structlog

from pipet.api.provider import Provider, ProviderError, create_provider
from pipet.config import PipetConfig
from pipet.harness.safety import RateLimiter
from pipet.pet.state import PetState
from pipet.prompt import build_system_prompt
from pipet.tools.registry import RUN_SHELL_TOOL, validate_tool_input
from pipet.tools.shell import CommandError, CommandSandbox
from pipet.types import ConversationTurn, ToolCall, ToolResult

logger = structlog.get_logger(__name__)

RATE_LIMITED_REPLY = (
    "I need a moment to catch my breath... too many messages! Try again shortly."
)
MAX_ITERATIONS_REPLY = (
    "I got a bit carried away investigating... let me summarize what I found so far."
)


class Brain:
    """
    Drives one conversation at a time per call: prompt, provider, tools, repeat.

    The brain holds no state across calls other than its rate limiter.
    """

    def __init__(
        self,
        provider: Provider,
        state: PetState,
        sandbox: CommandSandbox,
        rate_limiter: RateLimiter,
        max_tool_iterations: int = 5,
    ):
        self._provider = provider
        self._state = state
        self._sandbox = sandbox
        self._rate_limiter = rate_limiter
        self._max_tool_iterations = max(0, int(max_tool_iterations))

        logger.info(
            "brain.initialized",
            provider=getattr(provider, "name", type(provider).__name__),
            max_tool_iterations=self._max_tool_iterations,
        )

    async def ask(self, user_text: str) -> str:
        """
        Answer ``user_text``, running any shell commands the model asks for.

        Returns the model's final text, the rate-limit reply, or the
        max-iterations fallback. Raises ProviderError when the provider fails.
        """
        if not self._rate_limiter.allow():
            return RATE_LIMITED_REPLY

        system_prompt = build_system_prompt(self._state.snapshot())
        history = [ConversationTurn.user(user_text)]
        start_time = time.monotonic()
        tool_call_count = 0

        logger.info("brain.ask_started", message_length=len(user_text))

        for iteration in range(1, self._max_tool_iterations + 2):
            try:
                response = await self._provider.send(system_prompt, list(history))
            except ProviderError as e:
                logger.error("brain.provider_error", error=str(e), iteration=iteration)
                raise

            # A non-final response with nothing to run is as final as it gets
            if response.done or not response.tool_calls:
                logger.info(
                    "brain.ask_complete",
                    iterations=iteration,
                    tool_calls=tool_call_count,
                    response_length=len(response.text),
                    elapsed=round(time.monotonic() - start_time, 2),
                )
                return response.text

            history.append(ConversationTurn(
                role="assistant",
                text=response.text,
                tool_calls=list(response.tool_calls),
            ))

            # Strictly sequential, in the order the provider listed them
            results: list[ToolResult] = []
            for call in response.tool_calls:
                tool_call_count += 1
                results.append(await self._execute_tool(call))
            history.append(ConversationTurn.results(results))

        logger.warning(
            "brain.max_tool_iterations",
            max=self._max_tool_iterations,
            tool_calls=tool_call_count,
        )
        return MAX_ITERATIONS_REPLY

    async def _execute_tool(self, call: ToolCall) -> ToolResult:
        """Run one tool call. Every outcome becomes a ToolResult with the call's id."""
        if call.name != RUN_SHELL_TOOL.name:
            logger.warning("brain.unknown_tool", tool=call.name, tool_use_id=call.id)
            return ToolResult(call.id, f"unknown tool: {call.name}", is_error=True)

        validation_error = validate_tool_input(RUN_SHELL_TOOL.input_schema, call.input)
        if validation_error:
            return ToolResult(call.id, f"invalid input: {validation_error}", is_error=True)

        command = call.input["command"]
        logger.info("brain.executing_shell_command", command=command, tool_use_id=call.id)
        try:
            output = await self._sandbox.run(command)
        except CommandError as e:
            return ToolResult(call.id, f"Error: {e}\nOutput: {e.output}", is_error=True)
        except Exception as e:
            logger.error("brain.tool_crashed", tool=call.name, error=f"{type(e).__name__}: {e}")
            return ToolResult(call.id, f"Error: {type(e).__name__}: {e}", is_error=True)
        return ToolResult(call.id, output)


def create_brain(
    config: PipetConfig,
    state: PetState,
    sandbox: Optional[CommandSandbox] = None,
    provider: Optional[Provider] = None,
) -> Optional[Brain]:
    """
    Wire a Brain from configuration.

    Returns None when no provider credential is configured; callers must
    handle the absent brain themselves.
    """
    if provider is None:
        provider = create_provider(config.brain, config.claude, config.gemini)
    if provider is None:
        logger.info("brain.disabled", reason="no provider configured")
        return None

    if sandbox is None:
        sandbox = CommandSandbox(
            timeout=config.shell.timeout_seconds,
            max_output_bytes=config.shell.max_output_bytes,
        )
    rate_limiter = RateLimiter(
        max_requests=config.brain.rate_limit,
        window_seconds=config.brain.rate_window_seconds,
    )
    return Brain(
        provider=provider,
        state=state,
        sandbox=sandbox,
        rate_limiter=rate_limiter,
        max_tool_iterations=config.brain.max_tool_iterations,
    )
