"""
Shared fixtures for the Pipet test suite.

Provides a controllable clock, a scripted provider and a recording sandbox so
individual test modules can focus on behavior rather than setup.
"""

from __future__ import annotations

from typing import Optional

import pytest

from pipet.pet.state import PetState
from pipet.types import ConversationTurn, ProviderResponse


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def pet_state(clock: FakeClock) -> PetState:
    return PetState("Inky", "octopus", clock=clock)


# ---------------------------------------------------------------------------
# Provider and sandbox doubles
# ---------------------------------------------------------------------------

class ScriptedProvider:
    """
    Returns pre-scripted responses in order and records every send().

    Once the script runs out it answers with a final text response. When
    ``error`` is set every send raises it instead.
    """

    name = "scripted"

    def __init__(
        self,
        responses: Optional[list[ProviderResponse]] = None,
        error: Optional[Exception] = None,
    ):
        self._responses = list(responses or [])
        self._error = error
        self.calls: list[tuple[str, list[ConversationTurn]]] = []

    async def send(
        self,
        system_prompt: str,
        history: list[ConversationTurn],
    ) -> ProviderResponse:
        self.calls.append((system_prompt, list(history)))
        if self._error is not None:
            raise self._error
        if not self._responses:
            return ProviderResponse(text="[no more scripted responses]")
        return self._responses.pop(0)


class RecordingSandbox:
    """Records commands and answers from a fixed mapping."""

    def __init__(
        self,
        outputs: Optional[dict[str, str]] = None,
        errors: Optional[dict[str, Exception]] = None,
    ):
        self._outputs = outputs or {}
        self._errors = errors or {}
        self.commands: list[str] = []

    async def run(self, command: str) -> str:
        self.commands.append(command)
        if command in self._errors:
            raise self._errors[command]
        return self._outputs.get(command, f"ran {command}")


@pytest.fixture()
def sandbox() -> RecordingSandbox:
    return RecordingSandbox()


