"""
Gemini backend — Google's generate_content API behind the Provider interface.

History translation:
    assistant role  -> "model"
    tool calls      -> function_call parts (after any text part)
    tool results    -> function_response parts, ``{"output": ..., "error": True}``

Gemini does not always assign ids to function calls. Missing ids are
synthesized so results can still be matched by id inside the loop; synthesized
ids are never sent back to the API.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from pipet.api.provider import ProviderError
from pipet.config import GeminiConfig
from pipet.tools.registry import RUN_SHELL_TOOL, ToolDefinition
from pipet.types import ConversationTurn, ProviderResponse, ToolCall

logger = structlog.get_logger(__name__)

SYNTHETIC_ID_PREFIX = "pipet-call-"


def _schema_from_json(schema: dict[str, Any]) -> genai_types.Schema:
    """Convert a (simple) JSON Schema into a Gemini Schema."""
    kwargs: dict[str, Any] = {"type": genai_types.Type(str(schema["type"]).upper())}
    if "description" in schema:
        kwargs["description"] = schema["description"]
    if "properties" in schema:
        kwargs["properties"] = {
            name: _schema_from_json(prop) for name, prop in schema["properties"].items()
        }
    if "required" in schema:
        kwargs["required"] = list(schema["required"])
    return genai_types.Schema(**kwargs)


def function_declaration(tool: ToolDefinition) -> genai_types.FunctionDeclaration:
    return genai_types.FunctionDeclaration(
        name=tool.name,
        description=tool.description,
        parameters=_schema_from_json(tool.input_schema),
    )


class GeminiProvider:
    """Sends conversations to Gemini with the run_shell function declared."""

    name = "gemini"

    def __init__(
        self,
        config: GeminiConfig,
        client: Optional[genai.Client] = None,
    ):
        if client is None:
            if not config.api_key:
                raise ValueError("GeminiProvider requires GOOGLE_API_KEY")
            client = genai.Client(api_key=config.api_key)
        self._client = client
        self._model = config.model
        self._max_tokens = config.max_tokens
        self._tool = genai_types.Tool(function_declarations=[function_declaration(RUN_SHELL_TOOL)])
        self._total_calls = 0

        logger.info("gemini_provider.initialized", model=self._model, max_tokens=self._max_tokens)

    async def send(
        self,
        system_prompt: str,
        history: list[ConversationTurn],
    ) -> ProviderResponse:
        start_time = time.monotonic()
        config = genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=self._max_tokens,
            tools=[self._tool],
            automatic_function_calling=genai_types.AutomaticFunctionCallingConfig(disable=True),
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=self.to_contents(history),
                config=config,
            )
        except genai_errors.APIError as e:
            logger.error("gemini_provider.api_error", error=str(e), status=getattr(e, "code", None))
            raise ProviderError(self.name, f"API error: {e}") from e
        except httpx.HTTPError as e:
            logger.error("gemini_provider.connection_error", error=str(e))
            raise ProviderError(self.name, f"connection error: {e}") from e

        self._total_calls += 1
        result = self.from_response(response)
        logger.debug(
            "gemini_provider.response",
            tool_calls=len(result.tool_calls),
            elapsed_seconds=round(time.monotonic() - start_time, 2),
        )
        return result

    @staticmethod
    def to_contents(history: list[ConversationTurn]) -> list[genai_types.Content]:
        """Translate agnostic turns into Gemini ``contents``."""
        contents: list[genai_types.Content] = []
        # Function responses must name the function they answer
        call_names: dict[str, str] = {}

        for turn in history:
            role = "model" if turn.role == "assistant" else "user"

            if turn.tool_results:
                parts = []
                for result in turn.tool_results:
                    payload: dict[str, Any] = {"output": result.content}
                    if result.is_error:
                        payload["error"] = True
                    parts.append(genai_types.Part(
                        function_response=genai_types.FunctionResponse(
                            id=_wire_id(result.tool_use_id),
                            name=call_names.get(result.tool_use_id, RUN_SHELL_TOOL.name),
                            response=payload,
                        )
                    ))
                contents.append(genai_types.Content(role=role, parts=parts))
                continue

            if turn.tool_calls:
                parts = []
                if turn.text:
                    parts.append(genai_types.Part(text=turn.text))
                for call in turn.tool_calls:
                    call_names[call.id] = call.name
                    parts.append(genai_types.Part(
                        function_call=genai_types.FunctionCall(
                            id=_wire_id(call.id),
                            name=call.name,
                            args=call.input,
                        )
                    ))
                contents.append(genai_types.Content(role=role, parts=parts))
                continue

            contents.append(genai_types.Content(role=role, parts=[genai_types.Part(text=turn.text)]))
        return contents

    @staticmethod
    def from_response(response: Any) -> ProviderResponse:
        """Translate a generate_content response into a ProviderResponse."""
        text = _extract_text(response)
        function_calls = response.function_calls or []
        if not function_calls:
            return ProviderResponse(text=text, done=True)

        calls = []
        for index, fc in enumerate(function_calls):
            calls.append(ToolCall(
                id=fc.id or f"{SYNTHETIC_ID_PREFIX}{fc.name}-{index}",
                name=fc.name or "",
                input=dict(fc.args or {}),
            ))
        return ProviderResponse(text=text, tool_calls=calls, done=False)

    @property
    def telemetry(self) -> dict[str, Any]:
        return {"total_calls": self._total_calls}


def _wire_id(call_id: str) -> Optional[str]:
    if call_id.startswith(SYNTHETIC_ID_PREFIX):
        return None
    return call_id


def _extract_text(response: Any) -> str:
    """Concatenate the visible text parts of the first candidate."""
    candidates = response.candidates or []
    if not candidates or candidates[0].content is None:
        return ""
    parts = candidates[0].content.parts or []
    return "".join(part.text for part in parts if part.text and not part.thought)
