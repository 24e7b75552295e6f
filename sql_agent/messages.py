"""Chat message models exchanged with the completion backend.

The history of a session is a list of these models, in the exact order they
are sent to the model.  ``to_wire()`` produces the OpenAI-compatible dict for
each message.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator


class FunctionCall(BaseModel):
    """The function part of a tool call.  ``arguments`` is raw JSON text."""

    name: str
    arguments: str = ""

    @field_validator("arguments", mode="before")
    @classmethod
    def _encode_object_arguments(cls, value: Any) -> Any:
        # Some OpenAI-compatible backends return arguments as an object.
        if isinstance(value, dict):
            return json.dumps(value)
        return "" if value is None else value


class ToolCall(BaseModel):
    """A model-issued request to invoke one of the catalog tools."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


class AssistantMessage(BaseModel):
    """One assistant turn: optional text plus zero or more tool calls."""

    role: Literal["assistant"] = "assistant"
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _null_tool_calls(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_wire(self, tool_calls: list[ToolCall] | None = None) -> dict[str, Any]:
        """Serialize, optionally restricting which tool calls are sent."""
        calls = self.tool_calls if tool_calls is None else tool_calls
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if calls:
            data["tool_calls"] = [call.model_dump() for call in calls]
        elif data["content"] is None:
            data["content"] = ""
        return data


class ToolMessage(BaseModel):
    """The result of one tool call, correlated by ``tool_call_id``."""

    role: Literal["tool"] = "tool"
    tool_call_id: str
    content: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]
