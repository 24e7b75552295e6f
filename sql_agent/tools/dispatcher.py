"""Validation and execution of model-issued tool calls.

``ToolDispatcher.execute`` turns one ``ToolCall`` into either a
``ToolMessage`` (the tool ran, whatever its result) or a ``DispatchError``
(the call was rejected before reaching the backend).  It never raises.

``ToolDispatcher.dispatch_batch`` folds ``execute`` over all tool calls of an
assistant turn, stopping at the first rejection.  Tool messages produced
before the rejection are kept.
"""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from langchain_core.tools import BaseTool
from pydantic import BaseModel, ValidationError

from sql_agent.api.schemas import OutboundFrame, ProgressFrame
from sql_agent.messages import AssistantMessage, ToolCall, ToolMessage
from sql_agent.services.data_api_client import WRITE_KEYWORDS, has_read_keyword, has_write_keyword
from sql_agent.tools.sql import SQL_TOOLS, TOOL_CATALOG

logger = logging.getLogger(__name__)

Emit = Callable[[OutboundFrame], Awaitable[None]]


class DispatchErrorKind(enum.Enum):
    INVALID_ARGUMENTS = "invalid_arguments"
    MISSING_QUERY = "missing_query"
    POLICY_VIOLATION = "policy_violation"
    UNKNOWN_TOOL = "unknown_tool"


@dataclass(frozen=True)
class DispatchError:
    kind: DispatchErrorKind
    message: str
    tool_call_id: str | None = None


@dataclass
class BatchResult:
    """Outcome of one assistant turn's tool-call batch."""

    messages: list[ToolMessage] = field(default_factory=list)
    error: DispatchError | None = None

    @property
    def abandoned(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ToolPolicy:
    """Which query shape a tool accepts, and how to describe what it does."""

    accepts: Callable[[str], bool]
    rejection: str
    action: str


def _is_read_only(query: str) -> bool:
    return has_read_keyword(query) and not has_write_keyword(query)


TOOL_POLICIES: dict[str, ToolPolicy] = {
    "run_sql_query": ToolPolicy(
        accepts=_is_read_only,
        rejection="run_sql_query is only for SELECT queries.",
        action="Querying data",
    ),
    "run_sql_mutation": ToolPolicy(
        accepts=has_write_keyword,
        rejection=f"run_sql_mutation is only for {', '.join(WRITE_KEYWORDS)} queries.",
        action="Updating data",
    ),
}


def _missing_query(exc: ValidationError) -> bool:
    return any(
        err["loc"] == ("query",) and err["type"] in ("missing", "string_too_short")
        for err in exc.errors()
    )


class ToolDispatcher:
    """Routes tool calls to the SQL tools, enforcing the read/write policy."""

    def __init__(
        self,
        tools: Sequence[BaseTool] = SQL_TOOLS,
        catalog: Sequence[dict[str, Any]] = TOOL_CATALOG,
        policies: Mapping[str, ToolPolicy] = TOOL_POLICIES,
    ):
        self._tools = {t.name: t for t in tools}
        self._catalog = tuple(catalog)
        self._policies = dict(policies)

    @property
    def catalog(self) -> tuple[dict[str, Any], ...]:
        return self._catalog

    def _parse_arguments(self, tool: BaseTool, call: ToolCall) -> BaseModel | DispatchError:
        try:
            raw = json.loads(call.arguments)
        except (TypeError, ValueError):
            raw = None
        if not isinstance(raw, dict):
            return DispatchError(
                DispatchErrorKind.INVALID_ARGUMENTS, "Invalid tool call arguments.", call.id,
            )

        try:
            return tool.args_schema.model_validate(raw)
        except ValidationError as exc:
            if _missing_query(exc):
                return DispatchError(
                    DispatchErrorKind.MISSING_QUERY, "Missing query parameter.", call.id,
                )
            return DispatchError(
                DispatchErrorKind.INVALID_ARGUMENTS, "Invalid tool call arguments.", call.id,
            )

    async def execute(
        self,
        call: ToolCall,
        emit: Emit,
        assistant_text: str | None = None,
    ) -> ToolMessage | DispatchError:
        """Validate *call*, run its tool and wrap the result as a tool message."""
        tool = self._tools.get(call.name)
        policy = self._policies.get(call.name)
        if tool is None or policy is None:
            return DispatchError(
                DispatchErrorKind.UNKNOWN_TOOL, f"Unknown function: {call.name}", call.id,
            )

        args = self._parse_arguments(tool, call)
        if isinstance(args, DispatchError):
            return args

        query = args.query
        if not policy.accepts(query):
            logger.info("Policy rejected %s call %s: %r", call.name, call.id, query[:80])
            return DispatchError(DispatchErrorKind.POLICY_VIOLATION, policy.rejection, call.id)

        await emit(ProgressFrame(progress=assistant_text or f"{policy.action}: {query}"))

        result = await tool.ainvoke(args.model_dump())
        return ToolMessage(tool_call_id=call.id, content=json.dumps(result, default=str))

    async def dispatch_batch(self, turn: AssistantMessage, emit: Emit) -> BatchResult:
        """Execute *turn*'s tool calls in order, stopping at the first rejection."""
        batch = BatchResult()
        for call in turn.tool_calls:
            outcome = await self.execute(call, emit, turn.content)
            if isinstance(outcome, DispatchError):
                skipped = len(turn.tool_calls) - len(batch.messages) - 1
                logger.warning(
                    "Tool call %s (%s) rejected: %s; abandoning %d remaining call(s)",
                    call.id, call.name, outcome.kind.value, skipped,
                )
                batch.error = outcome
                break
            batch.messages.append(outcome)
        return batch
