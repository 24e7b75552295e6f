"""Tests for the chat-completion client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import completion_body, make_response, tool_call
from sql_agent.messages import (
    AssistantMessage,
    FunctionCall,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from sql_agent.services.llm_client import CompletionAPIError, CompletionClient, serialize_history
from sql_agent.tools.sql import TOOL_CATALOG

HISTORY = [
    SystemMessage(content="You are a test assistant."),
    UserMessage(content="list all packages"),
]


def _call(call_id: str, name: str = "run_sql_query", arguments: str = "{}") -> ToolCall:
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))


# ── Tests: complete ──────────────────────────────────────────────────


class TestComplete:
    @pytest.mark.asyncio
    async def test_sends_model_messages_and_tools(self):
        client = CompletionClient(api_key="k", api_url="https://llm.test/v1/chat", model="m-1")

        with patch.object(
            client._client,
            "post",
            new=AsyncMock(return_value=make_response(completion_body("hi"))),
        ) as mock_post:
            await client.complete(HISTORY, TOOL_CATALOG)

        url = mock_post.call_args[0][0]
        payload = mock_post.call_args[1]["json"]
        assert url == "https://llm.test/v1/chat"
        assert payload["model"] == "m-1"
        assert payload["messages"] == [
            {"role": "system", "content": "You are a test assistant."},
            {"role": "user", "content": "list all packages"},
        ]
        assert payload["tools"] == list(TOOL_CATALOG)

    def test_uses_bearer_auth(self):
        client = CompletionClient(api_key="secret-key")
        assert client._client.headers["Authorization"] == "Bearer secret-key"

    @pytest.mark.asyncio
    async def test_plain_answer(self):
        client = CompletionClient(api_key="k")

        with patch.object(
            client._client,
            "post",
            new=AsyncMock(return_value=make_response(completion_body("There are 3 packages."))),
        ):
            turn = await client.complete(HISTORY, TOOL_CATALOG)

        assert isinstance(turn, AssistantMessage)
        assert turn.content == "There are 3 packages."
        assert turn.tool_calls == []

    @pytest.mark.asyncio
    async def test_tool_call_answer(self):
        client = CompletionClient(api_key="k")
        body = completion_body(
            None,
            [tool_call("call_1", "run_sql_query", '{"query": "SELECT * FROM packages"}')],
        )

        with patch.object(client._client, "post", new=AsyncMock(return_value=make_response(body))):
            turn = await client.complete(HISTORY, TOOL_CATALOG)

        assert turn.content is None
        assert len(turn.tool_calls) == 1
        assert turn.tool_calls[0].id == "call_1"
        assert turn.tool_calls[0].name == "run_sql_query"
        assert json.loads(turn.tool_calls[0].arguments) == {"query": "SELECT * FROM packages"}

    @pytest.mark.asyncio
    async def test_null_tool_calls_mean_no_calls(self):
        client = CompletionClient(api_key="k")
        body = {"choices": [{"message": {"role": "assistant", "content": "ok", "tool_calls": None}}]}

        with patch.object(client._client, "post", new=AsyncMock(return_value=make_response(body))):
            turn = await client.complete(HISTORY, TOOL_CATALOG)

        assert turn.tool_calls == []

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        client = CompletionClient(api_key="k")

        with patch.object(
            client._client,
            "post",
            new=AsyncMock(return_value=make_response({"error": "unauthorized"}, 401)),
        ):
            with pytest.raises(CompletionAPIError) as exc_info:
                await client.complete(HISTORY, TOOL_CATALOG)

        assert exc_info.value.status_code == 401
        assert "401" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        client = CompletionClient(api_key="k")

        with patch.object(
            client._client, "post", new=AsyncMock(side_effect=httpx.ConnectTimeout("timed out")),
        ) as mock_post:
            with pytest.raises(CompletionAPIError):
                await client.complete(HISTORY, TOOL_CATALOG)

        # No retries
        assert mock_post.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_body_raises(self):
        client = CompletionClient(api_key="k")

        with patch.object(
            client._client, "post", new=AsyncMock(return_value=make_response({"choices": []})),
        ):
            with pytest.raises(CompletionAPIError, match="Malformed"):
                await client.complete(HISTORY, TOOL_CATALOG)


# ── Tests: serialize_history ─────────────────────────────────────────


class TestSerializeHistory:
    def test_answered_tool_calls_are_kept(self):
        history = [
            *HISTORY,
            AssistantMessage(content=None, tool_calls=[_call("a"), _call("b")]),
            ToolMessage(tool_call_id="a", content="{}"),
            ToolMessage(tool_call_id="b", content="{}"),
        ]
        wire = serialize_history(history)
        assert [c["id"] for c in wire[2]["tool_calls"]] == ["a", "b"]
        assert wire[3] == {"role": "tool", "tool_call_id": "a", "content": "{}"}

    def test_abandoned_calls_are_dropped_from_payload(self):
        history = [
            *HISTORY,
            AssistantMessage(content="Checking", tool_calls=[_call("a"), _call("b")]),
            ToolMessage(tool_call_id="a", content="{}"),
        ]
        wire = serialize_history(history)
        assert [c["id"] for c in wire[2]["tool_calls"]] == ["a"]
        # Stored history is untouched
        assert len(history[2].tool_calls) == 2

    def test_fully_rejected_batch_becomes_plain_assistant_message(self):
        history = [
            *HISTORY,
            AssistantMessage(content=None, tool_calls=[_call("a")]),
        ]
        wire = serialize_history(history)
        assert wire[2] == {"role": "assistant", "content": ""}

    def test_tool_results_must_follow_immediately(self):
        history = [
            *HISTORY,
            AssistantMessage(content=None, tool_calls=[_call("a")]),
            UserMessage(content="never mind"),
            ToolMessage(tool_call_id="a", content="{}"),
        ]
        wire = serialize_history(history)
        assert "tool_calls" not in wire[2]
