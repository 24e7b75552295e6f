"""Async client for an OpenAI-compatible chat-completion API.

One request per call: no retries and no token streaming.  Every failure
(transport error, timeout, non-2xx status, unexpected body) is raised as
``CompletionAPIError`` and ends the current user turn.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from sql_agent.config import LLM_API_KEY, LLM_API_URL, MODEL_NAME, REQUEST_TIMEOUT_SECONDS
from sql_agent.messages import AssistantMessage, Message, ToolMessage

logger = logging.getLogger(__name__)


class CompletionAPIError(Exception):
    """Raised when a chat-completion call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def serialize_history(history: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert *history* into the request ``messages`` array.

    An assistant turn whose tool-call batch was abandoned has tool calls with
    no matching ``tool`` message.  The API rejects such a sequence, so only
    the answered tool calls are sent (or none, if the whole batch failed).
    The stored history is left untouched.
    """
    out: list[dict[str, Any]] = []
    for i, message in enumerate(history):
        if not isinstance(message, AssistantMessage) or not message.tool_calls:
            out.append(message.to_wire())
            continue

        answered: set[str] = set()
        for follower in history[i + 1:]:
            if not isinstance(follower, ToolMessage):
                break
            answered.add(follower.tool_call_id)

        kept = [call for call in message.tool_calls if call.id in answered]
        if len(kept) != len(message.tool_calls):
            logger.debug(
                "Dropping %d unanswered tool call(s) from request payload",
                len(message.tool_calls) - len(kept),
            )
        out.append(message.to_wire(tool_calls=kept))
    return out


class CompletionClient:
    """Thin async wrapper around the chat-completion endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        model: str | None = None,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url or LLM_API_URL
        self._model = model or MODEL_NAME
        self._client = http_client or httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {api_key or LLM_API_KEY}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        history: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> AssistantMessage:
        """Send *history* and the tool catalog, return the assistant turn."""
        payload = {
            "model": self._model,
            "messages": serialize_history(history),
            "tools": list(tools),
        }

        t0 = time.perf_counter()
        try:
            response = await self._client.post(self._api_url, json=payload)
        except httpx.HTTPError as exc:
            raise CompletionAPIError(f"{type(exc).__name__}: {exc}") from exc

        elapsed = (time.perf_counter() - t0) * 1000
        if response.status_code < 200 or response.status_code >= 300:
            logger.warning(
                "Completion API returned %d after %.0fms", response.status_code, elapsed,
            )
            raise CompletionAPIError(
                f"HTTP error {response.status_code}", status_code=response.status_code,
            )

        try:
            data = response.json()
            turn = AssistantMessage.model_validate(data["choices"][0]["message"])
        except (ValueError, KeyError, IndexError, TypeError, ValidationError) as exc:
            raise CompletionAPIError(f"Malformed completion response: {exc}") from exc

        logger.debug(
            "Completion (%s) responded in %.0fms with %d tool call(s)",
            self._model, elapsed, len(turn.tool_calls),
        )
        return turn

    async def aclose(self) -> None:
        await self._client.aclose()
