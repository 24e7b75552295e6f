"""Shared test fixtures for the SQL agent test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("LLM_API_KEY", "test-llm-key-123")
    os.environ.setdefault("DATA_API_BASE_URL", "https://data.example.test")
    os.environ.setdefault("SYSTEM_PROMPT", "You are a test database assistant.")


def make_response(data, status_code: int = 200) -> MagicMock:
    """Build a mock ``httpx.Response`` returning *data* from ``.json()``."""
    mock = MagicMock()
    mock.status_code = status_code
    mock.json.return_value = data
    mock.text = str(data)
    return mock


def completion_body(content=None, tool_calls=None) -> dict:
    """Build a chat-completion response body with one assistant message."""
    message = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {"choices": [{"index": 0, "message": message}]}


def tool_call(call_id: str, name: str, arguments: str) -> dict:
    """Build one OpenAI-format tool call."""
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }
