"""LangChain tools for running SQL against the data-access backend.

Each tool validates its arguments with a pydantic model and forwards the
query to ``DataAPIClient.run_query``, returning the backend's JSON payload
unchanged (including ``{"error": ...}`` payloads).

``TOOL_CATALOG`` holds the OpenAI-format descriptors of these tools.  It is
built once at import time and sent as-is with every completion request.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.tools import BaseTool, tool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, Field

from sql_agent.services.data_api_client import get_data_api_client

logger = logging.getLogger(__name__)


class SqlQueryArgs(BaseModel):
    """Arguments of ``run_sql_query``."""

    query: str = Field(
        ...,
        min_length=1,
        description="A single read-only SQL SELECT statement.",
    )


class SqlMutationArgs(BaseModel):
    """Arguments of ``run_sql_mutation``."""

    query: str = Field(
        ...,
        min_length=1,
        description="A single SQL INSERT, UPDATE or DELETE statement.",
    )


@tool("run_sql_query", args_schema=SqlQueryArgs)
async def run_sql_query(query: str) -> Any:
    """Run a read-only SELECT query against the database and return the rows.

    Use this to look up data and to inspect the schema.  Only SELECT
    statements are accepted.
    """
    return await get_data_api_client().run_query(query)


@tool("run_sql_mutation", args_schema=SqlMutationArgs)
async def run_sql_mutation(query: str) -> Any:
    """Run an INSERT, UPDATE or DELETE statement against the database.

    Use this only when the user asked to change data.  Returns the backend's
    result, e.g. the number of affected rows.
    """
    return await get_data_api_client().run_query(query)


SQL_TOOLS: tuple[BaseTool, ...] = (run_sql_query, run_sql_mutation)

TOOL_CATALOG: tuple[dict[str, Any], ...] = tuple(
    convert_to_openai_tool(sql_tool) for sql_tool in SQL_TOOLS
)

logger.debug("Tool catalog loaded: %s", [t.name for t in SQL_TOOLS])
