"""Async HTTP client for the SQL data-access backend.

The backend exposes two endpoints that both accept ``{"query": "<sql>"}``:

  * ``POST /api/sql/query``   for reads
  * ``POST /api/sql/mutate``  for writes

Which endpoint a query goes to is decided by keyword containment, not by
parsing.  Any write keyword (``INSERT``, ``UPDATE``, ``DELETE``) routes the
query to the write endpoint, otherwise ``SELECT`` routes it to the read
endpoint.  A read that merely mentions ``'DELETE'`` inside a string literal is
therefore sent to the write endpoint; that false positive is accepted.

``run_query`` never raises.  Classification failures, HTTP errors, network
errors and non-JSON bodies are all returned as ``{"error": "..."}`` so the
model sees them as data and can retry with another query.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Any

import httpx

from sql_agent.config import DATA_API_BASE_URL, REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

READ_KEYWORDS = ("SELECT",)
WRITE_KEYWORDS = ("INSERT", "UPDATE", "DELETE")

READ_PATH = "/api/sql/query"
WRITE_PATH = "/api/sql/mutate"


class QueryKind(enum.Enum):
    READ = "read"
    WRITE = "write"


class InvalidQueryKindError(ValueError):
    """Raised when a query contains neither a read nor a write keyword."""


def has_read_keyword(query: str) -> bool:
    upper = query.upper()
    return any(keyword in upper for keyword in READ_KEYWORDS)


def has_write_keyword(query: str) -> bool:
    upper = query.upper()
    return any(keyword in upper for keyword in WRITE_KEYWORDS)


def classify_query(query: str) -> QueryKind:
    """Classify *query* as a read or a write by case-insensitive keyword search."""
    if has_write_keyword(query):
        return QueryKind.WRITE
    if has_read_keyword(query):
        return QueryKind.READ
    raise InvalidQueryKindError(f"Query is neither a read nor a write: {query[:80]!r}")


def endpoint_for(kind: QueryKind) -> str:
    return READ_PATH if kind is QueryKind.READ else WRITE_PATH


class DataAPIClient:
    """Thin async wrapper around the data-access backend."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url or DATA_API_BASE_URL
        self._client = http_client or httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    async def run_query(self, query: str) -> Any:
        """Route *query* to the matching endpoint and return its JSON payload."""
        try:
            kind = classify_query(query)
        except InvalidQueryKindError:
            logger.info("Rejected query with no SQL keyword: %r", query[:80])
            return {"error": "Invalid query type"}

        path = endpoint_for(kind)
        t0 = time.perf_counter()
        try:
            response = await self._client.post(path, json={"query": query})
            if response.status_code < 200 or response.status_code >= 300:
                elapsed = (time.perf_counter() - t0) * 1000
                logger.warning(
                    "Data API %s returned HTTP %d after %.0fms",
                    path, response.status_code, elapsed,
                )
                return {"error": f"API call error: HTTP error {response.status_code}"}
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            logger.warning(
                "Data API %s failed after %.0fms: %s", path, elapsed, exc,
            )
            return {"error": f"API call error: {exc}"}

        elapsed = (time.perf_counter() - t0) * 1000
        logger.debug("Data API %s responded in %.0fms: %s", path, elapsed, data)
        return data

    async def aclose(self) -> None:
        await self._client.aclose()


# ── Module-level singleton ──────────────────────────────────────────
_client: DataAPIClient | None = None


def get_data_api_client() -> DataAPIClient:
    """Return the process-wide DataAPIClient, creating it on first use.

    All callers run on the same event loop, so no lock is needed.
    """
    global _client
    if _client is None:
        _client = DataAPIClient()
    return _client


async def close_data_api_client() -> None:
    """Close and forget the singleton (called on server shutdown)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
