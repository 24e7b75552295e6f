"""FastAPI server for the SQL agent gateway.

Run with:
    uv run uvicorn sql_agent.server:app --reload --host 0.0.0.0 --port 8000

Clients connect to ``ws://<host>:<port>/ws``.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from sql_agent.agent import ConversationAgent
from sql_agent.api.routes import router, ws_router
from sql_agent.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT, SYSTEM_PROMPT
from sql_agent.services.data_api_client import close_data_api_client, get_data_api_client
from sql_agent.services.llm_client import CompletionClient
from sql_agent.session import InMemorySessionStore
from sql_agent.tools.dispatcher import ToolDispatcher

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: build the shared agent, HTTP clients and session store.

    Everything per-connection lives in a ``Session``; what is built here is
    shared by all connections and closed on shutdown.
    """
    completion_client = CompletionClient()
    get_data_api_client()

    application.state.system_prompt = SYSTEM_PROMPT
    application.state.session_store = InMemorySessionStore()
    application.state.agent = ConversationAgent(completion_client, ToolDispatcher())
    logger.info("Agent ready (model: %s).", completion_client.model)
    yield
    await completion_client.aclose()
    await close_data_api_client()
    logger.info("HTTP clients closed.")


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="SQL Agent Gateway",
    description=(
        "WebSocket chat gateway that lets a language model answer questions "
        "by running SQL against a data-access API."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every HTTP request for log correlation.

    WebSocket connections are logged by session ID instead.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info(
        "[%s] %s %s", request_id, request.method, request.url.path,
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")
app.include_router(ws_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "SQL Agent Gateway",
        "version": "1.0.0",
        "websocket": "/ws",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting SQL agent gateway on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "sql_agent.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
