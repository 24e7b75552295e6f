"""FastAPI route definitions: health check and the chat WebSocket."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from sql_agent.agent import ConversationAgent
from sql_agent.api.schemas import ErrorFrame, HealthResponse, InboundFrame, OutboundFrame
from sql_agent.session import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()
ws_router = APIRouter()

NO_MESSAGE_ERROR = "No message content provided."


def parse_inbound(raw: str) -> str | None:
    """Return the message text of a client frame, or ``None`` if malformed."""
    try:
        return InboundFrame.model_validate_json(raw).message
    except ValidationError:
        return None


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@ws_router.get("/ws")
async def websocket_upgrade_required():
    """Plain HTTP requests to the chat endpoint must upgrade first."""
    return PlainTextResponse("Expected WebSocket", status_code=426)


@ws_router.websocket("/ws")
async def chat_websocket(websocket: WebSocket):
    """One connection, one session.

    Each inbound frame is handled in its own task so the receive loop keeps
    running and can turn away messages that arrive mid-turn.  When the
    connection goes away, running turns are cancelled (not awaited) and the
    session is deleted.
    """
    state = websocket.app.state
    agent: ConversationAgent | None = getattr(state, "agent", None)
    store: SessionStore | None = getattr(state, "session_store", None)
    if agent is None or store is None:
        await websocket.close(code=1013, reason="Service starting up")
        return

    await websocket.accept()
    session = store.create(state.system_prompt)
    tasks: set[asyncio.Task] = set()

    async def emit(frame: OutboundFrame) -> None:
        await websocket.send_json(frame.model_dump())

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")

            text = parse_inbound(raw or "")
            if text is None:
                await emit(ErrorFrame(error=NO_MESSAGE_ERROR))
                continue

            task = asyncio.create_task(agent.handle_message(session, text, emit))
            tasks.add(task)
            task.add_done_callback(tasks.discard)

    except WebSocketDisconnect:
        pass  # Normal client disconnect
    except Exception:
        logger.exception("[%s] WebSocket error", session.id)
    finally:
        for task in tasks:
            task.cancel()
        store.delete(session.id)
        logger.info(
            "[%s] Connection closed (%d in-flight turn(s) abandoned)", session.id, len(tasks),
        )
