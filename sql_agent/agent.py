"""Tool-calling orchestration loop for one user message.

States of a turn::

    IDLE ──user message──► AWAITING_COMPLETION ──tool calls──► DISPATCHING_TOOLS
                                 │        ▲                          │
                                 │        └──────────────────────────┘
                                 ▼
                            TERMINATED ──► IDLE

  * A completion with no tool calls is the answer: ``response`` frame, done.
  * A failed completion call ends the turn with an ``error`` frame.
  * A rejected tool call abandons the rest of its batch with an ``error``
    frame, but the loop goes on to the next completion.
  * After ``MAX_ITERATIONS`` completion round-trips without an answer the
    turn ends with an ``error`` frame.

The session's ``busy`` flag is held for the whole turn.  A message that
arrives while it is set is answered with an ``error`` frame and otherwise
ignored; it is not queued.
"""

from __future__ import annotations

import enum
import logging

from sql_agent.api.schemas import ErrorFrame, OutboundFrame, ResponseFrame
from sql_agent.messages import UserMessage
from sql_agent.services.llm_client import CompletionAPIError, CompletionClient
from sql_agent.session import Session
from sql_agent.tools.dispatcher import Emit, ToolDispatcher

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10

BUSY_MESSAGE = "Processing previous message, please wait."
MAX_ITERATIONS_MESSAGE = "Reached maximum function call limit."
INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again."


class LoopState(enum.Enum):
    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"
    DISPATCHING_TOOLS = "dispatching_tools"
    TERMINATED = "terminated"


class ConversationAgent:
    """Runs user turns for any number of sessions.

    Holds no per-session state of its own, so one instance is shared by all
    connections.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        dispatcher: ToolDispatcher,
        *,
        max_iterations: int = MAX_ITERATIONS,
    ):
        self._completion = completion_client
        self._dispatcher = dispatcher
        self._max_iterations = max_iterations

    async def handle_message(self, session: Session, text: str, emit: Emit) -> None:
        """Run one user turn on *session*, reporting through *emit*.

        Never raises (except for task cancellation); every failure ends as an
        ``error`` frame and the session is left idle.
        """
        # Check-and-set must stay ahead of the first await.
        if session.busy:
            logger.info("[%s] Rejected message: previous turn still running", session.id)
            await emit(ErrorFrame(error=BUSY_MESSAGE))
            return

        session.busy = True
        try:
            session.append(UserMessage(content=text))
            await self._run(session, emit)
        except Exception:
            logger.exception("[%s] Unexpected error while processing message", session.id)
            await self._emit_quietly(session, emit, ErrorFrame(error=INTERNAL_ERROR_MESSAGE))
        finally:
            session.busy = False
            self._transition(session, LoopState.IDLE)

    async def _run(self, session: Session, emit: Emit) -> None:
        iteration = 0
        while iteration < self._max_iterations:
            self._transition(session, LoopState.AWAITING_COMPLETION, iteration)
            try:
                turn = await self._completion.complete(
                    session.get_history(), self._dispatcher.catalog,
                )
            except CompletionAPIError as exc:
                logger.warning("[%s] Completion failed: %s", session.id, exc)
                await emit(ErrorFrame(error=f"Completion API error: {exc}"))
                self._transition(session, LoopState.TERMINATED)
                return

            session.append(turn)

            if not turn.tool_calls:
                await emit(ResponseFrame(response=turn.content))
                self._transition(session, LoopState.TERMINATED)
                return

            self._transition(session, LoopState.DISPATCHING_TOOLS, iteration)
            batch = await self._dispatcher.dispatch_batch(turn, emit)
            for message in batch.messages:
                session.append(message)
            if batch.error is not None:
                await emit(ErrorFrame(error=batch.error.message))

            iteration += 1

        logger.warning(
            "[%s] Iteration ceiling (%d) reached without an answer",
            session.id, self._max_iterations,
        )
        await emit(ErrorFrame(error=MAX_ITERATIONS_MESSAGE))
        self._transition(session, LoopState.TERMINATED)

    @staticmethod
    def _transition(session: Session, state: LoopState, iteration: int | None = None) -> None:
        if iteration is None:
            logger.debug("[%s] -> %s", session.id, state.value)
        else:
            logger.debug("[%s] -> %s (iteration %d)", session.id, state.value, iteration)

    @staticmethod
    async def _emit_quietly(session: Session, emit: Emit, frame: OutboundFrame) -> None:
        """Report a failure; the channel itself may be what failed."""
        try:
            await emit(frame)
        except Exception as exc:
            logger.warning("[%s] Could not deliver error frame: %s", session.id, exc)
