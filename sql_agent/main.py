"""CLI entry point for the SQL agent gateway.

A terminal chat against the real backends, using the same agent as the
WebSocket server.  Handy for trying out prompts without a client.

Usage:
    uv run python -m sql_agent.main            # normal mode (quiet)
    uv run python -m sql_agent.main --debug    # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from sql_agent.api.schemas import ErrorFrame, OutboundFrame, ProgressFrame, ResponseFrame

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("sql_agent").setLevel(logging.DEBUG if debug else logging.INFO)


async def print_frame(frame: OutboundFrame) -> None:
    if isinstance(frame, ProgressFrame):
        print(f"  ... {frame.progress}")
    elif isinstance(frame, ResponseFrame):
        print(f"\nAgent: {frame.response or ''}\n")
    elif isinstance(frame, ErrorFrame):
        print(f"\nError: {frame.error}\n")


async def chat_loop() -> None:
    """Run the interactive chat until the user quits."""
    # Imported here so a missing setting is reported after logging is set up.
    from sql_agent.agent import ConversationAgent
    from sql_agent.config import SYSTEM_PROMPT
    from sql_agent.services.data_api_client import close_data_api_client
    from sql_agent.services.llm_client import CompletionClient
    from sql_agent.session import InMemorySessionStore
    from sql_agent.tools.dispatcher import ToolDispatcher

    completion_client = CompletionClient()
    agent = ConversationAgent(completion_client, ToolDispatcher())
    store = InMemorySessionStore()
    session = store.create(SYSTEM_PROMPT)

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "You: ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye!")
                break

            if user_input.lower() == "new":
                store.delete(session.id)
                session = store.create(SYSTEM_PROMPT)
                print(f"\n>> New session started: {session.id[:8]}...\n")
                continue

            await agent.handle_message(session, user_input, print_frame)
    finally:
        store.delete(session.id)
        await completion_client.aclose()
        await close_data_api_client()


def main():
    """Parse arguments and run the chat loop."""
    parser = argparse.ArgumentParser(description="SQL agent gateway CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  SQL Agent - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    try:
        asyncio.run(chat_loop())
    except OSError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
