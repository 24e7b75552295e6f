"""SQL Agent Gateway: chat with a database over a WebSocket.

Architecture Overview
=====================

A client opens a WebSocket and sends ``{"message": "..."}`` frames.  Each
connection gets its own ``Session`` (message history + busy flag).  For every
user message the agent runs a bounded tool-calling loop:

1. **completion**: the full history and the tool catalog are POSTed to an
   OpenAI-compatible chat-completion API (DeepSeek by default).
2. **tools**: if the model asked for tool calls, each one is validated and
   run against the data-access API (``run_sql_query`` for SELECTs,
   ``run_sql_mutation`` for INSERT/UPDATE/DELETE).  Results go back into the
   history and the loop repeats.

The loop ends when the model answers without tool calls, when the
completion API fails, or after ten round-trips.  Progress, answers and errors
are streamed back as ``{"progress"}``, ``{"response"}`` and ``{"error"}``
frames.

Package Structure
-----------------
- ``sql_agent/agent.py`` — orchestration loop
- ``sql_agent/session.py`` — sessions and the session store
- ``sql_agent/messages.py`` — chat message models
- ``sql_agent/config.py`` — configuration from environment variables
- ``sql_agent/server.py`` — FastAPI application
- ``sql_agent/main.py`` — CLI chat interface
- ``sql_agent/services/`` — HTTP clients (completion API, data API)
- ``sql_agent/tools/`` — SQL tools and the tool-call dispatcher
- ``sql_agent/api/`` — WebSocket/HTTP routes and frame schemas
"""
