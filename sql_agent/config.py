"""Centralized configuration for the SQL agent gateway.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/sql-agent/<VARIABLE_NAME>``.

A missing required value raises ``OSError`` at import time, so the server
never starts (and never accepts a connection) without a complete config.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))

_DEFAULT_PROMPT_FILE = Path(__file__).resolve().parent.parent / "prompt.txt"


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.
    """
    try:
        import boto3  # noqa: PLC0415 (optional dependency, AWS only)

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/sql-agent/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _get_setting(name: str) -> str | None:
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value
    if _ON_AWS:
        return _get_ssm_parameter(name)
    return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _get_setting(name)
    if value:
        return value
    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /sql-agent/{name} (AWS)."
    )


def _load_system_prompt() -> str:
    """Resolve the system prompt: inline ``SYSTEM_PROMPT`` wins over the file."""
    inline = _get_setting("SYSTEM_PROMPT")
    if inline:
        return inline

    path = Path(os.getenv("SYSTEM_PROMPT_FILE", str(_DEFAULT_PROMPT_FILE)))
    try:
        text = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        text = ""
    if not text:
        raise OSError(
            "Missing required configuration: SYSTEM_PROMPT. "
            f"Set it inline or point SYSTEM_PROMPT_FILE at a non-empty file (tried {path})."
        )
    return text


# ── Completion backend ──────────────────────────────────────────────
LLM_API_KEY: str = _require_env("LLM_API_KEY")
LLM_API_URL: str = os.getenv("LLM_API_URL", "https://api.deepseek.com/v1/chat/completions")
MODEL_NAME: str = os.getenv("MODEL_NAME", "deepseek-chat")
SYSTEM_PROMPT: str = _load_system_prompt()

# ── Data-access backend ─────────────────────────────────────────────
DATA_API_BASE_URL: str = _require_env("DATA_API_BASE_URL").rstrip("/")

# Applied to both backends; a hung request must not pin a session forever.
REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
