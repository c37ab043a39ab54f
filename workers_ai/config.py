"""
Configuration constants and Pydantic models for workers-ai.
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_STREAM_RATE: int = 1  # milliseconds between streamed fragments
DEFAULT_TIMEOUT_SECONDS: float = 60.0
DEFAULT_HEADERS: dict[str, str] = {"Content-Type": "application/json"}


# ─────────────────────────────────────────────────────────────────────
# PROTOCOL CONSTANTS
# ─────────────────────────────────────────────────────────────────────

DONE_SENTINEL: str = "[DONE]"
TEXT_GENERATION_TASK: str = "Text Generation"
PING_EVENT: str = "ping"

DIRECT_HOSTNAME: str = "api.cloudflare.com"
GATEWAY_HOSTNAME: str = "gateway.ai.cloudflare.com"
GATEWAY_SERVICE_SEGMENT: str = "workers-ai"


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def get_base_url() -> Optional[str]:
    """Get the Workers AI base URL from WORKERS_AI_BASE_URL."""
    value = os.environ.get("WORKERS_AI_BASE_URL", "").strip()
    return value or None


def get_api_key() -> Optional[str]:
    """Get the Workers AI API token from WORKERS_AI_API_KEY."""
    value = os.environ.get("WORKERS_AI_API_KEY", "").strip()
    return value or None


def get_stream_rate() -> int:
    """
    Get the pacing interval between streamed fragments, in milliseconds.

    Set WORKERS_AI_STREAM_RATE in .env (default: 1).
    """
    try:
        rate = int(os.environ.get("WORKERS_AI_STREAM_RATE", str(DEFAULT_STREAM_RATE)))
    except ValueError:
        return DEFAULT_STREAM_RATE
    return rate if rate >= 0 else DEFAULT_STREAM_RATE


def get_timeout_seconds() -> float:
    """
    Get the HTTP timeout in seconds.

    Set WORKERS_AI_TIMEOUT in .env (default: 60).
    """
    try:
        return float(os.environ.get("WORKERS_AI_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS)))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


def load_options_from_env(
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    stream_rate: Optional[int] = None,
) -> Optional["ClientOptions"]:
    """
    Build ClientOptions from environment variables.

    Explicit arguments take precedence over the environment.
    Returns None when either the base URL or the API key is missing.
    """
    base_url = base_url or get_base_url()
    api_key = api_key or get_api_key()
    if not base_url or not api_key:
        return None
    return ClientOptions(
        base_url=base_url,
        api_key=api_key,
        stream_rate=stream_rate if stream_rate is not None else get_stream_rate(),
        timeout_seconds=get_timeout_seconds(),
    )


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class ClientOptions(BaseModel):
    """Complete configuration for a WorkersAIClient."""
    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: str
    default_headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))
    stream_rate: int = Field(default=DEFAULT_STREAM_RATE, ge=0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
