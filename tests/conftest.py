"""Shared test fixtures for workers-ai tests."""

import json

import pytest


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_API_KEY = "test-key-123"
MOCK_ACCOUNT = "ACC"
MOCK_GATEWAY = "GW"

DIRECT_BASE_URL = f"https://api.cloudflare.com/client/v4/accounts/{MOCK_ACCOUNT}/ai/v1"
GATEWAY_BASE_URL = f"https://gateway.ai.cloudflare.com/v1/{MOCK_ACCOUNT}/{MOCK_GATEWAY}"

DIRECT_RUN_URL = f"https://api.cloudflare.com/client/v4/accounts/{MOCK_ACCOUNT}/ai/run"
DIRECT_MODELS_URL = f"https://api.cloudflare.com/client/v4/accounts/{MOCK_ACCOUNT}/ai/models/search"
GATEWAY_RUN_URL = f"https://gateway.ai.cloudflare.com/v1/{MOCK_ACCOUNT}/{MOCK_GATEWAY}/workers-ai/run"
GATEWAY_MODELS_URL = f"https://gateway.ai.cloudflare.com/v1/{MOCK_ACCOUNT}/{MOCK_GATEWAY}/workers-ai/models/search"

MOCK_MODEL_1 = "@cf/meta/llama-3-8b-instruct"
MOCK_MODEL_2 = "@cf/mistral/mistral-7b-instruct-v0.1"
MOCK_EMBEDDING_MODEL = "@cf/baai/bge-base-en-v1.5"

MOCK_MODELS_RESPONSE = {
    "success": True,
    "result": [
        {"id": "1", "name": MOCK_MODEL_1, "task": {"id": "t1", "name": "Text Generation"}},
        {"id": "2", "name": MOCK_EMBEDDING_MODEL, "task": {"id": "t2", "name": "Text Embeddings"}},
        {"id": "3", "name": MOCK_MODEL_2, "task": {"id": "t1", "name": "Text Generation"}},
    ],
}

MOCK_COMPLETION_RESPONSE = {
    "success": True,
    "errors": [],
    "messages": [],
    "result": {"response": "The capital of France is Paris."},
}


def sse_stream(*events: str) -> bytes:
    """Build an SSE body; each argument is the raw text of one event block."""
    return "".join(f"{event}\n\n" for event in events).encode()


def sse_data(response: str) -> str:
    return f"data: {json.dumps({'response': response})}"


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def chat_payload():
    """Return a non-streaming chat payload."""
    return {
        "model": MOCK_MODEL_1,
        "messages": [{"role": "user", "content": "What is the capital of France?"}],
        "stream": False,
    }


@pytest.fixture
def stream_payload(chat_payload):
    """Return a streaming chat payload."""
    return {**chat_payload, "stream": True}


@pytest.fixture
def progress():
    """Collects progress callback invocations."""
    calls: list[str] = []

    def on_progress(text: str) -> None:
        calls.append(text)

    on_progress.calls = calls
    return on_progress
