"""
WorkersAIClient - chat completions and model discovery for Cloudflare Workers AI.

Works against both the direct API (api.cloudflare.com) and AI Gateway
(gateway.ai.cloudflare.com); see endpoints.py for the URL rules.

Usage:
    models = await WorkersAIClient.fetch_models(base_url, api_key)

    client = WorkersAIClient(base_url=base_url, api_key=api_key)
    reply = await client.chat_completion(
        {"model": "@cf/meta/llama-3-8b-instruct", "messages": [...], "stream": True},
        on_progress=print,
    )
"""

import asyncio
import logging
from typing import Any, Coroutine, Optional

import httpx
from pydantic import ValidationError

from workers_ai.config import (
    DEFAULT_HEADERS,
    DEFAULT_TIMEOUT_SECONDS,
    TEXT_GENERATION_TASK,
    ClientOptions,
)
from workers_ai.endpoints import Operation, resolve_endpoint
from workers_ai.errors import (
    Cancelled,
    ConfigurationError,
    ProtocolFailure,
    StreamFailure,
    TransportFailure,
)
from workers_ai.schema import ChatCompletionResponse, ModelSearchResponse
from workers_ai.sse import aiter_sse
from workers_ai.stream import ProgressCallback, StreamSession, StreamState

logger = logging.getLogger(__name__)

FETCH_MODELS_HINT = (
    "Failed to fetch models from Workers AI API. If you are not using Workers AI "
    "directly, and instead, through some aggregator or reverse proxy that handles "
    "fetching via OpenAI spec, ensure the name of the endpoint doesn't start with "
    "`workersai` (case-insensitive)."
)


async def _run_abortable(work: Coroutine[Any, Any, str], abort_event: Optional[asyncio.Event]) -> str:
    """
    Await `work`, abandoning it as soon as `abort_event` is set.

    Raises:
        Cancelled: If the event fired before the work settled
    """
    if abort_event is None:
        return await work
    if abort_event.is_set():
        work.close()
        raise Cancelled("Request aborted before it was sent")

    task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(abort_event.wait())
    try:
        done, _ = await asyncio.wait(
            {task, watcher}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        watcher.cancel()
        raise
    watcher.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise Cancelled("Request aborted by caller")


def _build_headers(default_headers: dict[str, str], api_key: str) -> dict[str, str]:
    """
    Request headers with the bearer token.

    Raises:
        ConfigurationError: If a header value is not ASCII-encodable
    """
    headers = {**default_headers, "Authorization": f"Bearer {api_key}"}
    try:
        httpx.Headers(headers)
    except UnicodeEncodeError as e:
        raise ConfigurationError(
            f"Workers AI API key and headers must be ASCII: {e}"
        ) from e
    return headers


class WorkersAIClient:
    """
    Client for one Workers AI base address and API token.

    Configuration is read-only during calls, so one instance can serve
    concurrent completions; every call owns its own HTTP client and
    streaming state.

    Args:
        base_url: Direct API or AI Gateway base address
        api_key: Bearer token
        default_headers: Extra request headers (default: JSON content type)
        stream_rate: Milliseconds to pause after each streamed fragment
        timeout_seconds: HTTP timeout for each request

    Raises:
        ValueError: If api_key is empty
        ConfigurationError: If base_url is not a valid absolute URL
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        default_headers: Optional[dict[str, str]] = None,
        stream_rate: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        if not api_key:
            raise ValueError("Workers AI API key required.")
        self._base_url = base_url
        self._api_key = api_key
        # None when the host is neither the direct API nor the gateway;
        # reported on first chat_completion() call.
        self._run_url = resolve_endpoint(base_url, Operation.RUN)
        self.set_options(
            default_headers=default_headers,
            stream_rate=stream_rate,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def from_options(cls, options: ClientOptions) -> "WorkersAIClient":
        return cls(
            base_url=options.base_url,
            api_key=options.api_key,
            default_headers=dict(options.default_headers),
            stream_rate=options.stream_rate,
            timeout_seconds=options.timeout_seconds,
        )

    @property
    def options(self) -> ClientOptions:
        """A copy of the current settings; change them with set_options()."""
        return self._options.model_copy(deep=True)

    @property
    def run_url(self) -> Optional[str]:
        return self._run_url

    def set_options(
        self,
        default_headers: Optional[dict[str, str]] = None,
        stream_rate: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        """
        Replace the optional settings wholesale.

        Anything not passed falls back to its default, not to the
        previous value.
        """
        overrides: dict[str, Any] = {
            "default_headers": (
                dict(default_headers) if default_headers is not None else dict(DEFAULT_HEADERS)
            ),
        }
        if stream_rate is not None:
            overrides["stream_rate"] = stream_rate
        if timeout_seconds is not None:
            overrides["timeout_seconds"] = timeout_seconds
        self._options = ClientOptions(
            base_url=self._base_url, api_key=self._api_key, **overrides
        )

    # ─────────────────────────────────────────────────────────────────
    # MODEL DISCOVERY
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def fetch_models(
        base_url: Optional[str],
        api_key: Optional[str],
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> list[str]:
        """
        List text-generation model names, in the order the API returns them.

        Never raises: a missing base URL or key, an unsupported host, or
        any request/parse failure yields an empty list.
        """
        if not base_url or not api_key:
            return []

        try:
            endpoint = resolve_endpoint(base_url, Operation.MODELS_SEARCH)
            if endpoint is None:
                logger.debug(
                    f"WorkersAIClient.fetch_models: unsupported host in {base_url}"
                )
                return []

            async with httpx.AsyncClient(timeout=timeout_seconds) as client:
                response = await client.get(
                    endpoint, headers={"Authorization": f"Bearer {api_key}"}
                )
                response.raise_for_status()
            data = ModelSearchResponse.model_validate_json(response.content)
        except (ConfigurationError, httpx.HTTPError, ValueError) as e:
            logger.error(f"{FETCH_MODELS_HINT} ({e})")
            return []

        return [m.name for m in data.result if m.task.name == TEXT_GENERATION_TASK]

    @staticmethod
    def get_model_label(model: str) -> str:
        """Short display label: "@cf/meta/llama-3-8b-instruct" -> "llama-3-8b-instruct"."""
        return model.split("/")[-1]

    # ─────────────────────────────────────────────────────────────────
    # CHAT COMPLETION
    # ─────────────────────────────────────────────────────────────────

    async def chat_completion(
        self,
        payload: dict[str, Any],
        on_progress: ProgressCallback,
        abort_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Run a chat completion and return the full reply.

        Args:
            payload: Request body; must contain "model". When "stream" is
                true the reply is streamed through on_progress.
            on_progress: Receives each streamed fragment, then "[DONE]"
            abort_event: Set it to abort the request

        Raises:
            ConfigurationError: If the base URL host is unsupported or the
                API key or headers are not ASCII
            TransportFailure: If the service could not be reached
            ProtocolFailure: On non-success status or unexpected body
            StreamFailure: If the event stream broke mid-way
            Cancelled: If abort_event was set before the call settled
        """
        if self._run_url is None:
            raise ConfigurationError(
                f"Unsupported Workers AI base URL: {self._base_url}. "
                "Use api.cloudflare.com or gateway.ai.cloudflare.com."
            )
        model_id = payload.get("model")
        if not model_id:
            raise ValueError("Chat payload requires a 'model'.")

        endpoint = f"{self._run_url}/{model_id}"
        headers = _build_headers(self._options.default_headers, self._api_key)

        if payload.get("stream"):
            work = self._stream_completion(
                endpoint, headers, payload, on_progress, abort_event
            )
        else:
            work = self._complete(endpoint, headers, payload)
        return await _run_abortable(work, abort_event)

    async def _complete(
        self, endpoint: str, headers: dict[str, str], payload: dict[str, Any]
    ) -> str:
        model_id = payload["model"]
        try:
            async with httpx.AsyncClient(timeout=self._options.timeout_seconds) as client:
                response = await client.post(endpoint, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"WorkersAIClient.chat_completion: {model_id} request failed: {e}")
            raise TransportFailure(
                f"Failed to reach Workers AI for {model_id}: {e}"
            ) from e

        body = response.text
        parsed = None
        try:
            parsed = response.json()
        except ValueError:
            pass

        completion = None
        if response.status_code == 200 and parsed is not None:
            try:
                completion = ChatCompletionResponse.model_validate(parsed)
            except ValidationError:
                completion = None

        if completion is None or not completion.success or completion.result is None:
            err = ProtocolFailure(
                f"Failed to get completion. HTTP {response.status_code} - {body}",
                status=response.status_code,
                body=body,
                json=parsed,
            )
            logger.error(f"WorkersAIClient.chat_completion: {err}")
            raise err

        logger.debug(
            f"WorkersAIClient.chat_completion: {model_id} response: "
            f"{completion.result.response!r}"
        )
        return completion.result.response

    async def _stream_completion(
        self,
        endpoint: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        on_progress: ProgressCallback,
        abort_event: Optional[asyncio.Event],
    ) -> str:
        session = StreamSession(
            model_id=payload["model"],
            on_progress=on_progress,
            stream_rate=self._options.stream_rate,
            abort_event=abort_event,
        )
        try:
            async with httpx.AsyncClient(timeout=self._options.timeout_seconds) as client:
                async with client.stream(
                    "POST",
                    endpoint,
                    json=payload,
                    headers={**headers, "Accept": "text/event-stream"},
                ) as response:
                    await session.open(response)
                    async for event in aiter_sse(response.aiter_lines()):
                        if await session.dispatch(event):
                            break
        except httpx.HTTPError as e:
            if session.state is StreamState.OPEN:
                raise session.fail(TransportFailure(
                    f"Failed to reach Workers AI for {session.model_id}: {e}"
                )) from e
            raise session.fail(StreamFailure(
                f"Stream for {session.model_id} broke: {e}"
            )) from e
        return await session.close()
