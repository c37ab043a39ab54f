"""CLI entry point for workers-ai.

Entry point:
    workers-ai models [--json]
    workers-ai chat --model <id> [--system <prompt>] [--no-stream] <prompt>

Base URL and API key come from WORKERS_AI_BASE_URL / WORKERS_AI_API_KEY
(a .env file is honoured) unless given with --base-url / --api-key.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Optional

from workers_ai.config import DONE_SENTINEL, ClientOptions, load_options_from_env

logger = logging.getLogger(__name__)

EXIT_CANCELLED = 130


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workers-ai",
        description="Cloudflare Workers AI chat client (direct API or AI Gateway).",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--base-url", default=None, help="Override WORKERS_AI_BASE_URL")
    parser.add_argument("--api-key", default=None, help="Override WORKERS_AI_API_KEY")
    parser.add_argument(
        "--stream-rate", type=int, default=None,
        help="Milliseconds between streamed fragments",
    )
    sub = parser.add_subparsers(dest="command")

    # models
    models_p = sub.add_parser("models", help="List text-generation models")
    models_p.add_argument(
        "--json", action="store_true", dest="json_output",
        help="JSON output (models with display labels)",
    )

    # chat
    chat_p = sub.add_parser("chat", help="Run a single chat completion")
    chat_p.add_argument("prompt", help="User message")
    chat_p.add_argument("--model", required=True, help="Model ID, e.g. @cf/meta/llama-3-8b-instruct")
    chat_p.add_argument("--system", default=None, help="System prompt")
    chat_p.add_argument(
        "--no-stream", action="store_false", dest="stream",
        help="Wait for the full reply instead of streaming",
    )

    return parser


def _resolve_options(args: argparse.Namespace) -> Optional[ClientOptions]:
    """Merge CLI overrides over environment configuration."""
    return load_options_from_env(
        base_url=args.base_url,
        api_key=args.api_key,
        stream_rate=args.stream_rate,
    )


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_models(options: ClientOptions, json_output: bool = False) -> int:
    """List text-generation models. Returns exit code."""
    from workers_ai.client import WorkersAIClient

    models = await WorkersAIClient.fetch_models(
        options.base_url, options.api_key, timeout_seconds=options.timeout_seconds
    )

    if json_output:
        json.dump(
            {
                "models": models,
                "labels": {m: WorkersAIClient.get_model_label(m) for m in models},
            },
            sys.stdout,
            indent=2,
        )
        sys.stdout.write("\n")
    else:
        for model_id in models:
            print(model_id)

    if not models:
        print("No text-generation models found.", file=sys.stderr)
        return 1
    return 0


def _build_payload(model: str, prompt: str, system: Optional[str], stream: bool) -> dict:
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return {"model": model, "messages": messages, "stream": stream}


async def _cmd_chat(
    options: ClientOptions,
    model: str,
    prompt: str,
    system: Optional[str] = None,
    stream: bool = True,
) -> int:
    """Run one completion, echoing fragments as they arrive. Returns exit code."""
    from workers_ai.client import WorkersAIClient
    from workers_ai.errors import Cancelled, WorkersAIError

    try:
        client = WorkersAIClient.from_options(options)
    except WorkersAIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    abort = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, abort.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows / non-main thread: Ctrl-C falls back to KeyboardInterrupt

    def on_progress(text: str) -> None:
        if text == DONE_SENTINEL:
            sys.stdout.write("\n")
        else:
            sys.stdout.write(text)
        sys.stdout.flush()

    try:
        reply = await client.chat_completion(
            _build_payload(model, prompt, system, stream),
            on_progress=on_progress,
            abort_event=abort,
        )
    except Cancelled:
        print("\nCancelled.", file=sys.stderr)
        return EXIT_CANCELLED
    except WorkersAIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    if not stream:
        print(reply)
    return 0


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main(argv: Optional[list[str]] = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    from dotenv import load_dotenv
    load_dotenv()

    try:
        options = _resolve_options(args)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    if options is None:
        print(
            "Error: set WORKERS_AI_BASE_URL and WORKERS_AI_API_KEY "
            "(or pass --base-url / --api-key)",
            file=sys.stderr,
        )
        sys.exit(1)

    # Dispatch
    if args.command == "models":
        code = asyncio.run(_cmd_models(options, json_output=args.json_output))
    elif args.command == "chat":
        code = asyncio.run(_cmd_chat(
            options,
            model=args.model,
            prompt=args.prompt,
            system=args.system,
            stream=args.stream,
        ))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
