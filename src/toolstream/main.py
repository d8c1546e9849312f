"""
toolstream command-line entry point.

Sends one prompt through a ``ChatSession`` and streams the answer to stdout
as it arrives.  Tool activity and the token summary go to stderr so stdout
stays clean for piping.

Examples::

    toolstream "What is the weather in Paris?" --builtin-tools
    TOOLSTREAM_MODEL=gpt-4o-mini toolstream "Hi" --json > exchange.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from toolstream.config import Settings, get_settings
from toolstream.conversation.events import StreamChunk
from toolstream.conversation.messages import ConversationResult
from toolstream.conversation.session import ChatSession
from toolstream.conversation.tools import DateTimeTool, WeatherTool
from toolstream.errors import ToolstreamError

logger = logging.getLogger(__name__)


class ConsoleObserver:
    """Prints streamed text to stdout and tool activity to stderr."""

    def __init__(self, show_reasoning: bool = False) -> None:
        self.show_reasoning = show_reasoning

    def __call__(self, chunk: StreamChunk) -> None:
        if chunk.is_text:
            sys.stdout.write(chunk.content or "")
            sys.stdout.flush()
        elif chunk.is_reasoning and self.show_reasoning:
            sys.stderr.write(chunk.content or "")
        elif chunk.is_tool_use_start:
            sys.stderr.write(f"\n[tool] {chunk.tool_name} ({chunk.tool_use_id})\n")
        elif chunk.is_message_stop and not chunk.is_tool_use_stop:
            sys.stdout.write("\n")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stream a prompt through an LLM, resolving tool calls automatically"
    )
    parser.add_argument("prompt", help="Prompt to send")
    parser.add_argument(
        "--model",
        default=settings.model,
        help=f"Model identifier (default: {settings.model})",
    )
    parser.add_argument("--system", default=settings.system_prompt, help="System prompt")
    parser.add_argument(
        "--temperature",
        type=float,
        default=settings.temperature,
        help=f"Sampling temperature, 0.0-1.0 (default: {settings.temperature})",
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=settings.max_tokens,
        help=f"Maximum output tokens per pass (default: {settings.max_tokens})",
    )
    parser.add_argument(
        "--thinking-budget",
        type=int,
        default=settings.thinking_budget,
        help="Enable reasoning with this token budget (requires --temperature 1.0)",
    )
    parser.add_argument(
        "--builtin-tools",
        action="store_true",
        help="Register the built-in weather and date/time tools",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full conversation result as JSON instead of streaming text",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def build_session(args: argparse.Namespace, settings: Settings) -> ChatSession:
    """Create a configured session from parsed arguments."""
    session = ChatSession.from_settings(
        settings.model_copy(
            update={
                "model": args.model,
                "temperature": args.temperature,
                "max_tokens": args.max_tokens,
                "system_prompt": args.system,
                "thinking_budget": args.thinking_budget,
            }
        )
    )
    if args.builtin_tools:
        session.add_tool(WeatherTool()).add_tool(DateTimeTool())
    return session


async def run(args: argparse.Namespace, settings: Settings) -> ConversationResult:
    session = build_session(args, settings)
    observer = None if args.json else ConsoleObserver(show_reasoning=args.debug)
    return await session.query(args.prompt, observer=observer)


def cli_main(argv: list[str] | None = None) -> int:
    """Entry point for the ``toolstream`` console script."""
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level="DEBUG" if args.debug else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        result = asyncio.run(run(args, settings))
    except ToolstreamError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    sys.stderr.write(
        f"[usage] tokens: {result.total_tokens} "
        f"(input: {result.input_tokens}, output: {result.output_tokens})\n"
    )
    return 0


if __name__ == "__main__":
    sys.exit(cli_main())
