"""
Main entry point for llm_toolchat.
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.logging import RichHandler

from .constants import APP_DESCRIPTION, APP_NAME, APP_VERSION


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=APP_DESCRIPTION
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"{APP_NAME} {APP_VERSION}"
    )

    parser.add_argument(
        "-m", "--model",
        type=str,
        help="Model to use"
    )

    parser.add_argument(
        "--api-key",
        type=str,
        help="API key for this run (not saved)"
    )

    parser.add_argument(
        "--base-url",
        type=str,
        help="OpenAI-compatible API root"
    )

    parser.add_argument(
        "-e", "--execute",
        type=str,
        help="Send one prompt, print the reply and exit"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show debug logging"
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Route log records through rich; warnings only unless debugging."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=debug)],
        force=True,
    )


async def run_prompt(prompt: str, config) -> int:
    """Send a single prompt and print the reply."""
    from .cli import build_orchestrator
    from .errors import ValidationError

    orchestrator = build_orchestrator(config)
    try:
        session = await orchestrator.send(prompt)
    except ValidationError as e:
        print(f"Error: {e.human_message}")
        return 1

    message = orchestrator.log.last_message("assistant")
    if message is not None and message.content:
        print(message.content)
    if session.error is not None:
        print(f"Error: {session.error.human_message}")
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.debug)

    from .config import get_config
    config = get_config()

    if args.model:
        config.update_llm(model=args.model)

    if args.base_url:
        config.llm.base_url = args.base_url

    if args.api_key:
        config.set_api_key(args.api_key, persist=False)

    if args.execute:
        return asyncio.run(run_prompt(args.execute, config))

    from .cli import CLI
    cli = CLI(config)

    try:
        cli.run()
        return 0
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 0


if __name__ == "__main__":
    sys.exit(main())
