"""Command line entry point.

Usage:
  slackmoji-notifier [-v] listen
  slackmoji-notifier [-v] generate EMOJI [--no-stream]
  slackmoji-notifier [-v] version
"""
from __future__ import annotations
import argparse
import platform
import sys
from typing import List, Optional
from pydantic import ValidationError
from . import __version__
from .config import get_settings
from .llm.client import GenerationError
from .llm.prompts import emoji_prompt
from .llm.providers import create_generator
from .log import get_logger, setup_logging

logger = get_logger("cli")


def installed_version() -> str:
    from importlib.metadata import PackageNotFoundError, version
    try:
        return version("slackmoji-notifier")
    except PackageNotFoundError:
        return __version__


def cmd_listen(args) -> int:
    from .main_socket import main as listen_main
    return listen_main(verbose=args.verbose)


def cmd_generate(args) -> int:
    """Debug path: stream one example sentence for an emoji name to stdout."""
    setup_logging(level="INFO", verbose=args.verbose)
    try:
        settings = get_settings()
        generator = create_generator(settings)
    except (ValidationError, ValueError, OSError) as e:
        logger.error(f"Failed to create LLM client: {e}")
        return 1

    try:
        if args.no_stream:
            print(generator.generate(emoji_prompt(args.emoji)))
        else:
            generator.generate(emoji_prompt(args.emoji), sink=sys.stdout)
            print()
    except GenerationError as e:
        logger.error(str(e))
        return 1
    return 0


def cmd_version(args) -> int:
    print(f"v{installed_version()}")
    if args.verbose:
        print(f"Python:     {platform.python_version()}")
        print(f"Platform:   {platform.platform()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="slackmoji-notifier",
        description="Notify a Slack channel about newly added custom emojis",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="enable verbose mode")
    sub = p.add_subparsers(dest="command", required=True)

    listen = sub.add_parser("listen", help="Listen for new emoji events in Slack")
    listen.set_defaults(func=cmd_listen)

    generate = sub.add_parser("generate", help="Generate an example sentence for an emoji name")
    generate.add_argument("emoji", help="Emoji name without colons, e.g. party_parrot")
    generate.add_argument("--no-stream", action="store_true", help="Print the sentence once it is complete")
    generate.set_defaults(func=cmd_generate)

    version = sub.add_parser("version", help="Print version")
    version.set_defaults(func=cmd_version)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
