"""Application entry point: command registry and dispatcher."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from azure_pm.core.config import DEFAULT_SETTINGS_PATH, ConfigurationError
from azure_pm.core.devops_client import AuthenticationError, DevOpsAPIError

logger = logging.getLogger(__name__)

# (flags, add_argument kwargs)
ArgumentSpec = tuple[Sequence[str], dict[str, Any]]


@dataclass(slots=True)
class Command:
    name: str
    handler: Callable[[argparse.Namespace], Any]
    help: str = ""
    arguments: list[ArgumentSpec] = field(default_factory=list)


COMMANDS: dict[str, Command] = {}


def register_command(name: str, help: str = "", arguments: Sequence[ArgumentSpec] = ()):
    def decorator(func):
        COMMANDS[name] = Command(name, func, help, list(arguments))
        return func

    return decorator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="azure-pm",
        description="Sync Azure DevOps work items and report sprint analytics.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--settings",
        default=str(DEFAULT_SETTINGS_PATH),
        help=f"YAML settings file (default: {DEFAULT_SETTINGS_PATH})",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True
    for command in COMMANDS.values():
        sub = subparsers.add_parser(command.name, help=command.help, description=command.help)
        for flags, kwargs in command.arguments:
            sub.add_argument(*flags, **kwargs)
        sub.set_defaults(handler=command.handler)
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        result = args.handler(args)
    except (ConfigurationError, AuthenticationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except DevOpsAPIError as exc:
        print(f"error: Azure DevOps request failed: {exc}", file=sys.stderr)
        return 1
    if result is not None:
        print(json.dumps(result, indent=2, default=str))
    return 0
