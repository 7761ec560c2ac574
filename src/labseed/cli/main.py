from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from labseed import __version__
from labseed.cli.user import handle_user_command, register_user_parser
from labseed.logging import configure_logging


def build_common_parser() -> argparse.ArgumentParser:
    """Options shared by every subcommand."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--host", help="GitLab URL, e.g. https://gitlab.example.com (or GITLAB_URL env)")
    common.add_argument("--token", help="Admin personal access token (or GITLAB_TOKEN env)")
    common.add_argument("-v", "--verbose", action="store_true", help="Show every step and debug logs")
    common.add_argument(
        "--log-format",
        choices=["console", "json"],
        default="console",
        help="Progress output: rich console or JSON log records (default: console)",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labseed",
        description="Bulk provisioning and cleanup of GitLab users, groups and projects",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    register_user_parser(subparsers, build_common_parser())
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    verbose = getattr(args, "verbose", False)
    json_logs = getattr(args, "log_format", "console") == "json"
    # JSON mode carries step progress as INFO records
    if verbose:
        level = logging.DEBUG
    elif json_logs:
        level = logging.INFO
    else:
        level = logging.WARNING
    configure_logging(level, json_logs=json_logs)

    if args.command == "user":
        sys.exit(handle_user_command(args))

    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
