"""Entry point for the command-line interface."""

from __future__ import annotations

import argparse
import logging

from ..log import configure_logging, logger
from ..settings import AppSettings, load_app_settings
from .commands import COMMANDS


def build_parser() -> argparse.ArgumentParser:
    """Construct argument parser for CLI commands."""
    parser = argparse.ArgumentParser(
        prog="clinicalpaws", description="ClinicalPaws consultation client"
    )
    parser.add_argument("--settings", help="path to JSON/TOML settings")
    parser.add_argument(
        "--token",
        help="bearer token; defaults to $CLINICALPAWS_ACCESS_TOKEN",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log requests to the console"
    )
    sub = parser.add_subparsers(dest="command", required=True)
    for name, cmd in COMMANDS.items():
        p = sub.add_parser(name, help=cmd.help)
        cmd.add_arguments(p)
        p.set_defaults(func=cmd.func)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    log_path = configure_logging(logging.INFO if args.verbose else logging.WARNING)
    logger.debug("Running %s; diagnostics in %s", args.command, log_path)
    settings = AppSettings()
    if args.settings:
        try:
            settings = load_app_settings(args.settings)
        except (OSError, ValueError) as exc:
            parser.error(f"invalid settings file {args.settings}: {exc}")
    args.app_settings = settings
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
