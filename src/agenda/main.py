"""Command-line entry point for printing a day's agenda.

Usage:
    agenda                          # today's events using the saved config
    agenda --date 2024-01-01        # a specific day
    agenda --init                   # write the default config and exit
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path

from pydantic import ValidationError

from .formatting import EventFormatter, TemplateError, render_agenda
from .pipeline import fetch_agenda
from .providers import CalendarProviderError, create_provider
from .settings import (
    ConfigError,
    EnvSettings,
    apply_overrides,
    default_config,
    load_or_initialize,
    persist,
    resolve_config_path,
)

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agenda",
        description="Print a day's calendar events as markdown",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="Path to the configuration file (default: per-user config dir)"
    )
    parser.add_argument("--init", action="store_true", help="Write the default configuration file and exit")
    parser.add_argument("--provider", help="Override the provider from the config")
    parser.add_argument("--time-format", help="Override the strftime time format from the config")
    parser.add_argument("--event-template", help="Override the event template from the config")
    parser.add_argument(
        "--date", type=_parse_date, default=None, help="Day to show as YYYY-MM-DD (default: today)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def cmd_init(config_path: Path) -> int:
    config = default_config()
    persist(config, config_path)
    print(f"Created default configuration file at: {config_path}")
    provider_settings = config.providers[config.provider]
    print(f"Set your API key in the {provider_settings.env_api_key} environment variable.")
    return 0


def cmd_run(args: argparse.Namespace, config_path: Path, env: EnvSettings) -> int:
    config = load_or_initialize(config_path)
    config = apply_overrides(
        config,
        provider=args.provider,
        time_format=args.time_format,
        event_template=args.event_template,
    )
    LOGGER.debug("Using provider: %s", config.provider)
    LOGGER.debug("Time format: %s", config.time_format)
    LOGGER.debug("Event template: %s", config.event_template)

    timezone = env.timezone
    target_date = args.date or datetime.now(timezone).date()

    formatter = EventFormatter(
        config.time_format,
        config.event_template,
        heading_template=config.heading_template,
    )
    provider = create_provider(config.provider, config, timezone=timezone)
    agenda = fetch_agenda(provider, target_date)

    if agenda.is_empty:
        print(f"No events found for {target_date.isoformat()}.")
        return 0

    for line in render_agenda(agenda, formatter):
        print(line)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        env = EnvSettings()
        config_path = resolve_config_path(args.config, env)
        if args.init:
            return cmd_init(config_path)
        return cmd_run(args, config_path, env)
    except ValidationError as exc:
        print(f"Error: invalid environment settings:\n{exc}", file=sys.stderr)
    except ConfigError as exc:
        print(f"Error: configuration: {exc}", file=sys.stderr)
    except CalendarProviderError as exc:
        print(f"Error: failed to get events: {exc}", file=sys.stderr)
    except TemplateError as exc:
        print(f"Error: {exc}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
