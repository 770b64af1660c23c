"""
discordlink CLI entry point.

    python -m discordlink run script.discord
    python -m discordlink query discordgroup@mybot,1234 member "someone#1234"
    python -m discordlink parse 'discord id:mybot message channel:555 "hi"'
    python -m discordlink config
"""

import argparse
import asyncio
import sys
from pathlib import Path

from discordlink import __version__
from discordlink.config.logging import get_logger, setup_logging
from discordlink.config.settings import Settings, load_settings


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="discordlink",
        description="Drive Discord bots from line-oriented discord commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"discordlink {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "config",
        help="Show current configuration",
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Connect the configured bots and execute a command script",
    )
    run_parser.add_argument(
        "script",
        nargs="?",
        default="-",
        help="Script file with one discord command per line ('-' for stdin, the default)",
    )

    query_parser = subparsers.add_parser(
        "query",
        help="Connect the configured bots and evaluate one reference attribute",
    )
    query_parser.add_argument(
        "reference",
        help="Reference identifier, e.g. discordgroup@mybot,1234",
    )
    query_parser.add_argument(
        "attribute",
        help="Attribute name, e.g. member",
    )
    query_parser.add_argument(
        "param",
        nargs="?",
        default=None,
        help="Attribute parameter, e.g. a member name",
    )

    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse a command line and print the result (no connection is made)",
    )
    parse_parser.add_argument(
        "line",
        help='Command line, e.g. \'discord id:mybot message channel:555 "hi"\'',
    )

    return parser


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("\n=== discordlink Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nConfigured bots: {', '.join(sorted(settings.discord.tokens)) or 'none'}")
    for bot_id, token in sorted(settings.discord.tokens.items()):
        logger.info(f"  {bot_id}: token {'set' if token else 'not set'}")
    logger.info(f"\nMembers intent: {settings.discord.members_intent}")
    logger.info(f"Presences intent: {settings.discord.presences_intent}")
    logger.info(f"Message content intent: {settings.discord.message_content_intent}")

    return 0


def cmd_parse(line: str) -> int:
    """Parse a command line and print the normalised command."""
    from discordlink.commands import parse_command
    from discordlink.errors import InvalidArgumentsError

    logger = get_logger(__name__)
    try:
        command = parse_command(line)
    except InvalidArgumentsError as e:
        logger.error(f"Invalid command: {e}")
        return 1
    print(command.model_dump_json(indent=2, exclude_none=True))
    return 0


async def _connect_configured(registry, settings: Settings) -> bool:
    logger = get_logger(__name__)
    ok = True
    for bot_id, token in settings.discord.tokens.items():
        try:
            await registry.connect(bot_id, token)
        except Exception as e:
            logger.error(f"Could not connect '{bot_id}': {e}")
            ok = False
    return ok


def _build_registry(settings: Settings):
    from discordlink.bot import DiscordSessionProvider
    from discordlink.registry import ConnectionRegistry

    return ConnectionRegistry(DiscordSessionProvider(settings.discord))


async def cmd_run(script: str, settings: Settings) -> int:
    """
    Execute a command script.

    Bots listed in DISCORD__TOKENS are connected first; every session is
    disconnected when the script ends.

    Returns:
        Exit code (0 when no command reported an error)
    """
    from discordlink.commands import CommandDispatcher
    from discordlink.runner import ScriptRunner

    logger = get_logger(__name__)

    if script == "-":
        lines = sys.stdin.read().splitlines()
    else:
        path = Path(script)
        if not path.exists():
            logger.error(f"Script does not exist: {path}")
            return 1
        lines = path.read_text(encoding="utf-8").splitlines()

    registry = _build_registry(settings)
    try:
        await _connect_configured(registry, settings)
        runner = ScriptRunner(CommandDispatcher(registry))
        await runner.run(lines)
        logger.info(f"Script finished: {len(runner.results)} command(s), {runner.error_count} error(s)")
        return 1 if runner.error_count else 0
    finally:
        await registry.close()


async def cmd_query(reference: str, attribute: str, param: str | None, settings: Settings) -> int:
    """Evaluate one attribute of a reference against the live bots."""
    from discordlink.references import parse_reference

    logger = get_logger(__name__)

    ref = parse_reference(reference)
    if ref is None:
        logger.error(f"Not a valid reference: {reference!r}")
        return 1
    if attribute.lower() not in ref.attribute_names():
        logger.error(f"{ref.PREFIX} has no attribute {attribute!r}. Available: {', '.join(ref.attribute_names())}")
        return 1

    registry = _build_registry(settings)
    try:
        if not await _connect_configured(registry, settings):
            return 1
        value = await ref.get_attribute(registry, attribute, param)
    finally:
        await registry.close()

    if value is None:
        print("(no value)")
    elif isinstance(value, list):
        for item in value:
            print(item)
    else:
        print(value)
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings)

    # Execute command
    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "parse":
        return cmd_parse(args.line)
    elif args.command == "run":
        return asyncio.run(cmd_run(args.script, settings))
    elif args.command == "query":
        return asyncio.run(cmd_query(args.reference, args.attribute, args.param, settings))
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
