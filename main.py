#!/usr/bin/env python3

import argparse
import logging
import sys

from pydantic import ValidationError

from api_client import BackendClient
from log_parser import MudLogParser
from logger import setup_logging
from session.parser_configuration import ParserConfiguration


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mudlogmap",
        description="Build a room/exit map from a MUD session transcript",
    )
    parser.add_argument("log_file", help="HTML transcript captured by the MUD client")
    parser.add_argument(
        "--zone-id",
        type=int,
        default=None,
        help="Default zone id (overrides the first zone banner)",
    )
    parser.add_argument(
        "--export", metavar="PATH", default=None, help="Write the map as JSON to PATH"
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not contact the storage service (no zone lookup, no saving)",
    )
    parser.add_argument(
        "--api-url", default=None, help="Storage API base URL (overrides configuration)"
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        default=None,
        help="TOML file with a [tool.mudlogmap] table (default: ./pyproject.toml)",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def print_summary(parser: MudLogParser, persistence_result=None) -> None:
    stats = parser.graph.get_stats()
    print("\n📊 Map Summary:")
    print(f"  - Lines processed: {parser.state.line_number}")
    print(f"  - Rooms: {stats['totalRooms']} ({stats['fingerprintedRooms']} with portal keys)")
    print(
        f"  - Exits: {stats['totalExits']} ({stats['blockedExits']} blocked, "
        f"{stats['zoneExits']} zone exits)"
    )
    print(f"  - Zone boundary rooms: {stats['zoneExitRooms']}")
    print(f"  - No-magic rooms: {len(parser.state.no_magic_rooms)}")
    if stats["conflicts"]:
        print(f"  - ⚠ Exit conflicts: {stats['conflicts']}")
    if parser.state.ambiguities:
        print(f"  - ⚠ Ambiguous identities: {len(parser.state.ambiguities)}")
    if persistence_result is not None:
        print(
            f"  - Saved: {persistence_result.rooms_saved} rooms "
            f"({persistence_result.rooms_failed} failed), "
            f"{persistence_result.exits_saved} exits "
            f"({persistence_result.exits_failed} failed, "
            f"{persistence_result.exits_skipped} skipped)"
        )


def run(args: argparse.Namespace) -> int:
    try:
        config = ParserConfiguration.load(args.config)
    except (FileNotFoundError, KeyError, ValidationError) as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 2

    if args.api_url:
        config.api_base_url = args.api_url

    log_level = logging.DEBUG if args.verbose else getattr(logging, config.log_level)
    logger = setup_logging(config.log_file, config.json_log_file, log_level=log_level)

    backend = None
    if not args.no_save:
        backend = BackendClient(config.api_base_url, config.request_timeout_seconds)

    parser = MudLogParser(config=config, logger=logger, backend=backend)
    persistence_result = None
    exit_code = 0
    try:
        try:
            parser.parse_file(args.log_file)
        except OSError as e:
            logger.error(
                f"Cannot read log file {args.log_file}: {e}",
                extra={"event_type": "log_file_error", "log_file": args.log_file},
            )
            return 1

        parser.resolve_zones(default_zone_id=args.zone_id)

        if args.export and not parser.export_to_json(args.export):
            exit_code = 1

        if backend is not None:
            persistence_result = parser.save()
    finally:
        if backend is not None:
            backend.close()

    print_summary(parser, persistence_result)
    return exit_code


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
