"""
CLI entry point for collecting web app queries.

Usage:
    python -m webview_query.runner                              # every sessions/*.session
    python -m webview_query.runner --manifest sessions.yaml     # sessions from a manifest
    python -m webview_query.runner --bot some_bot --url https://app.example/
    python -m webview_query.runner --alternate-query            # save decoded key/value pairs
    python -m webview_query.runner --list                       # list sessions and exit
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .client import TelethonWebAppClient
from .config.loader import ConfigLoader, WebViewQueryConfig
from .driver import SessionOutcome, process_multiple_sessions
from .errors import ConfigurationError
from .logging_config import configure_from_config
from .session.loader import SessionEntry, SessionManifestLoader, build_descriptors


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="Collect Telegram web app auth queries from bot sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m webview_query.runner
  python -m webview_query.runner --manifest sessions.yaml
  python -m webview_query.runner --bot some_bot --url https://app.example/
        """
    )

    parser.add_argument(
        "--manifest", "-m",
        type=Path,
        help="YAML manifest listing sessions (default: scan the sessions directory)"
    )

    parser.add_argument(
        "--sessions-dir",
        dest="sessions_dir",
        help="Directory holding .session files"
    )

    parser.add_argument(
        "--output-dir", "-o",
        dest="output_dir",
        help="Directory for query_<bot>.txt files"
    )

    parser.add_argument(
        "--bot",
        help="Bot username for sessions that do not name one"
    )

    parser.add_argument(
        "--url",
        help="Web app URL for sessions that do not name one"
    )

    parser.add_argument(
        "--alternate-query",
        dest="alternate_query",
        action="store_true",
        help="Save decoded key/value pairs instead of the raw init-data string"
    )

    parser.add_argument(
        "--list", "-l",
        action="store_true",
        help="List the sessions that would be processed and exit"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log at DEBUG level"
    )

    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    overrides = {
        "sessions_dir": args.sessions_dir,
        "output_dir": args.output_dir,
        "bot": args.bot,
        "url": args.url,
    }
    if args.alternate_query:
        overrides["use_default_query_type"] = False
    return overrides


def list_sessions(entries: List[SessionEntry]) -> None:
    """Print the sessions that would be processed."""
    if not entries:
        print("No sessions found.")
        return

    print(f"\nSessions ({len(entries)} total):\n")
    for entry in entries:
        mode = "raw" if entry.use_default_query_type else "decoded"
        print(f"  - {entry.label}: bot={entry.bot or '<unset>'} mode={mode} ({entry.session})")
    print()


async def run_sessions(
    config: WebViewQueryConfig,
    entries: List[SessionEntry],
) -> List[SessionOutcome]:
    """Build clients for ``entries`` and process them in order."""
    config.require_credentials()

    descriptors = build_descriptors(
        entries,
        lambda entry: TelethonWebAppClient.from_session_file(
            entry.session, config.api_id, config.api_hash
        ),
    )
    return await process_multiple_sessions(
        descriptors,
        output_dir=config.output_dir,
        platform=config.platform,
        max_attempts=config.max_timeout_attempts,
        timeout_delay=config.timeout_delay,
        rate_limit_padding=config.rate_limit_padding,
    )


def print_summary(outcomes: List[SessionOutcome]) -> None:
    succeeded = [o for o in outcomes if o.succeeded]
    print("-" * 40)
    print(f"Sessions: {len(outcomes)}  succeeded: {len(succeeded)}  failed: {len(outcomes) - len(succeeded)}")
    for outcome in outcomes:
        if not outcome.succeeded:
            print(f"  FAILED {outcome.label}: {outcome.error}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 when every session succeeded, 1 otherwise, 130 on interrupt).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = ConfigLoader().load(overrides=overrides_from_args(args))
        configure_from_config(config, verbose=args.verbose)
        entries = SessionManifestLoader(config).load(args.manifest)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.list:
        list_sessions(entries)
        return 0

    if not entries:
        print(f"No sessions found in {config.sessions_dir}", file=sys.stderr)
        return 1

    try:
        outcomes = asyncio.run(run_sessions(config, entries))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    print_summary(outcomes)
    return 0 if all(o.succeeded for o in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
