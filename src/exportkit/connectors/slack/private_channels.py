#!/usr/bin/env python3
"""
Slack export private channel fetcher

Standard Slack exports leave out private channels. This script copies an
export archive into a new one and, when the export has no groups.json,
adds the private channels the token's user belongs to: groups.json plus
<channel>/messages.json and <channel>/replies.json for each of them.

Usage:
    python private_channels.py -i export.zip -o export-with-private.zip --api-token <token>
    python private_channels.py -i export.zip -o out.zip --config config/slack/export.ini -v
"""

import os
import sys
import argparse
from pathlib import Path
from typing import List, Optional

from exportkit.utils.style import ansi
from exportkit.utils.logs import report
from exportkit.connectors.slack import engine
from exportkit.connectors.slack.api import SlackClient
from exportkit.connectors.slack.archive import rewrite_archive, RewriteResult
from exportkit.connectors.slack.errors import ExportError
from exportkit.connectors.slack.schema import Config

logger = report.settings(__file__)

TOKEN_ENV_VAR = "SLACK_API_TOKEN"


def setup_argument_parser() -> argparse.ArgumentParser:
    """Set up and return the argument parser"""
    parser = argparse.ArgumentParser(
        description='Fetch all private channels accessible to the user into a Slack export archive'
    )
    parser.add_argument('-i', '--input', required=True, type=Path, help='Input export archive (zip)')
    parser.add_argument('-o', '--output', required=True, type=Path, help='Output archive to create')
    parser.add_argument('-t', '--api-token',
                        help='Slack API token. Can be obtained here: https://api.slack.com/docs/oauth-test-tokens')
    parser.add_argument('-c', '--config', type=Path, default=engine.INI_FILE,
                        help=f'Config file (default: {engine.INI_FILE})')
    parser.add_argument('-v', '--verbose', action='store_true', help='Print progress while working')
    return parser


def validate_token_input(args: argparse.Namespace, config: Config) -> str:
    """Return the API token from the CLI, the config file or the environment."""
    token = args.api_token or config.api.token or os.environ.get(TOKEN_ENV_VAR, "")

    logger.info("Token source determination - CLI token: %s, Config token: %s, Env token: %s",
                'provided' if args.api_token else 'not provided',
                'available' if config.api.token else 'not available',
                'available' if os.environ.get(TOKEN_ENV_VAR) else 'not available')

    if not token:
        logger.error("No Slack API token available")
        print(f"{ansi.red}Error:{ansi.reset} No Slack API token provided.")
        print("Please either:")
        print(f"  1. Use {ansi.cyan}--api-token <token>{ansi.reset} argument")
        print(f"  2. Set {ansi.cyan}token{ansi.reset} in the [api] section of {ansi.cyan}{args.config}{ansi.reset}")
        print(f"  3. Export {ansi.cyan}{TOKEN_ENV_VAR}{ansi.reset} in your shell")
        sys.exit(1)

    return token


def validate_paths(args: argparse.Namespace) -> None:
    """Refuse to overwrite the input archive."""
    if args.input.resolve() == args.output.resolve():
        logger.error("Input and output archive are the same file: %s", args.input)
        print(f"{ansi.red}Error:{ansi.reset} Input and output archive must be different files.")
        sys.exit(1)


def display_results(result: RewriteResult, output: Path) -> None:
    """Print a short summary of the rewrite"""
    print(f"\n{ansi.magenta}Archive Summary:{ansi.reset}")
    print(f"  Output: {ansi.cyan}{output}{ansi.reset}")
    print(f"  Entries copied: {ansi.yellow}{len(result.copied)}{ansi.reset}")
    if result.groups_found:
        print(f"  {ansi.yellow}groups.json{ansi.reset} already present, private channels were not fetched")
    else:
        print(f"  Private channels added: {ansi.yellow}{len(result.channels)}{ansi.reset}")
        for name in result.channels:
            print(f"    - {ansi.yellow}{name}{ansi.reset}")

    if not result.closed_cleanly:
        print(f"\n⚠️  {ansi.yellow}Failed to close the output archive.{ansi.reset} "
              "Check the log file for details.")
    else:
        print(f"\n✅ Private channels {ansi.green}fetched successfully{ansi.reset}!")


def main(argv: Optional[List[str]] = None):
    """Main function - copies the archive and fetches private channels"""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    report.set_verbose(args.verbose)
    config = engine.load(args.config)
    token = validate_token_input(args, config)
    validate_paths(args)

    logger.info("Rewriting %s into %s", args.input, args.output)
    try:
        with SlackClient(token, base_url=config.api.base_url, timeout=config.api.timeout) as client:
            result = rewrite_archive(args.input, args.output, client, config.pagination)

    except ExportError as e:
        logger.error("%s: %s", type(e).__name__, e)
        print(f"\n❌ Failed to fetch private channels.\n\n{ansi.red}{e}{ansi.reset}")
        sys.exit(1)

    display_results(result, args.output)
    return result


if __name__ == '__main__':
    main()
