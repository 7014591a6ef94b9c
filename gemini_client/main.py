#!/usr/bin/env python3
"""
Gemini REST Client - Command Line Entry Point.

Usage:
    python -m gemini_client.main ticker btcusd
    python -m gemini_client.main --sandbox balances
    python -m gemini_client.main orders
    python -m gemini_client.main cancel-all
    python -m gemini_client.main place buy btcusd 0.1 10123.5 --client-order-id grid-1

Environment:
    GEMINI_API_KEY: Gemini API key (required for private commands)
    GEMINI_API_SECRET: Gemini API secret (required for private commands)
    GEMINI_SANDBOX: Set to 'true' to use the sandbox exchange

Credentials can instead come from a file (--credentials-file) holding
api_key=... and api_secret=... lines, or a JSON object with those keys.
"""

import argparse
import logging
import sys
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import yaml

from config.settings import ClientConfig
from gemini_client.api import (
    ConfigurationError,
    GeminiClient,
    GeminiCredentials,
    GeminiError,
    load_credentials_from_file,
)
from gemini_client.utils.config_loader import ConfigLoader

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_CONFIG_ERROR = 2


def setup_logging(level: str, log_file: Optional[str] = None) -> None:
    """
    Configure logging for the client.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for logging
    """
    console_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file_format = (
        "%(asctime)s [%(levelname)s] %(name)s "
        "(%(filename)s:%(lineno)d): %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    # Console goes to stderr so command output stays parseable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # Log everything to file
        file_handler.setFormatter(logging.Formatter(file_format))
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="Gemini exchange REST client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Public ticker (no credentials needed)
  python -m gemini_client.main ticker btcusd

  # Balances on the sandbox exchange
  python -m gemini_client.main --sandbox balances

  # Limit order with debug logging
  python -m gemini_client.main --log-level DEBUG place buy btcusd 0.1 10123.5
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration YAML file (default: config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides config)",
    )
    parser.add_argument(
        "--sandbox",
        action="store_true",
        help="Use the sandbox exchange",
    )
    parser.add_argument(
        "--credentials-file",
        type=str,
        default=None,
        help="Read API key and secret from a file instead of the environment",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    ticker = commands.add_parser("ticker", help="Show the ticker for a pair")
    ticker.add_argument("pair", help="Trading pair (e.g. btcusd)")

    commands.add_parser("balances", help="Show account balances")
    commands.add_parser("orders", help="Show active orders")
    commands.add_parser("cancel-all", help="Cancel all session orders")

    place = commands.add_parser("place", help="Place an exchange limit order")
    place.add_argument("side", choices=["buy", "sell"])
    place.add_argument("symbol", help="btcusd, ethusd or ethbtc")
    place.add_argument("amount", help="Amount in base currency")
    place.add_argument("price", help="Limit price in quote currency")
    place.add_argument(
        "--client-order-id",
        default=None,
        help="Client order id (default: random)",
    )

    return parser


def _print_records(records: List) -> None:
    for record in records:
        print({k: str(v) for k, v in asdict(record).items()})


def _load_credentials(args: argparse.Namespace, loader: ConfigLoader) -> GeminiCredentials:
    """
    Resolve API credentials from --credentials-file or the environment.

    Raises:
        ValueError: If no usable credentials were found
    """
    if args.credentials_file:
        try:
            return load_credentials_from_file(args.credentials_file)
        except (OSError, KeyError) as e:
            raise ValueError(f"Cannot read credentials file: {e}") from e

    try:
        return loader.get_api_credentials()
    except ValueError:
        if args.command != "ticker":
            raise
        # Public endpoint, any placeholder key will do
        return GeminiCredentials("public", "public")


def run_command(args: argparse.Namespace, config: ClientConfig, loader: ConfigLoader) -> int:
    """
    Run one CLI command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    logger = logging.getLogger(__name__)

    try:
        credentials = _load_credentials(args, loader)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    with GeminiClient.from_config(config.gemini, credentials) as client:
        try:
            if args.command == "ticker":
                _print_records([client.get_ticker(args.pair)])
            elif args.command == "balances":
                _print_records(client.get_funds())
            elif args.command == "orders":
                _print_records(client.get_order_status())
            elif args.command == "cancel-all":
                client.cancel_all()
                print("Cancel requested")
            elif args.command == "place":
                order = client.place_limit_order(
                    side=args.side,
                    symbol=args.symbol,
                    client_order_id=args.client_order_id or uuid.uuid4().hex[:16],
                    amount=args.amount,
                    price=args.price,
                )
                _print_records([order])
        except ConfigurationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_CONFIG_ERROR
        except GeminiError as e:
            logger.error(f"{args.command} failed: {e}")
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_API_ERROR

    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    args = build_parser().parse_args(argv)

    try:
        loader = ConfigLoader(args.config)
        config = loader.load()
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.sandbox:
        config.gemini.sandbox = True
    if args.log_level:
        config.logging.level = args.log_level

    errors = config.validate()
    if errors:
        print("Configuration errors:", file=sys.stderr)
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.logging.level, config.logging.file_path)
    logging.getLogger(__name__).info(f"Using {config.gemini.base_url}")

    return run_command(args, config, loader)


def run() -> None:
    """Synchronous entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
