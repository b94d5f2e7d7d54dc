#!/usr/bin/env python3
"""
CodeMind - Terminal chat client for Google Gemini.

Entry point: parses arguments, configures logging, builds the client and
runs the interactive command loop.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .base_client import Colors
from .client_manager import ClientManager
from .command_handler import async_command_loop
from .config import Config
from .logging_utils import LOG_LEVELS, configure_logging
from .storage import PersistenceError

logger = logging.getLogger(__name__)


def display_welcome_message():
    """Display the welcome banner."""
    print(f"{Colors.HEADER}{Colors.BOLD}")
    print("╔═════════════════════════════════════════╗")
    print("║                CodeMind                 ║")
    print("║         ----------------------          ║")
    print("║     Organised chats with Gemini         ║")
    print("╚═════════════════════════════════════════╝")
    print(f"{Colors.ENDC}")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="codemind",
        description="CodeMind - Chat with Google Gemini, organised into folders."
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('--api-key',
                        help='Gemini API key. Stored in the credential store and used for this session.')
    parser.add_argument('--model',
                        help='Model to use (e.g., gemini-2.0-flash). Overrides config.')
    parser.add_argument('--data-file', dest='data_file',
                        help='JSON file holding chats and folders. Overrides config.')
    parser.add_argument('--log-level', dest='log_level', type=str.upper,
                        choices=LOG_LEVELS,
                        help='Log level for the log file. Overrides config.')
    parser.add_argument('--quiet', action='store_true',
                        help='Suppress non-essential output messages (like "Config loaded").')

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument('--config', help='Path to configuration file.')
    config_group.add_argument('--setup', action='store_true',
                              help='Run configuration setup wizard.')

    advanced_group = parser.add_argument_group('Generation Parameters (Overrides Config)')
    advanced_group.add_argument('--temp', '--temperature', type=float, dest='temperature',
                                help='Generation temperature (e.g., 0.7).')
    advanced_group.add_argument('--max-tokens', type=int, dest='max_tokens',
                                help='Maximum output tokens (e.g., 800).')
    advanced_group.add_argument('--top-p', type=float, dest='top_p',
                                help='Top-p sampling parameter (e.g., 0.95).')
    advanced_group.add_argument('--top-k', type=int, dest='top_k',
                                help='Top-k sampling parameter (e.g., 40).')

    return parser.parse_args(argv)


def effective_generation_params(config: Config, args: argparse.Namespace) -> Dict[str, Any]:
    """Layers command-line generation parameters over the configured ones."""
    params = dict(config.get("generation_params", {}))
    if args.temperature is not None:
        params["temperature"] = args.temperature
    if args.max_tokens is not None:
        params["max_output_tokens"] = args.max_tokens
    if args.top_p is not None:
        params["top_p"] = args.top_p
    if args.top_k is not None:
        params["top_k"] = args.top_k
    return params


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    # The wizard prints its own messages; keep config loading quiet before it.
    config = Config(args.config, override_api_key=args.api_key, quiet=args.setup or args.quiet)

    log_level = args.log_level or str(config.get("log_level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        print(f"{Colors.WARNING}Ignoring unknown log level '{log_level}' in config; using INFO.{Colors.ENDC}")
        log_level = "INFO"
    configure_logging(config.get("log_file"), log_level)
    logger.info(f"CodeMind {__version__} starting")

    if args.setup:
        config.setup_wizard()
        return 0

    if args.api_key:
        if config.keychain.save_api_key(args.api_key):
            if not args.quiet:
                print(f"{Colors.GREEN}API Key Saved!{Colors.ENDC}")
        else:
            print(f"{Colors.WARNING}Could not store the API key; it will only be used for this session.{Colors.ENDC}")

    display_welcome_message()

    try:
        client = ClientManager.create_client(
            config=config,
            model_override=args.model,
            data_file_override=Path(args.data_file).expanduser() if args.data_file else None,
            params_override=effective_generation_params(config, args),
        )
    except PersistenceError as e:
        print(f"{Colors.FAIL}Error opening chat library: {e}{Colors.ENDC}")
        return 1

    if not args.quiet:
        print(f"{Colors.CYAN}Model: {client.current_model_name}{Colors.ENDC}")
        if not config.get_api_key():
            print(f"{Colors.WARNING}No API key set. Use /apikey <key> or set GEMINI_API_KEY.{Colors.ENDC}")

    asyncio.run(async_command_loop(client, keychain=config.keychain))
    return 0


if __name__ == "__main__":
    sys.exit(main())
