"""
Vault Server - Main entry point.

This module runs one vault command per process:
- backup / automated / list / health (tools/vault_cli.py)
- restore (tools/restore.py)

Usage:
    python -m dbops.vault_server.main <command> [options]

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Configuration is validated before the store is opened
    - The store is always closed, whatever the command outcome
    - Exit codes are non-zero only for setup errors

How to change safely:
    - Map new error types to exit codes in run()
    - Keep logging on stderr so command output stays parseable
"""

from __future__ import annotations

import asyncio
import logging
import sys

import json_log_formatter

from .config import ObservabilityConfig, VaultConfig
from .errors import (
    ConfigurationError,
    ConnectivityError,
    PermissionDeniedError,
    SnapshotNotFoundError,
    ValidationError,
)
from .service import VaultService
from .tools.vault_cli import build_parser

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_PERMISSION_DENIED = 3


def setup_logging(config: ObservabilityConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Observability configuration
        verbose: Force DEBUG level
    """
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def execute(args, config: VaultConfig) -> int:
    """Run one parsed command against a freshly opened store."""
    service = VaultService.from_config(config)
    async with service:
        return await args.handler(service, args)


def run(argv: list[str] | None = None) -> int:
    """Parse arguments, run the command and map errors to exit codes."""
    args = build_parser().parse_args(argv)

    try:
        config = VaultConfig.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    setup_logging(config.observability, verbose=args.verbose)
    config.log_config()

    try:
        return asyncio.run(execute(args, config))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}", extra={"setting": e.setting})
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except PermissionDeniedError as e:
        logger.error(e.message, extra={"actor": e.actor})
        print(f"Permission denied: {e.message}", file=sys.stderr)
        return EXIT_PERMISSION_DENIED
    except ValidationError as e:
        logger.error(f"Invalid backup source: {e.message}", extra={"errors": e.errors})
        print(f"Invalid backup: {e.message}", file=sys.stderr)
        for error in e.errors:
            print(f"  {error}", file=sys.stderr)
        return EXIT_FAILURE
    except (ConnectivityError, SnapshotNotFoundError) as e:
        logger.error(e.message, extra={"code": e.code})
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("Cancelled", file=sys.stderr)
        return EXIT_FAILURE


def main() -> None:
    """Console entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
