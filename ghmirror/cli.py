"""Command-line interface for ghmirror.

This module provides the CLI commands and options for mirroring every
repository of a GitHub user or organization.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

import yaml

from .config import DEFAULT_CONFIG_PATH, MirrorConfig, default_config, load_config
from .errors import DiscoveryError, InvalidEntityError, OperationCancelled
from .github import GitHubClient
from .progress import ConsoleProgress
from .sync import RepoMirror


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration.

    Args:
        verbose: Enable debug logging if True
    """
    level = logging.DEBUG if verbose else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level, format=format_str, handlers=[logging.StreamHandler()]
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="ghmirror",
        description="Clone or update every repository of a GitHub user or organization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mirror all repositories of a user into ./octocat/
  python main.py octocat

  # Bare mirrors without forks, four at a time
  python main.py kubernetes --bare --skip-forks -j 4

  # Mirror into another directory
  python main.py octocat -o /srv/mirrors
        """.strip(),
    )

    parser.add_argument(
        "entity",
        help="User or organization whose repositories shall be mirrored",
    )

    parser.add_argument(
        "--bare",
        action="store_true",
        default=None,
        help="Create bare Git repositories (no working tree)",
    )

    parser.add_argument(
        "--skip-forks",
        action="store_true",
        default=None,
        help="Do not mirror forked repositories",
    )

    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Base directory; repositories go to OUTPUT/ENTITY/NAME (default: .)",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help=f"Path to a YAML configuration file (default: {DEFAULT_CONFIG_PATH} if present)",
    )

    parser.add_argument(
        "-j",
        "--workers",
        type=int,
        default=None,
        help="Number of repositories to process concurrently (default: 1)",
    )

    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="API request timeout in seconds (default: 30)",
    )

    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Repositories requested per API page (default: 100)",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )

    return parser


def resolve_config(args: argparse.Namespace) -> MirrorConfig:
    """Merge the configuration file with command-line overrides.

    Raises:
        FileNotFoundError: If an explicitly given config file is missing
        yaml.YAMLError: If the YAML is malformed
        ValueError: If a value is invalid
    """
    if args.config is not None:
        config = load_config(args.config)
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_config(DEFAULT_CONFIG_PATH)
    else:
        config = default_config()

    if args.output is not None:
        config["base_dir"] = str(args.output)
    if args.bare is not None:
        config["bare"] = args.bare
    if args.skip_forks is not None:
        config["skip_forks"] = args.skip_forks
    if args.workers is not None:
        if args.workers < 1:
            raise ValueError("--workers must be at least 1")
        config["workers"] = args.workers
    if args.timeout is not None:
        if args.timeout < 1:
            raise ValueError("--timeout must be at least 1")
        config["timeout"] = args.timeout
    if args.page_size is not None:
        if not 1 <= args.page_size <= 100:
            raise ValueError("--page-size must be between 1 and 100")
        config["page_size"] = args.page_size

    return config


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the CLI application."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = resolve_config(args)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    cancel_event = threading.Event()
    progress = ConsoleProgress()

    try:
        with GitHubClient(
            timeout=config["timeout"], page_size=config["page_size"]
        ) as client:
            try:
                repositories = client.discover(
                    args.entity,
                    filter_forks=config["skip_forks"],
                    cancel_event=cancel_event,
                )
            except InvalidEntityError as e:
                logger.error(f"Error getting repositories: {e}")
                sys.exit(1)
            except DiscoveryError as e:
                logger.error(f"Error getting repositories of {args.entity}: {e}")
                sys.exit(1)

        if not repositories:
            logger.info(f"{args.entity} has no repositories to mirror")
            sys.exit(0)

        mirror = RepoMirror(
            base_dir=Path(config["base_dir"]),
            bare=config["bare"],
            workers=config["workers"],
            reporter=progress,
        )
        result = mirror.mirror(args.entity, repositories, cancel_event=cancel_event)
        progress.finish()

        if result.is_success:
            logger.info(f"✓ Mirror completed successfully: {result}")
        else:
            logger.error(f"✗ Mirror completed with errors: {result}")
            for failure in result.failures:
                logger.error(f"  {failure.meta.name}: {failure.detail}")

        for diverged in result.needs_attention:
            logger.warning(f"  {diverged.meta.name} needs a manual merge: {diverged.detail}")

        sys.exit(0 if result.is_success else 1)

    except (KeyboardInterrupt, OperationCancelled):
        cancel_event.set()
        progress.finish()
        logger.info("Mirror interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == "__main__":
    main()
