"""Entry point and orchestration for a TeamCity collection run."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .cli import parse_args
from .collector import run_collection
from .config import load_config
from .errors import ConfigurationError
from .report import generate_report, to_json
from .teamcity_client import TeamcityClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_API = 4


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr at INFO, or DEBUG when ``verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def orchestrate_collection(argv: Optional[Sequence[str]] = None) -> int:
    """Run one collection over every configured instance.

    Returns:
        Process exit code: ``0`` on success (partial results included),
        ``2`` for configuration errors, ``4`` when every instance failed at
        the API level, ``1`` for anything unexpected.
    """
    try:
        args = parse_args(argv)
        configure_logging(args.verbose)

        config = load_config(
            instance_urls=args.instances,
            page_size=args.page_size,
            save_log=args.save_log,
            timeout_seconds=args.timeout,
        )
        client = TeamcityClient(config=config)

        print(f"Collecting from {len(config.instance_urls)} TeamCity instance(s)...")
        collection = run_collection(client, config)

        print(generate_report(collection))

        if args.output:
            Path(args.output).write_text(to_json(collection), encoding="utf-8")
            print(f"Wrote normalized records to '{args.output}'.")

        if collection.instances and len(collection.failed_instances) == len(collection.instances):
            return EXIT_API
        return EXIT_OK
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except Exception:
        logger.exception("Unexpected error during collection")
        return EXIT_UNEXPECTED


def main() -> None:
    raise SystemExit(orchestrate_collection())


if __name__ == "__main__":
    main()
