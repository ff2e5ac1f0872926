"""Command-line argument parsing for the TeamCity build collector."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def _int(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for a collection run.

    Returns:
        Parsed CLI arguments: instance URLs, page size, log capture flag,
        output path, request timeout and verbosity.
    """
    parser = argparse.ArgumentParser(
        prog="teamcity-collector",
        description=(
            "Collect projects, builds and source changesets from TeamCity "
            "instances and normalize them."
        ),
    )

    parser.add_argument(
        "--instance",
        dest="instances",
        action="append",
        default=[],
        help="TeamCity instance URL, optionally with user:apiKey@ (repeatable; "
        "default: TEAMCITY_INSTANCES).",
    )
    parser.add_argument(
        "--page-size",
        type=_int,
        default=None,
        help="Project listing page size; 0 or less means 1000 (default: TEAMCITY_PAGE_SIZE or 1000).",
    )
    parser.add_argument(
        "--save-log",
        action="store_true",
        help="Download each build's console log.",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the normalized records as JSON to this file.",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_int,
        default=None,
        help="Per-request timeout in seconds (default: 30).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args(argv)
