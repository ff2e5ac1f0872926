"""Summary reporting and JSON export for collection runs.

This module provides utilities for:
- Counting normalized builds per status.
- Computing linear-interpolation percentiles of build durations.
- Building a human-readable report per instance.
- Serializing the normalized records to JSON for downstream storage.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from .collector import CollectionResult, InstanceResult
from .models import Build, BuildStatus


def calculate_percentile(sorted_values: List[float], p: float) -> Optional[float]:
    """Calculate a percentile using linear interpolation.

    The input sequence is expected to already be sorted in ascending order.
    Empty input returns ``None``.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    if not sorted_values:
        return None

    if p <= 0:
        return sorted_values[0]

    if p >= 100:
        return sorted_values[-1]

    position = (len(sorted_values) - 1) * (p / 100.0)
    lower_index = math.floor(position)
    upper_index = math.ceil(position)

    if lower_index == upper_index:
        return sorted_values[int(position)]

    lower_value = sorted_values[lower_index]
    upper_value = sorted_values[upper_index]
    return lower_value + (upper_value - lower_value) * (position - lower_index)


def count_statuses(builds: List[Build]) -> Dict[BuildStatus, int]:
    """Count builds per status; every status is present, possibly with 0."""
    counts = {status: 0 for status in BuildStatus}
    for build in builds:
        counts[build.status] += 1
    return counts


def format_duration(milliseconds: Optional[float]) -> str:
    """Format milliseconds as ``HH:MM:SS`` (``"n/a"`` for ``None``)."""
    if milliseconds is None:
        return "n/a"

    total_seconds = int(round(milliseconds / 1000.0))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    remaining_seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{remaining_seconds:02d}"


def _instance_lines(instance: InstanceResult) -> List[str]:
    lines = [f"Instance: {instance.instance_url}"]
    if instance.error is not None:
        lines.append(f"   FAILED: {instance.error}")
        return lines

    builds = [build for project_builds in instance.projects.values() for build in project_builds]
    durations = sorted(float(build.duration) for build in builds if build.duration > 0)
    counts = count_statuses(builds)

    lines.extend(
        [
            f"   Projects: {len(instance.projects)}",
            f"   Builds: {len(builds)} (skipped: {instance.skipped_builds})",
            "   Status: " + ", ".join(f"{status.value}={counts[status]}" for status in BuildStatus),
            f"   Changesets: {sum(len(build.source_changesets) for build in builds)}",
            f"   Duration P50: {format_duration(calculate_percentile(durations, 50))}",
            f"   Duration P90: {format_duration(calculate_percentile(durations, 90))}",
        ]
    )
    return lines


def generate_report(collection: CollectionResult) -> str:
    """Generate a human-readable summary of a collection run."""
    lines = ["TeamCity Collection Report"]
    for instance in collection.instances:
        lines.append("")
        lines.extend(_instance_lines(instance))
    return "\n".join(lines)


def to_serializable(collection: CollectionResult) -> List[Dict[str, Any]]:
    """Convert a collection run into plain JSON-ready dictionaries."""
    instances: List[Dict[str, Any]] = []
    for instance in collection.instances:
        instances.append(
            {
                "instance_url": instance.instance_url,
                "error": instance.error,
                "skipped_builds": instance.skipped_builds,
                "projects": [
                    {
                        "name": project.name,
                        "display_name": project.display_name,
                        "url": project.url,
                        "builds": [asdict(build) for build in builds],
                    }
                    for project, builds in instance.projects.items()
                ],
            }
        )
    return instances


def to_json(collection: CollectionResult) -> str:
    """Serialize a collection run to an indented JSON document."""
    return json.dumps(to_serializable(collection), indent=2)
