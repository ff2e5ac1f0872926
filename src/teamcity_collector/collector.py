"""One collection run: discover projects and builds, then normalize each build.

This module walks every configured instance sequentially:

- list projects and their build stubs (``TeamcityClient.get_instance_projects``);
- fetch and normalize each stub (``TeamcityClient.get_build_details``);
- drop running or unreadable builds, counting them as skipped.

An instance whose project discovery fails is recorded as failed and the run
moves on to the next instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import Config
from .errors import ApiError
from .models import Build, Project
from .teamcity_client import TeamcityClient

logger = logging.getLogger(__name__)


@dataclass
class InstanceResult:
    """Normalized builds per project for one TeamCity instance."""

    instance_url: str
    projects: Dict[Project, List[Build]] = field(default_factory=dict)
    skipped_builds: int = 0
    error: Optional[str] = None

    @property
    def build_count(self) -> int:
        return sum(len(builds) for builds in self.projects.values())


@dataclass
class CollectionResult:
    """Outcome of one collection run over all configured instances."""

    instances: List[InstanceResult] = field(default_factory=list)

    @property
    def failed_instances(self) -> List[InstanceResult]:
        return [instance for instance in self.instances if instance.error is not None]


def collect_instance(client: TeamcityClient, instance_url: str) -> InstanceResult:
    """Collect every completed build of every project on one instance.

    Raises:
        ApiError: If project or build discovery fails at the transport level.
    """
    result = InstanceResult(instance_url=instance_url)
    discovered = client.get_instance_projects(instance_url)

    for project, stubs in discovered.items():
        builds: List[Build] = []
        for stub in stubs:
            build = client.get_build_details(stub.url, instance_url)
            if build is None:
                result.skipped_builds += 1
                continue
            builds.append(build)
        result.projects[project] = builds

    logger.info(
        "Collected builds for instance",
        extra={
            "instance_url": instance_url,
            "projects_total": len(result.projects),
            "builds_total": result.build_count,
            "builds_skipped": result.skipped_builds,
        },
    )
    return result


def run_collection(client: TeamcityClient, config: Config) -> CollectionResult:
    """Run :func:`collect_instance` for each configured instance, in order."""
    collection = CollectionResult()

    for instance_url in config.instance_urls:
        try:
            collection.instances.append(collect_instance(client, instance_url))
        except ApiError as exc:
            logger.error("Collection failed for instance %s: %s", instance_url, exc)
            collection.instances.append(InstanceResult(instance_url=instance_url, error=str(exc)))

    return collection
