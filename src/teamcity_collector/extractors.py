"""Normalization of TeamCity build payloads: status, changesets and git branches.

The same logical concept arrives in several shapes depending on the SCM
plugin that produced a build:

- commit identifiers are a numeric ``revision`` (SVN style) or a generic ``id``;
- authors are an embedded ``author`` object or a flat ``user`` string;
- commit times are an epoch-millis ``timestamp`` or a ``date`` string in one
  of two formats;
- branch names may be qualified with ``refs/remotes/<remote>/``,
  ``remotes/<remote>/`` or ``origin<N>/``.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set

from .models import Build, BuildStatus, RepoBranch, RepoType, SourceChangeset

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "SUCCESS": BuildStatus.SUCCESS,
    "UNSTABLE": BuildStatus.UNSTABLE,
    "FAILURE": BuildStatus.FAILURE,
    "ABORTED": BuildStatus.ABORTED,
}

_QUALIFIED_BRANCH_RE = re.compile(r"(?:refs/)?remotes/[^/]+/(.*)|(?:origin[0-9]*/)?(.*)", re.DOTALL)

_ISO_MILLIS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"
_ISO_MILLIS_LENGTH = len("yyyy-MM-ddTHH:mm:ss.SSS")
_GIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"
_TEAMCITY_DATE_FORMAT = "%Y%m%dT%H%M%S%z"


def json_array(payload: Mapping[str, Any], key: str) -> List[Any]:
    """Return ``payload[key]`` when it is a list, else an empty list."""
    value = payload.get(key)
    return value if isinstance(value, list) else []


def map_build_status(status: Any) -> BuildStatus:
    """Map a raw TeamCity status string to ``BuildStatus`` (exact, case-sensitive)."""
    if not isinstance(status, str):
        return BuildStatus.UNKNOWN
    return _STATUS_MAP.get(status, BuildStatus.UNKNOWN)


def strip_git_extension(url: str) -> str:
    """Remove a trailing ``.git`` suffix from a repository URL."""
    if url.endswith(".git"):
        return url[: -len(".git")]
    return url


def unqualified_branch(qualified_branch: str) -> str:
    """Strip remote qualifiers from a branch name.

    Handles ``refs/remotes/<remote>/<branch>``, ``remotes/<remote>/<branch>``,
    ``origin/<branch>`` (also ``origin2/`` etc.) and plain ``<branch>``.
    """
    match = _QUALIFIED_BRANCH_RE.fullmatch(qualified_branch)
    if match is None:
        return qualified_branch
    if match.group(1) is not None:
        return match.group(1)
    if match.group(2) is not None:
        return match.group(2)
    return qualified_branch


def _to_epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def parse_commit_date(value: str) -> Optional[int]:
    """Parse a changeset ``date`` string into epoch milliseconds.

    Tries ``yyyy-MM-ddTHH:mm:ss.SSS`` first (read as UTC; trailing zone or
    extra text is ignored), then the git style ``yyyy-MM-dd HH:mm:ss Z``.
    """
    try:
        parsed = datetime.strptime(value[:_ISO_MILLIS_LENGTH], _ISO_MILLIS_FORMAT)
        return _to_epoch_millis(parsed.replace(tzinfo=timezone.utc))
    except ValueError:
        pass

    try:
        return _to_epoch_millis(datetime.strptime(value.strip(), _GIT_DATE_FORMAT))
    except ValueError:
        return None


def parse_teamcity_date(value: Any) -> int:
    """Parse a TeamCity ``yyyyMMdd'T'HHmmssZ`` date into epoch millis (0 if unusable)."""
    if not isinstance(value, str) or not value:
        return 0
    try:
        return _to_epoch_millis(datetime.strptime(value, _TEAMCITY_DATE_FORMAT))
    except ValueError:
        logger.warning("Unparsable TeamCity date", extra={"value": value})
        return 0


def commit_timestamp(item: Mapping[str, Any]) -> int:
    """Return a changeset's commit time in epoch millis, or 0 when unknown."""
    timestamp = item.get("timestamp")
    if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
        if isinstance(timestamp, float) and not math.isfinite(timestamp):
            logger.warning("Non-finite commit timestamp", extra={"value": repr(timestamp)})
            return 0
        return int(timestamp)

    date_value = item.get("date")
    if isinstance(date_value, str) and date_value:
        parsed = parse_commit_date(date_value)
        if parsed is not None:
            return parsed
        logger.warning("Invalid date string: %s", date_value)

    return 0


def commit_id(item: Mapping[str, Any]) -> str:
    """Return the commit identifier: numeric ``revision`` if present, else ``id``."""
    revision = item.get("revision")
    if isinstance(revision, int) and not isinstance(revision, bool):
        return str(revision)
    identifier = item.get("id")
    return "" if identifier is None else str(identifier)


def commit_author(item: Mapping[str, Any]) -> Optional[str]:
    """Return ``author.fullName`` when an author object exists, else ``user``."""
    author = item.get("author")
    if isinstance(author, dict):
        return author.get("fullName")
    return item.get("user")


def extract_changesets(
    build: Build,
    change_set: Mapping[str, Any],
    seen_commits: Optional[Set[str]] = None,
    seen_revisions: Optional[Set[str]] = None,
) -> None:
    """Add the changesets and revision repos of ``change_set`` to ``build``.

    ``seen_commits`` and ``seen_revisions`` hold identifiers already taken for
    this build; a commit or revision already in them is skipped, so the first
    occurrence always wins. Both sets are updated in place.
    """
    if seen_commits is None:
        seen_commits = set()
    if seen_revisions is None:
        seen_revisions = set()

    repo_type = RepoType.from_kind(change_set.get("kind"))
    revision_to_repo: Dict[str, RepoBranch] = {}

    # Not every SCM reports revisions; git never does.
    for revision in json_array(change_set, "revisions"):
        if not isinstance(revision, dict):
            continue
        raw_revision = revision.get("revision")
        revision_id = "" if raw_revision is None else str(raw_revision)
        if not revision_id or revision_id in seen_revisions:
            continue

        repo_branch = RepoBranch(
            url=strip_git_extension(revision.get("module") or ""),
            repo_type=repo_type,
        )
        revision_to_repo[revision_id] = repo_branch
        build.code_repos.append(repo_branch)
        seen_revisions.add(revision_id)

    for item in json_array(change_set, "items"):
        if not isinstance(item, dict):
            continue
        identifier = commit_id(item)
        if not identifier or identifier in seen_commits:
            continue

        changeset = SourceChangeset(
            revision=identifier,
            author=commit_author(item),
            message=item.get("msg"),
            timestamp=commit_timestamp(item),
            number_of_changes=len(json_array(item, "paths")),
        )
        repo_branch = revision_to_repo.get(identifier)
        if repo_branch is not None:
            changeset.url = repo_branch.url
            changeset.branch = repo_branch.branch

        build.source_changesets.append(changeset)
        seen_commits.add(identifier)


def extract_git_branches(build_json: Mapping[str, Any]) -> List[RepoBranch]:
    """Collect (repository url, unqualified branch) pairs from a build's actions.

    When several repositories are configured in one git action, the server
    keeps them unordered, so the url-to-branch association is lost. Every
    remote URL is therefore paired with every reported branch.
    """
    repo_branches: List[RepoBranch] = []

    for action in json_array(build_json, "actions"):
        if not isinstance(action, dict) or not action:
            continue

        remote_urls = json_array(action, "remoteUrls")
        if not remote_urls:
            continue

        last_built_revision = action.get("lastBuiltRevision")
        if not isinstance(last_built_revision, dict):
            continue

        branches = json_array(last_built_revision, "branch")
        if not branches:
            continue

        for remote_url in remote_urls:
            if not isinstance(remote_url, str) or not remote_url:
                continue
            url = strip_git_extension(remote_url)
            for branch in branches:
                name = branch.get("name") if isinstance(branch, dict) else None
                if not isinstance(name, str):
                    continue
                repo_branches.append(
                    RepoBranch(url=url, branch=unqualified_branch(name), repo_type=RepoType.GIT)
                )

    return repo_branches
