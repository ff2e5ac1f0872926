"""Domain models for TeamCity build collection.

These dataclasses model only the subset of API payload fields that the
collector normalizes. ``Project`` and ``BuildStub`` live for a single
collection run; ``Build`` and its ``RepoBranch``/``SourceChangeset`` records are
handed to whatever persists them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class BuildStatus(str, Enum):
    """Closed set of normalized build outcomes."""

    SUCCESS = "Success"
    UNSTABLE = "Unstable"
    FAILURE = "Failure"
    ABORTED = "Aborted"
    UNKNOWN = "Unknown"


class RepoType(str, Enum):
    """Source-control system that produced a repository/branch record."""

    GIT = "GIT"
    SVN = "SVN"
    UNKNOWN = "Unknown"

    @classmethod
    def from_kind(cls, kind: Optional[str]) -> "RepoType":
        """Map a change-set ``kind`` string (``git``, ``svn``...) to a repo type."""
        normalized = (kind or "").strip().lower()
        if normalized == "git":
            return cls.GIT
        if normalized == "svn":
            return cls.SVN
        return cls.UNKNOWN


class FailureReason(str, Enum):
    """Why a remote read did not produce a usable value."""

    TRANSPORT = "transport"
    PARSE = "parse"
    MALFORMED_URL = "malformed_url"
    EMPTY = "empty"


@dataclass(frozen=True)
class FetchResult:
    """Either a decoded payload or a tagged failure for one remote read."""

    value: Any = None
    failure: Optional[FailureReason] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: Any) -> "FetchResult":
        return cls(value=value)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str = "") -> "FetchResult":
        return cls(failure=reason, detail=detail)


@dataclass(frozen=True)
class Credential:
    """Username/API key pair configured for one TeamCity server URL."""

    server: str
    username: str
    api_key: str


@dataclass(frozen=True)
class Project:
    """A TeamCity project discovered on one instance.

    Identity is ``(instance_url, name)``; display name and listing URL do not
    take part in equality.
    """

    instance_url: str
    name: str
    display_name: str = field(default="", compare=False)
    url: str = field(default="", compare=False)


@dataclass(slots=True)
class BuildStub:
    """Minimal build reference found during discovery, pending detail fetch."""

    number: str
    url: str


@dataclass(slots=True)
class RepoBranch:
    """Repository URL and unqualified branch name associated with a build."""

    url: str
    branch: str = ""
    repo_type: RepoType = RepoType.UNKNOWN


@dataclass(slots=True)
class SourceChangeset:
    """One source-control commit that went into a build."""

    revision: str
    author: Optional[str]
    message: Optional[str]
    timestamp: int
    number_of_changes: int
    url: Optional[str] = None
    branch: Optional[str] = None


@dataclass(slots=True)
class Build:
    """A fully normalized, completed build."""

    number: str
    build_url: str
    timestamp: int
    status: BuildStatus
    start_time: int = 0
    duration: int = 0
    end_time: int = 0
    log: Optional[str] = None
    code_repos: List[RepoBranch] = field(default_factory=list)
    source_changesets: List[SourceChangeset] = field(default_factory=list)
