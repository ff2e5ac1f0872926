"""Tests for build status mapping, changeset and git branch extraction."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from teamcity_collector.extractors import (
    commit_id,
    commit_timestamp,
    extract_changesets,
    extract_git_branches,
    map_build_status,
    parse_teamcity_date,
    strip_git_extension,
    unqualified_branch,
)
from teamcity_collector.models import Build, BuildStatus, RepoType


def _build() -> Build:
    return Build(
        number="7",
        build_url="http://ci/app/rest/builds?locator=id:7",
        timestamp=0,
        status=BuildStatus.SUCCESS,
    )


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SUCCESS", BuildStatus.SUCCESS),
        ("UNSTABLE", BuildStatus.UNSTABLE),
        ("FAILURE", BuildStatus.FAILURE),
        ("ABORTED", BuildStatus.ABORTED),
        ("WEIRD", BuildStatus.UNKNOWN),
        ("success", BuildStatus.UNKNOWN),
        (None, BuildStatus.UNKNOWN),
        (["SUCCESS"], BuildStatus.UNKNOWN),
        ({"value": "FAILURE"}, BuildStatus.UNKNOWN),
    ],
)
def test_map_build_status(raw, expected):
    """Verify exact, case-sensitive status mapping with Unknown fallback."""
    assert map_build_status(raw) is expected


@pytest.mark.parametrize(
    "qualified, expected",
    [
        ("refs/remotes/origin/feature-x", "feature-x"),
        ("remotes/upstream/main", "main"),
        ("origin2/release", "release"),
        ("origin/feature/nested", "feature/nested"),
        ("develop", "develop"),
    ],
)
def test_unqualified_branch(qualified, expected):
    """Verify remote qualifiers are stripped from branch names."""
    assert unqualified_branch(qualified) == expected


def test_strip_git_extension():
    """Verify only a trailing .git suffix is removed."""
    assert strip_git_extension("https://git.example/repo.git") == "https://git.example/repo"
    assert strip_git_extension("https://git.example/repo.github") == "https://git.example/repo.github"


def test_commit_id_prefers_numeric_revision():
    """Verify numeric revision wins over id, and id is used otherwise."""
    assert commit_id({"revision": 42, "id": "abc"}) == "42"
    assert commit_id({"revision": "not-numeric", "id": "abc"}) == "abc"
    assert commit_id({}) == ""


def test_commit_timestamp_formats(caplog):
    """Verify numeric timestamps, both date formats and the unparsable fallback."""
    iso_expected = int(datetime(2017, 3, 1, 10, 20, 30, 123000, tzinfo=timezone.utc).timestamp() * 1000)
    git_expected = int(datetime(2017, 3, 1, 9, 20, 30, tzinfo=timezone.utc).timestamp() * 1000)

    assert commit_timestamp({"timestamp": 1500}) == 1500
    assert commit_timestamp({"date": "2017-03-01T10:20:30.123"}) == iso_expected
    assert commit_timestamp({"date": "2017-03-01 10:20:30 +0100"}) == git_expected

    with caplog.at_level(logging.WARNING):
        assert commit_timestamp({"date": "yesterday"}) == 0
    assert "Invalid date string" in caplog.text


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
def test_commit_timestamp_non_finite_falls_back_to_zero(value, caplog):
    """Verify an Infinity or NaN timestamp is logged and treated as unknown."""
    with caplog.at_level(logging.WARNING):
        assert commit_timestamp({"timestamp": value}) == 0

    assert "Non-finite commit timestamp" in caplog.text


def test_parse_teamcity_date():
    """Verify TeamCity dates parse to epoch millis and bad values give 0."""
    expected = int(datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)

    assert parse_teamcity_date("20240101T100000+0000") == expected
    assert parse_teamcity_date(None) == 0
    assert parse_teamcity_date("garbage") == 0


def test_extract_changesets_deduplicates_commit_ids():
    """Verify a commit id seen twice in one build yields a single changeset."""
    build = _build()
    change_set = {
        "kind": "git",
        "items": [
            {"id": "123", "user": "first", "msg": "one", "paths": []},
            {"id": "123", "user": "second", "msg": "dup", "paths": []},
            {"id": "", "user": "nobody", "msg": "empty id"},
            {"id": "456", "author": {"fullName": "Jane Doe"}, "msg": "two", "paths": ["a", "b"]},
        ],
    }

    extract_changesets(build, change_set)

    assert [scm.revision for scm in build.source_changesets] == ["123", "456"]
    assert build.source_changesets[0].author == "first"
    assert build.source_changesets[1].author == "Jane Doe"
    assert build.source_changesets[1].number_of_changes == 2


def test_extract_changesets_links_revisions_to_repositories():
    """Verify revisions become repo records and are attached to matching commits."""
    build = _build()
    change_set = {
        "kind": "svn",
        "revisions": [
            {"revision": 7, "module": "http://svn.example/trunk"},
            {"revision": 7, "module": "http://svn.example/duplicate"},
            {"revision": "", "module": "http://svn.example/empty"},
        ],
        "items": [
            {"revision": 7, "user": "bob", "msg": "fix", "timestamp": 1000, "paths": [{"file": "a"}]},
        ],
    }

    extract_changesets(build, change_set)

    assert len(build.code_repos) == 1
    assert build.code_repos[0].url == "http://svn.example/trunk"
    assert build.code_repos[0].repo_type is RepoType.SVN
    changeset = build.source_changesets[0]
    assert changeset.revision == "7"
    assert changeset.url == "http://svn.example/trunk"
    assert changeset.timestamp == 1000


def test_extract_changesets_respects_seen_sets():
    """Verify identifiers already in the seen sets are skipped and new ones recorded."""
    build = _build()
    seen_commits = {"abc"}
    seen_revisions = set()

    extract_changesets(
        build,
        {"revisions": [{"revision": 1, "module": "m"}], "items": [{"id": "abc"}, {"id": "def"}]},
        seen_commits=seen_commits,
        seen_revisions=seen_revisions,
    )

    assert [scm.revision for scm in build.source_changesets] == ["def"]
    assert seen_commits == {"abc", "def"}
    assert seen_revisions == {"1"}


def test_extract_git_branches_cross_joins_urls_and_branches():
    """Verify every remote URL is paired with every reported branch."""
    build_json = {
        "actions": [
            {},
            {
                "remoteUrls": ["https://git.example/a.git", "https://git.example/b"],
                "lastBuiltRevision": {
                    "branch": [{"name": "refs/remotes/origin/main"}, {"name": "origin2/dev"}]
                },
            },
            {"remoteUrls": [], "lastBuiltRevision": {"branch": [{"name": "ignored"}]}},
            {"remoteUrls": ["https://git.example/c"]},
        ]
    }

    branches = extract_git_branches(build_json)

    assert [(rb.url, rb.branch) for rb in branches] == [
        ("https://git.example/a", "main"),
        ("https://git.example/a", "dev"),
        ("https://git.example/b", "main"),
        ("https://git.example/b", "dev"),
    ]
    assert all(rb.repo_type is RepoType.GIT for rb in branches)


def test_extract_git_branches_without_actions():
    """Verify a build without actions yields no branches."""
    assert extract_git_branches({}) == []


def test_extract_git_branches_skips_non_string_names():
    """Verify branches whose name is not a string are skipped and the rest kept."""
    build_json = {
        "actions": [
            {
                "remoteUrls": ["https://git.example/a.git"],
                "lastBuiltRevision": {
                    "branch": [{"name": 5}, {"name": ["main"]}, {"name": "origin/dev"}]
                },
            }
        ]
    }

    branches = extract_git_branches(build_json)

    assert [(rb.url, rb.branch) for rb in branches] == [("https://git.example/a", "dev")]
