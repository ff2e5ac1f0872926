"""Tests for configuration loading and validation."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from teamcity_collector.config import Config, load_config
from teamcity_collector.errors import ConfigurationError
from teamcity_collector.models import Credential

_ENV_VARS = (
    "TEAMCITY_INSTANCES",
    "TEAMCITY_PAGE_SIZE",
    "TEAMCITY_SAVE_LOG",
    "TEAMCITY_SERVERS",
    "TEAMCITY_USERNAMES",
    "TEAMCITY_API_KEYS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize("page_size", [0, -1, -1000])
def test_effective_page_size_defaults_to_1000(page_size):
    """Verify non-positive page sizes fall back to a window of exactly 1000."""
    assert Config(instance_urls=("http://ci",), page_size=page_size).effective_page_size == 1000


def test_effective_page_size_keeps_positive_value():
    """Verify a positive page size is used as-is."""
    assert Config(instance_urls=("http://ci",), page_size=25).effective_page_size == 25


def test_load_config_defaults():
    """Verify defaults when only an instance URL is supplied."""
    config = load_config(instance_urls=["http://ci.example"])

    assert config.instance_urls == ("http://ci.example",)
    assert config.page_size == 0
    assert config.save_log is False
    assert config.credentials == []
    assert config.timeout_seconds == 30


def test_load_config_reads_environment(monkeypatch):
    """Verify instances, page size, log flag and credentials come from the environment."""
    monkeypatch.setenv("TEAMCITY_INSTANCES", "http://a.example, http://b.example:8111")
    monkeypatch.setenv("TEAMCITY_PAGE_SIZE", "50")
    monkeypatch.setenv("TEAMCITY_SAVE_LOG", "true")
    monkeypatch.setenv("TEAMCITY_SERVERS", "http://a.example,http://b.example:8111")
    monkeypatch.setenv("TEAMCITY_USERNAMES", "ua,ub")
    monkeypatch.setenv("TEAMCITY_API_KEYS", "ka,kb")

    config = load_config()

    assert config.instance_urls == ("http://a.example", "http://b.example:8111")
    assert config.page_size == 50
    assert config.save_log is True
    assert config.credentials[1] == Credential("http://b.example:8111", "ub", "kb")


def test_load_config_pads_short_credential_lists(monkeypatch):
    """Verify missing usernames/API keys are padded with empty strings."""
    monkeypatch.setenv("TEAMCITY_SERVERS", "http://a.example,http://b.example")
    monkeypatch.setenv("TEAMCITY_USERNAMES", "ua")

    config = load_config(instance_urls=["http://a.example"])

    assert config.credentials == [
        Credential("http://a.example", "ua", ""),
        Credential("http://b.example", "", ""),
    ]


def test_load_config_explicit_arguments_override_environment(monkeypatch):
    """Verify explicit arguments win over environment values."""
    monkeypatch.setenv("TEAMCITY_PAGE_SIZE", "50")

    config = load_config(instance_urls=["http://ci"], page_size=10, timeout_seconds=5)

    assert config.page_size == 10
    assert config.timeout_seconds == 5


def test_load_config_without_instances_raises():
    """Verify a missing instance list raises ConfigurationError."""
    with pytest.raises(ConfigurationError):
        load_config(instance_urls=[])


def test_load_config_rejects_malformed_instance():
    """Verify a non-absolute instance URL raises ConfigurationError."""
    with pytest.raises(ConfigurationError):
        load_config(instance_urls=["ci.example"])


def test_load_config_rejects_non_integer_page_size(monkeypatch):
    """Verify an unparsable TEAMCITY_PAGE_SIZE raises ConfigurationError."""
    monkeypatch.setenv("TEAMCITY_PAGE_SIZE", "lots")

    with pytest.raises(ConfigurationError):
        load_config(instance_urls=["http://ci"])
