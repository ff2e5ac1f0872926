"""Configuration parsing and validation for the TeamCity build collector."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from .errors import ConfigurationError
from .models import Credential

DEFAULT_PAGE_SIZE = 1000
DEFAULT_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the collector.

    ``servers``, ``usernames`` and ``api_keys`` are parallel lists: index ``i``
    of each describes one credential.
    """

    instance_urls: Tuple[str, ...]
    page_size: int = 0
    save_log: bool = False
    servers: Tuple[str, ...] = field(default_factory=tuple)
    usernames: Tuple[str, ...] = field(default_factory=tuple)
    api_keys: Tuple[str, ...] = field(default_factory=tuple)
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    @property
    def effective_page_size(self) -> int:
        """Project listing window size; non-positive values fall back to 1000."""
        if self.page_size <= 0:
            return DEFAULT_PAGE_SIZE
        return self.page_size

    @property
    def credentials(self) -> List[Credential]:
        """Zip the parallel credential lists, padding short lists with ``""``."""
        credentials: List[Credential] = []
        for index, server in enumerate(self.servers):
            username = self.usernames[index] if index < len(self.usernames) else ""
            api_key = self.api_keys[index] if index < len(self.api_keys) else ""
            credentials.append(Credential(server=server, username=username, api_key=api_key))
        return credentials


def _split_env_list(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    if not raw.strip():
        return ()
    return tuple(item.strip() for item in raw.split(","))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid value for '{name}': expected an integer, got '{raw}'."
        ) from exc


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _validate_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ConfigurationError(
            f"Invalid TeamCity instance URL '{url}': expected an absolute http(s) URL."
        )
    try:
        parts.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in TeamCity instance URL '{url}'.") from exc
    return url


def load_config(
    instance_urls: Optional[Sequence[str]] = None,
    page_size: Optional[int] = None,
    save_log: Optional[bool] = None,
    timeout_seconds: Optional[int] = None,
) -> Config:
    """Build and validate application configuration.

    Explicit arguments win over environment variables. Credentials are only
    read from the environment (``TEAMCITY_SERVERS``, ``TEAMCITY_USERNAMES``,
    ``TEAMCITY_API_KEYS``; comma separated, aligned by position).

    Args:
        instance_urls: TeamCity instances to poll; falls back to ``TEAMCITY_INSTANCES``.
        page_size: Project listing window size; ``<= 0`` means the default 1000.
        save_log: Whether to download each build's console log.
        timeout_seconds: Per-request timeout handed to the transport.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If no instance is configured, an instance URL is
            malformed, or a numeric environment value does not parse.
    """
    instances = tuple(url.strip() for url in (instance_urls or ()) if url and url.strip())
    if not instances:
        instances = tuple(url for url in _split_env_list("TEAMCITY_INSTANCES") if url)
    if not instances:
        raise ConfigurationError(
            "No TeamCity instance configured. Pass --instance or set 'TEAMCITY_INSTANCES'."
        )

    resolved_timeout = (
        timeout_seconds if timeout_seconds is not None else DEFAULT_TIMEOUT_SECONDS
    )
    if resolved_timeout <= 0:
        raise ConfigurationError("Invalid value for 'timeout': expected an integer greater than 0.")

    return Config(
        instance_urls=tuple(_validate_url(url) for url in instances),
        page_size=page_size if page_size is not None else _env_int("TEAMCITY_PAGE_SIZE", 0),
        save_log=save_log if save_log else _env_flag("TEAMCITY_SAVE_LOG"),
        servers=_split_env_list("TEAMCITY_SERVERS"),
        usernames=_split_env_list("TEAMCITY_USERNAMES"),
        api_keys=_split_env_list("TEAMCITY_API_KEYS"),
        timeout_seconds=resolved_timeout,
    )
