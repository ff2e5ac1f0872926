"""URL helpers for TeamCity REST endpoints."""

from __future__ import annotations

from typing import Optional, Tuple
from urllib.parse import SplitResult, quote, unquote, urlsplit, urlunsplit

from .errors import MalformedUrlError

_PATH_SAFE = "/:@!$&'()*+,;=~"


def join_url(base: str, *segments: str) -> str:
    """Join a base URL and path segments with exactly one slash at every joint.

    Leading and trailing slashes on ``base`` and on each segment do not change
    the result; empty segments are ignored.
    """
    result = base.rstrip("/")
    for segment in segments:
        stripped = segment.strip("/")
        if stripped:
            result = f"{result}/{stripped}"
    return result


def _split_absolute(url: str, label: str) -> Tuple[SplitResult, Optional[int]]:
    """Split an absolute URL, raising ``MalformedUrlError`` on anything unusable."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise MalformedUrlError(f"Malformed {label} URL: {url!r} ({exc})") from exc

    if not parts.scheme or not parts.hostname:
        raise MalformedUrlError(f"Malformed {label} URL: {url!r} (missing scheme or host)")

    return parts, port


def ensure_absolute_url(url: str) -> str:
    """Return ``url`` unchanged if it is absolute, else raise ``MalformedUrlError``."""
    _split_absolute(url, "request")
    return url


def user_info_of(url: str) -> str:
    """Return the raw ``user:password`` segment of ``url``, or ``""`` when absent."""
    netloc = urlsplit(url).netloc
    if "@" not in netloc:
        return ""
    return netloc.rpartition("@")[0]


def strip_user_info(url: str) -> str:
    """Return ``url`` without its user-info segment."""
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def rebuild_job_url(build_url: str, instance_url: str) -> str:
    """Rebuild an authenticated URL for a build returned by the TeamCity API.

    URLs handed back by the server never carry the user-info needed to fetch
    them again. The scheme and user-info come from ``instance_url``; host, port,
    path and query come from ``build_url``. Only the path is decoded: a literal
    ``+`` is kept as ``+`` while other percent-escapes (``%20`` and friends) are
    decoded before the path is re-quoted. User-info and query stay as given.

    Raises:
        MalformedUrlError: If either URL has no scheme or host, or has an
            invalid port.
    """
    instance_parts, _ = _split_absolute(instance_url, "instance")
    user_info = user_info_of(instance_url)

    build_parts, port = _split_absolute(build_url, "build")
    path = unquote(build_parts.path.replace("+", "%2B"))

    host = build_parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"

    netloc = host if port is None else f"{host}:{port}"
    if user_info:
        netloc = f"{user_info}@{netloc}"

    return urlunsplit(
        (
            instance_parts.scheme,
            netloc,
            quote(path, safe=_PATH_SAFE),
            build_parts.query,
            "",
        )
    )


def console_log_url(build_url: str) -> str:
    """Return the ``consoleText`` sub-resource URL of a build, keeping its query."""
    parts = urlsplit(build_url)
    return urlunsplit(
        (parts.scheme, parts.netloc, join_url(parts.path, "consoleText"), parts.query, "")
    )
