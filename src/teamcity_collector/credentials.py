"""Per-host credential resolution for outgoing TeamCity requests."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple
from urllib.parse import quote, unquote, urlsplit

from .models import Credential
from .urls import user_info_of

logger = logging.getLogger(__name__)


def _host_and_port(url: str) -> Tuple[Optional[str], Optional[int]]:
    try:
        parts = urlsplit(url)
        return parts.hostname, parts.port
    except ValueError:
        return None, None


def resolve_user_info(target_url: str, credentials: Sequence[Credential]) -> Optional[str]:
    """Pick the ``user:apiKey`` string to authenticate a request to ``target_url``.

    User-info already embedded in ``target_url`` is returned unchanged.
    Otherwise the first credential whose server has the same host and port as
    the target ends the scan; its username/API key are used only when both
    are non-empty. A port is part of the identity: ``http://ci`` and
    ``http://ci:80`` are different servers.

    Returns ``None`` when the request should go out unauthenticated.
    """
    embedded = user_info_of(target_url)
    if embedded:
        return embedded

    if not credentials:
        return None

    target_host, target_port = _host_and_port(target_url)

    for index, credential in enumerate(credentials):
        if not credential.server:
            continue
        server_host, server_port = _host_and_port(credential.server)
        if not target_host or not server_host:
            continue
        if target_host != server_host or target_port != server_port:
            continue

        if credential.username and credential.api_key:
            # Same escaped form as URL user-info; split_user_info decodes both.
            return f"{quote(credential.username, safe='')}:{quote(credential.api_key, safe='')}"

        logger.warning(
            "Matching server found but username or API key is empty; "
            "request will be sent unauthenticated",
            extra={"url": target_url, "server": credential.server, "credential_index": index},
        )
        return None

    logger.warning(
        "Credentials for the following url were not found. This can happen when the "
        "host or port in the build url returned by TeamCity does not match any "
        "configured server: %s",
        target_url,
    )
    return None


def split_user_info(user_info: str) -> Tuple[str, str]:
    """Split ``user:password`` into its decoded parts for HTTP Basic auth."""
    username, _, password = user_info.partition(":")
    return unquote(username), unquote(password)
