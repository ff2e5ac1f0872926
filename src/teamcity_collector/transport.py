"""HTTP transport used by the TeamCity client: authenticated GET with retries."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import requests
from requests.auth import HTTPBasicAuth

from .credentials import split_user_info
from .errors import ApiError
from .urls import strip_user_info

logger = logging.getLogger(__name__)


class HttpTransport:
    """Executes GET requests and returns the raw response body.

    Retries HTTP 429/5xx responses and connection-level failures with
    exponential backoff, honoring ``Retry-After`` when the server sends it.
    """

    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30

    def __init__(self, timeout_seconds: int = 30, session: Optional[requests.Session] = None) -> None:
        """Initialize the transport.

        Args:
            timeout_seconds: Per-request timeout in seconds.
            session: Optional pre-configured session (mainly for tests).
        """
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def get(
        self,
        url: str,
        user_info: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """GET ``url`` and return its body as text.

        ``user_info`` (``user:apiKey``) is sent as an HTTP Basic
        ``Authorization`` header; any user-info embedded in ``url`` is removed
        from the request line.

        Raises:
            ApiError: If the request repeatedly fails or returns HTTP >= 400.
        """
        request_url = strip_user_info(url)
        auth = HTTPBasicAuth(*split_user_info(user_info)) if user_info else None

        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.get(
                    request_url,
                    params=dict(params) if params else None,
                    auth=auth,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._MAX_RETRIES:
                    raise ApiError(f"TeamCity request failed after retries: GET {request_url}") from exc
                logger.debug(
                    "Retrying after request exception",
                    extra={"url": request_url, "attempt": attempt},
                )
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or 500 <= status_code <= 599

            if is_retryable and attempt < self._MAX_RETRIES:
                time.sleep(self._extract_backoff_seconds(response, attempt))
                continue

            if status_code >= 400:
                raise ApiError(
                    "TeamCity API request failed: "
                    f"GET {request_url} returned {status_code} - {response.text}"
                )

            return response.text

        raise ApiError(f"TeamCity request failed after retries: GET {request_url}") from last_error
