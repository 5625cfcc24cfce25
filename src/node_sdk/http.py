"""
HTTP Helper - Timeout-bounded fetches for source nodes.

Every request carries an explicit timeout. Calls are blocking and are
run in a worker thread by async callers.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests
from requests.exceptions import RequestException, Timeout


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class NodeTimeoutError(Exception):
    """Raised when an HTTP request times out."""

    def __init__(self, message: str, timeout: float, url: str):
        self.timeout = timeout
        self.url = url
        super().__init__(message)


class HttpApiError(Exception):
    """Error from HTTP request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        url: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        self.url = url
        super().__init__(message)


def fetch_text(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    headers: Optional[Dict[str, str]] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """
    GET ``url`` and return the body as text.

    Raises:
        NodeTimeoutError: the request exceeded ``timeout`` seconds
        HttpApiError: connection failure or non-2xx status
    """
    if timeout is None or timeout <= 0:
        raise ValueError("timeout must be a positive number of seconds")

    client = session or requests
    logger.debug(f"GET {url} (timeout={timeout}s)")
    try:
        response = client.get(url, headers=headers or {}, timeout=timeout)
    except Timeout as e:
        raise NodeTimeoutError(
            f"Request timed out after {timeout}s", timeout=timeout, url=url,
        ) from e
    except RequestException as e:
        raise HttpApiError(f"Request failed: {e}", url=url) from e

    if not response.ok:
        body = response.text
        raise HttpApiError(
            f"HTTP {response.status_code}: {response.reason}",
            status_code=response.status_code,
            response_body=body[:1000] if body else None,
            url=url,
        )
    return response.text


__all__ = [
    "DEFAULT_TIMEOUT",
    "NodeTimeoutError",
    "HttpApiError",
    "fetch_text",
]
