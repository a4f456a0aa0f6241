from __future__ import annotations

import json
import logging
from typing import Optional, Protocol
from urllib.parse import urlparse

import cloudscraper
import requests

from .config import ClientConfig, Credential
from .errors import (
    AuthRejected,
    ConnectionFailed,
    HttpStatus,
    InvalidEndpoint,
    Timeout,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/126.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "application/json,text/html;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

STORY_NOT_FOUND_CODE = 1017
# "log in first" and "not yours to read"
AUTH_API_CODES = frozenset({1018, 1154})


class Transport(Protocol):
    def send(
        self,
        endpoint: str,
        method: str = "GET",
        auth: Optional[Credential] = None,
        *,
        purpose: str = "request",
    ) -> bytes:
        ...


def create_scraper(user_agent: Optional[str] = None) -> cloudscraper.CloudScraper:
    scraper = cloudscraper.create_scraper(
        browser={"browser": "chrome", "platform": "windows", "mobile": False},
    )
    scraper.headers.update(DEFAULT_HEADERS)
    if user_agent:
        scraper.headers["User-Agent"] = user_agent
    return scraper


def parse_api_error(body: bytes) -> tuple[Optional[int], str]:
    """Pull ``code`` and ``message`` out of a Wattpad error body, if it is one."""
    try:
        payload = json.loads(body.decode("utf-8", errors="replace"))
    except ValueError:
        return None, ""
    if not isinstance(payload, dict):
        return None, ""
    code = payload.get("code")
    try:
        api_code = int(code) if code is not None else None
    except (TypeError, ValueError):
        api_code = None
    message = payload.get("message")
    return api_code, message if isinstance(message, str) else ""


class HttpTransport:
    """Sends one request per call against the configured API host.

    No retries and no caching: a failed call raises a ``TransportError``
    subclass and the caller decides what to do with it.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        scraper: Optional[requests.Session] = None,
    ) -> None:
        self.config = (config or ClientConfig()).validate()
        self._scraper = scraper or create_scraper(self.config.user_agent)

    def _check_endpoint(self, endpoint: str) -> None:
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or parsed.netloc != self.config.host:
            raise InvalidEndpoint(endpoint, self.config.host)

    def send(
        self,
        endpoint: str,
        method: str = "GET",
        auth: Optional[Credential] = None,
        *,
        purpose: str = "request",
    ) -> bytes:
        self._check_endpoint(endpoint)
        headers = auth.as_headers() if auth else None
        logger.debug(
            "%s: %s %s (auth=%s)", purpose, method, endpoint, "yes" if auth else "no"
        )
        try:
            response = self._scraper.request(
                method=method,
                url=endpoint,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.Timeout as exc:
            logger.debug("%s timed out: %s", purpose, exc)
            raise Timeout(endpoint, self.config.timeout) from exc
        except requests.RequestException as exc:
            message = str(exc).strip() or exc.__class__.__name__
            logger.debug("%s failed: %s", purpose, message)
            raise ConnectionFailed(endpoint, message) from exc

        status = response.status_code
        if 200 <= status < 300:
            logger.debug("%s: %s (%d bytes)", purpose, status, len(response.content))
            return response.content

        api_code, api_message = parse_api_error(response.content)
        logger.debug("%s: HTTP %s (api code %s)", purpose, status, api_code)
        if status in (401, 403) or api_code in AUTH_API_CODES:
            raise AuthRejected(endpoint, status, api_code)
        raise HttpStatus(endpoint, status, api_code, api_message)

    def close(self) -> None:
        self._scraper.close()
