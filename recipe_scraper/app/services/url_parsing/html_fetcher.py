"""HTML fetching and URL validation utilities."""

import ipaddress
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class FetchError(Exception):
    """The page could not be fetched (non-2xx status or transport failure)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    pass


def is_private_host(host: str) -> bool:
    """Check if a host is private/localhost; accepts a bare IPv4/IPv6 address or ``host:port``."""
    hostname = host.strip("[]")
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        if hostname.count(":") == 1:
            hostname = hostname.split(":")[0]
        try:
            ip = ipaddress.ip_address(hostname)
        except ValueError:
            return hostname.lower() in {"localhost"}
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_unspecified
    )


def validate_url(url: str) -> None:
    parsed_url = urlparse(url)
    if parsed_url.scheme not in {"http", "https"} or not parsed_url.netloc:
        raise ValueError("URL must start with http or https.")
    if is_private_host(parsed_url.hostname or ""):
        raise ValueError("URL points to a private or disallowed host")


async def fetch_html(
    url: str,
    timeout: float = 12.0,
    user_agent: Optional[str] = None,
) -> str:
    """Fetch a page's HTML, following redirects.

    Non-2xx responses and network failures raise FetchError; nothing is retried.
    """
    validate_url(url)

    headers = {
        "User-Agent": user_agent or DEFAULT_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }
    try:
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, headers=headers
        ) as client:
            response = await client.get(url)
    except httpx.TimeoutException as exc:
        logger.warning("Timed out fetching %s: %s", url, exc)
        raise FetchTimeoutError(f"Timed out fetching {url}") from exc
    except httpx.HTTPError as exc:
        logger.warning("Network error fetching %s: %s", url, exc)
        raise FetchError(f"Network error: {exc}") from exc

    if response.status_code < 200 or response.status_code >= 300:
        logger.warning("Fetch of %s returned status %s", url, response.status_code)
        raise FetchError(
            f"Site returned status {response.status_code}.",
            status_code=response.status_code,
        )

    content_type = response.headers.get("content-type", "")
    logger.debug("Fetched %s (%s, %d chars)", url, content_type or "no content-type", len(response.text))
    return response.text
