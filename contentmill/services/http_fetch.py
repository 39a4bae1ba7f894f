# contentmill/services/http_fetch.py
"""
Outbound HTTP for feeds, sitemaps, article pages and images.

Every fetch carries a bounded timeout. Timeouts, transport errors, malformed
URLs and non-2xx responses all surface as SourceUnreachable so callers deal
with a single failure type.

With private networks blocked, every request is checked, including each
redirect hop, so a public URL cannot bounce the fetcher to an internal host.

Usage:
    fetcher = HttpFetcher()
    html = fetcher.get_text("https://example.com/article")
    data = fetcher.get_bytes(image_url, max_bytes=5 * 1024 * 1024)
"""

import ipaddress
import logging
import socket
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)


class SourceUnreachable(Exception):
    """A remote document could not be fetched (timeout, network error, non-2xx)."""

    def __init__(self, url: str, reason: str, status_code: int | None = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{url}: {reason}")


class PayloadTooLarge(Exception):
    """A response body exceeded the caller's size ceiling."""

    def __init__(self, url: str, limit: int):
        self.url = url
        self.limit = limit
        super().__init__(f"{url}: body exceeds {limit} bytes")


def _is_private_ip(ip_str: str) -> bool:
    """Check if an IP address is in a private/reserved range."""
    try:
        addr = ipaddress.ip_address(ip_str)
        return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved
    except ValueError:
        return False


def _check_ssrf(url: str) -> None:
    """Block requests to private/internal IP addresses."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as e:
        raise SourceUnreachable(url, f"invalid URL: {e}") from e
    if parsed.scheme not in ("http", "https"):
        raise SourceUnreachable(url, f"unsupported scheme {parsed.scheme!r}")
    if not hostname:
        raise SourceUnreachable(url, "missing host")
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return  # DNS resolution failure will be reported by httpx
    for info in infos:
        ip = info[4][0]
        if _is_private_ip(ip):
            raise SourceUnreachable(url, f"blocked: {hostname} resolves to private IP {ip}")


class HttpFetcher:
    """Thin httpx wrapper with the pipeline's timeout and error contract."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        block_private_networks: bool = True,
    ):
        if timeout is None or user_agent is None:
            from contentmill.config import get_settings

            settings = get_settings()
            timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
            user_agent = user_agent or settings.HTTP_USER_AGENT

        self._timeout = timeout
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=5,
            headers={"User-Agent": user_agent},
        )
        if block_private_networks:
            hooks = self._client.event_hooks
            hooks["request"] = [*hooks.get("request", []), self._check_request]
            self._client.event_hooks = hooks

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @staticmethod
    def _check_request(request: httpx.Request) -> None:
        # Runs for the first request and every redirect hop
        _check_ssrf(str(request.url))

    def get(self, url: str, accept: str | None = None) -> httpx.Response:
        """
        GET a URL and return the response.

        Raises:
            SourceUnreachable: timeout, transport error or non-2xx status
        """
        headers = {"Accept": accept} if accept else None
        try:
            response = self._client.get(url, headers=headers, timeout=self._timeout)
        except httpx.TimeoutException as e:
            raise SourceUnreachable(url, f"timed out after {self._timeout}s") from e
        except httpx.InvalidURL as e:
            raise SourceUnreachable(url, f"invalid URL: {e}") from e
        except httpx.HTTPError as e:
            raise SourceUnreachable(url, f"network error: {e}") from e

        if not response.is_success:
            raise SourceUnreachable(url, f"HTTP {response.status_code}", response.status_code)
        return response

    def get_text(self, url: str, accept: str | None = None) -> str:
        return self.get(url, accept=accept).text

    def get_bytes(self, url: str, max_bytes: int | None = None) -> tuple[bytes, str | None]:
        """
        GET a URL as bytes, aborting once ``max_bytes`` is exceeded.

        A declared Content-Length over the limit is rejected before any body
        is read; otherwise the stream is cut off as soon as it passes the limit.

        Returns:
            (body, content_type header)

        Raises:
            SourceUnreachable: timeout, transport error or non-2xx status
            PayloadTooLarge: body larger than max_bytes
        """
        try:
            with self._client.stream("GET", url, timeout=self._timeout) as response:
                if not response.is_success:
                    raise SourceUnreachable(url, f"HTTP {response.status_code}", response.status_code)

                declared = response.headers.get("content-length")
                if max_bytes is not None and declared and declared.isdigit() and int(declared) > max_bytes:
                    raise PayloadTooLarge(url, max_bytes)

                chunks: list[bytes] = []
                received = 0
                for chunk in response.iter_bytes():
                    received += len(chunk)
                    if max_bytes is not None and received > max_bytes:
                        raise PayloadTooLarge(url, max_bytes)
                    chunks.append(chunk)

                return b"".join(chunks), response.headers.get("content-type")
        except httpx.TimeoutException as e:
            raise SourceUnreachable(url, f"timed out after {self._timeout}s") from e
        except httpx.InvalidURL as e:
            raise SourceUnreachable(url, f"invalid URL: {e}") from e
        except httpx.HTTPError as e:
            raise SourceUnreachable(url, f"network error: {e}") from e
