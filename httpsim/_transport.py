from __future__ import annotations

import ipaddress
import json
import logging
import time
import typing as tp
from types import TracebackType
from urllib.parse import urlsplit

import httpx

from httpsim._config import SimulatorOptions
from httpsim._exceptions import InvalidURLError, TransportError
from httpsim._headers import Headers
from httpsim._utils import to_iso
from httpsim.models import Timing, TransportResult

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("httpsim.transport")

__all__ = ("Transport", "is_valid_url", "format_header_name", "format_body")

MAX_TEXT_BODY = 1000
BLOCKED_HOSTNAMES = ("localhost", "127.0.0.1")
BLOCKED_PREFIXES = ("192.168.", "10.", "172.16.")

DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)

TROUBLESHOOTING = {
    "DNS Resolution Failed": [
        "Check the domain name for typos",
        "Verify the domain exists and is publicly resolvable",
    ],
    "Connection Refused": [
        "Make sure the server is running and accepting connections",
        "Check that the port is correct",
    ],
    "Connection Failed": [
        "Check the network connection",
        "Verify the host is reachable",
    ],
    "Request Timeout": [
        "The server may be overloaded, try again later",
        "Try a URL that responds faster",
    ],
    "Connection Reset": ["The server closed the connection, try again later"],
    "Too Many Redirects": ["The URL redirects in a loop or too many times"],
    "Response Too Large": ["Try a URL with a smaller response body"],
    "Invalid URL": ["Use an absolute http:// or https:// URL"],
}


def is_valid_url(url: str, block_private_hosts: bool = True) -> bool:
    """
    Accepts only absolute http(s) URLs, optionally refusing local and private hosts.

    Examples:
        >>> is_valid_url("https://example.com/")
        True
        >>> is_valid_url("ftp://example.com/")
        False
        >>> is_valid_url("http://192.168.0.10/")
        False
    """
    try:
        parsed = urlsplit(url)
        hostname = parsed.hostname
    except ValueError:
        return False

    if parsed.scheme not in ("http", "https") or not hostname:
        return False

    if block_private_hosts:
        hostname = hostname.lower()
        if hostname in BLOCKED_HOSTNAMES or hostname.startswith(BLOCKED_PREFIXES):
            return False
        try:
            address = ipaddress.ip_address(hostname)
        except ValueError:
            return True
        if address.is_private or address.is_loopback:
            return False
    return True


def format_header_name(name: str) -> str:
    """
    Examples:
        >>> format_header_name("content-type")
        'Content-Type'
    """
    return "-".join(word[:1].upper() + word[1:] for word in name.split("-"))


def format_body(response: httpx.Response) -> tp.Any:
    """Decoded JSON when possible, otherwise a truncated text preview."""
    if not response.content:
        return None

    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return {
            "contentType": "text/plain",
            "data": text[:MAX_TEXT_BODY] + ("... (truncated)" if len(text) > MAX_TEXT_BODY else ""),
        }


def describe_error(exc: Exception, url: str) -> TransportError:
    """Translates an httpx exception into a TransportError with a readable message."""
    message = str(exc)
    lowered = message.lower()

    if isinstance(exc, httpx.TimeoutException):
        return TransportError(
            "Request took too long to complete. The server did not respond within the timeout period.",
            error_type="Request Timeout",
            status_code=408,
            error_code="ETIMEDOUT",
        )
    if isinstance(exc, httpx.ConnectError):
        if any(marker in lowered for marker in DNS_FAILURE_MARKERS):
            return TransportError(
                f'Could not resolve hostname. The domain "{url}" does not exist or is unreachable.',
                error_type="DNS Resolution Failed",
                error_code="ENOTFOUND",
            )
        if "refused" in lowered:
            return TransportError(
                f'Server refused the connection. The server at "{url}" is not accepting connections.',
                error_type="Connection Refused",
                error_code="ECONNREFUSED",
            )
        return TransportError(message or "Could not connect.", error_type="Connection Failed")
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.ReadError, httpx.WriteError)):
        return TransportError(
            "Connection was reset by the server.",
            error_type="Connection Reset",
            error_code="ECONNRESET",
        )
    if isinstance(exc, httpx.TooManyRedirects):
        return TransportError(message, error_type="Too Many Redirects")
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol, InvalidURLError)):
        return TransportError(message or "Invalid URL format", error_type="Invalid URL")
    return TransportError(message, error_type="Unknown Error")


class Transport:
    """
    Issues real HTTP requests with `httpx` and reports them as `TransportResult`.

    Transport failures never raise, they come back as a result with
    `success=False` and the error details filled in.
    """

    def __init__(
        self,
        options: tp.Optional[SimulatorOptions] = None,
        client: tp.Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._options = options or SimulatorOptions()
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=self._options.max_redirects,
        )
        self._headers = {
            "User-Agent": self._options.user_agent,
            "Accept": "*/*",
        }

    def is_valid_url(self, url: str) -> bool:
        return is_valid_url(url, block_private_hosts=self._options.block_private_hosts)

    async def send(
        self,
        url: str,
        method: str = "GET",
        timeout: tp.Optional[float] = None,
        cookies: tp.Optional[str] = None,
    ) -> TransportResult:
        method = method.upper()
        timeout = timeout if timeout is not None else self._options.real_request_timeout
        started = time.monotonic()

        headers = dict(self._headers)
        if cookies:
            headers["Cookie"] = cookies

        payload = None
        if method in ("POST", "PUT"):
            payload = {
                "message": "Test request from HTTP Simulator",
                "timestamp": to_iso(int(time.time() * 1000)),
            }

        try:
            if not self.is_valid_url(url):
                raise InvalidURLError(f"Invalid URL format: {url}")

            response = await self._client.request(
                method,
                url,
                headers=headers,
                json=payload,
                timeout=httpx.Timeout(timeout),
            )
            if len(response.content) > self._options.max_content_length:
                raise TransportError(
                    f"Response body exceeds {self._options.max_content_length} bytes.",
                    error_type="Response Too Large",
                    status_code=response.status_code,
                )
        except TransportError as exc:
            return self._failure(url, exc, started)
        except (httpx.HTTPError, InvalidURLError) as exc:
            return self._failure(url, describe_error(exc, url), started)

        total = int((time.monotonic() - started) * 1000)
        final_url = str(response.url)

        logger.debug(f"{method} {url} answered {response.status_code} in {total}ms.")

        return TransportResult(
            success=True,
            url=url,
            status_code=response.status_code,
            status_text=response.reason_phrase,
            headers=Headers({format_header_name(key): value for key, value in response.headers.items()}),
            body=format_body(response),
            cookies=response.headers.get_list("set-cookie"),
            timing=Timing.split(total),
            final_url=final_url,
            redirected=final_url != url,
            content_type=response.headers.get("content-type", "unknown"),
            content_length=response.headers.get("content-length", "unknown"),
        )

    async def check_reachability(self, url: str) -> bool:
        """Sends a HEAD request and reports whether any response came back."""
        if not self.is_valid_url(url):
            return False
        try:
            await self._client.head(url, headers=self._headers, timeout=self._options.reachability_timeout)
        except httpx.HTTPError as exc:
            logger.debug(f"{url} is not reachable: {exc!r}")
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "Self":
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[TracebackType] = None,
    ) -> None:
        await self.aclose()

    def _failure(self, url: str, error: TransportError, started: float) -> TransportResult:
        total = int((time.monotonic() - started) * 1000)
        logger.warning(f"Real request to {url} failed: {error.error_type}: {error}")

        return TransportResult(
            success=False,
            url=url,
            status_code=error.status_code,
            status_text=error.error_type,
            timing=Timing(total=total),
            error_type=error.error_type,
            error_message=str(error),
            error_code=error.error_code,
            troubleshooting=list(TROUBLESHOOTING.get(error.error_type, [])),
        )
