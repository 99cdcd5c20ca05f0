from __future__ import annotations

import calendar
import json
import string
import time
import typing as tp
from datetime import datetime, timedelta, timezone
from email.utils import formatdate, parsedate_tz
from urllib.parse import urlsplit

__all__ = (
    "BaseClock",
    "Clock",
    "parse_date",
    "generate_http_date",
    "to_iso",
    "dump_body",
    "body_size",
    "generate_etag",
    "extract_domain",
    "extract_path",
    "is_secure_url",
)

DEFAULT_DOMAIN = "localhost"

_BASE36 = string.digits + string.ascii_lowercase

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# 0001-01-01T00:00:00.000Z and 9999-12-31T23:59:59.999Z
MIN_ISO_TIMESTAMP = -62_135_596_800_000
MAX_ISO_TIMESTAMP = 253_402_300_799_999


class BaseClock:
    def now(self) -> int:
        raise NotImplementedError()


class Clock(BaseClock):
    """Wall clock in milliseconds since the epoch."""

    def now(self) -> int:
        return time.time_ns() // 1_000_000


def parse_date(date: tp.Optional[str]) -> tp.Optional[int]:
    """
    Parse an HTTP date into milliseconds since the epoch.

    Returns None for anything that is not a valid date, callers must treat
    None as "condition not satisfied".
    """
    if not date:
        return None
    parsed = parsedate_tz(date)
    if parsed is None:
        return None
    try:
        timestamp = calendar.timegm(parsed[:6])
    except (ValueError, OverflowError):
        return None
    offset = parsed[9] or 0
    return (timestamp - offset) * 1000


def generate_http_date(timestamp: tp.Optional[int] = None) -> str:
    """
    Generate a Date header value for HTTP responses.
    Returns date in RFC 1123 format (required by HTTP/1.1).

    Example output: 'Sun, 26 Oct 2025 12:34:56 GMT'
    """
    timeval = None if timestamp is None else timestamp / 1000
    return formatdate(timeval=timeval, localtime=False, usegmt=True)


def to_iso(timestamp: int) -> str:
    """
    Format milliseconds since the epoch as `2024-01-01T00:00:00.000Z`.

    Timestamps outside the years 1-9999 are clamped to the nearest
    representable instant.

    Examples:
        >>> to_iso(1704067200500)
        '2024-01-01T00:00:00.500Z'
        >>> to_iso(10**18)
        '9999-12-31T23:59:59.999Z'
    """
    timestamp = max(MIN_ISO_TIMESTAMP, min(timestamp, MAX_ISO_TIMESTAMP))
    moment = _EPOCH + timedelta(milliseconds=timestamp)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}.{moment.microsecond // 1000:03d}Z"
    )


def dump_body(body: tp.Any) -> str:
    """Compact JSON text of a body, the same text a browser's JSON.stringify gives."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False, default=str)


def body_size(body: tp.Any) -> int:
    return len(dump_body(body))


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_etag(body: tp.Any) -> str:
    """
    Derive a strong validator from the body content.

    Uses a 32-bit rolling string hash (h * 31 + c) over the compact JSON form,
    so identical bodies always produce identical ETags.

    Examples:
        >>> generate_etag({"v": 1})
        '"nj2ood"'
    """
    content = dump_body(body)
    value = 0
    for char in content:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return f'"{_to_base36(abs(value))}"'


def extract_domain(url: str) -> str:
    """Hostname of the URL, `localhost` when the URL cannot be parsed."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return DEFAULT_DOMAIN
    return hostname or DEFAULT_DOMAIN


def extract_path(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        return "/"
    return path or "/"


def is_secure_url(url: str) -> bool:
    try:
        return urlsplit(url).scheme.lower() == "https"
    except ValueError:
        return False
