from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    TypedDict,
    Union,
)

from httpsim._headers import CacheDirectives, Headers

__all__ = (
    "StoredResponse",
    "CacheMetadata",
    "CacheEntry",
    "CacheHit",
    "CacheMiss",
    "CacheLookupResult",
    "CacheEntryStats",
    "CacheStats",
    "CookieAttributes",
    "CookieRecord",
    "CookieDetails",
    "CookieValidation",
    "CookieDomainStats",
    "CookieStats",
    "TimelineStage",
    "Timing",
    "TransportResult",
    "SimulationRequest",
    "SimulationResult",
    "ConcurrentRequest",
    "ConcurrentResult",
    "ConcurrentBatch",
)


# Cache


@dataclass
class StoredResponse:
    status_code: int = 200
    status_text: str = "OK"
    headers: Headers = field(default_factory=Headers)
    body: Any = None
    cookies: List[str] = field(default_factory=list)
    """Set-Cookie values that came with the response."""

    def __post_init__(self) -> None:
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)


@dataclass
class CacheMetadata:
    url: str
    method: str
    size: int
    max_age: int
    directives: CacheDirectives


@dataclass
class CacheEntry:
    key: str
    response: StoredResponse
    metadata: CacheMetadata
    etag: str
    last_modified: str
    stored_at: int
    """Milliseconds since the epoch."""
    expires_at: int
    access_count: int = 0
    last_accessed_at: int = 0

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at


@dataclass
class CacheHit:
    status_code: int
    status_text: str
    headers: Headers
    body: Any
    cache_age: int
    """Milliseconds since the entry was stored."""
    remaining_time: int
    """Milliseconds until the entry expires."""
    type: Literal["full", "conditional"] = "full"
    cached: bool = True

    @property
    def hit(self) -> bool:
        return True


@dataclass
class CacheMiss:
    reason: Literal["not-found", "expired"]
    expired_at: Optional[int] = None

    @property
    def hit(self) -> bool:
        return False


CacheLookupResult = Union[CacheHit, CacheMiss]


class CacheEntryStats(TypedDict):
    key: str
    url: str
    method: str
    size: int
    age: int
    remaining_time: int
    access_count: int
    last_accessed: str


class CacheStats(TypedDict):
    total_entries: int
    total_size: int
    entries: List[CacheEntryStats]


# Cookies


@dataclass
class CookieAttributes:
    max_age: Optional[int] = None
    expires: Optional[str] = None
    """The literal Expires attribute."""
    domain: Optional[str] = None
    path: Optional[str] = None
    same_site: Optional[str] = None
    secure: bool = False
    http_only: bool = False
    session: bool = False
    """True only when neither Max-Age nor Expires was given."""


@dataclass
class CookieRecord:
    name: str
    value: str
    raw: str
    attributes: CookieAttributes = field(default_factory=CookieAttributes)
    expires_at: Optional[int] = None
    """None when the Expires attribute could not be parsed; such a cookie is never live."""
    created_at: int = 0
    domain: Optional[str] = None

    def is_expired(self, now: int) -> bool:
        return self.expires_at is None or now > self.expires_at


@dataclass
class CookieDetails:
    name: str
    value: str
    domain: Optional[str]
    path: str
    secure: bool
    http_only: bool
    same_site: str
    session: bool
    age: int
    remaining_time: Optional[int]
    expires_at: Optional[str]
    size: int
    raw: str


@dataclass
class CookieValidation:
    valid: bool
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


class CookieDomainStats(TypedDict):
    domain: str
    cookie_count: int
    cookies: List[str]


class CookieStats(TypedDict):
    total_domains: int
    total_cookies: int
    domains: List[CookieDomainStats]


# Simulation


@dataclass
class TimelineStage:
    stage: str
    duration: float
    start_time: Optional[float] = None


@dataclass
class Timing:
    total: int = 0
    dns: int = 0
    tcp: int = 0
    tls: int = 0
    request: int = 0
    waiting: int = 0
    download: int = 0

    @classmethod
    def split(cls, total: int) -> "Timing":
        """Spread a measured total over the connection stages."""
        return cls(
            total=total,
            dns=int(total * 0.1),
            tcp=int(total * 0.15),
            tls=int(total * 0.15),
            request=int(total * 0.1),
            waiting=int(total * 0.3),
            download=int(total * 0.2),
        )


@dataclass
class TransportResult:
    success: bool
    url: str
    status_code: int = 0
    status_text: str = ""
    headers: Headers = field(default_factory=Headers)
    body: Any = None
    cookies: List[str] = field(default_factory=list)
    timing: Timing = field(default_factory=Timing)
    final_url: Optional[str] = None
    redirected: bool = False
    content_type: str = "unknown"
    content_length: str = "unknown"
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    troubleshooting: List[str] = field(default_factory=list)


@dataclass
class SimulationRequest:
    url: str
    method: str = "GET"
    delay: Optional[float] = None
    packet_loss: float = 0
    connection_type: str = "keep-alive"
    use_cache: bool = False
    use_cookies: bool = False
    use_real_request: bool = False
    request_headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class SimulationResult:
    timeline: List[TimelineStage]
    total_time: float
    response: StoredResponse
    connection_type: str
    real: bool
    cached: bool = False
    cache_info: Optional[Dict[str, Any]] = None
    cookie_info: Optional[Dict[str, Any]] = None


@dataclass
class ConcurrentRequest:
    url: str
    method: str = "GET"


@dataclass
class ConcurrentResult:
    id: int
    url: str
    method: str
    status_code: int
    time: float
    real: bool
    success: bool = True
    started_at: float = 0
    """Milliseconds after the batch started."""


@dataclass
class ConcurrentBatch:
    protocol: Literal["HTTP/1.1", "HTTP/2"]
    requests: List[ConcurrentResult]
    total_time: float
    concurrent: bool
    real: bool
