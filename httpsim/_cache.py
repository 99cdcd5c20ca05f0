from __future__ import annotations

import logging
import typing as tp
from copy import deepcopy

from httpsim._headers import Headers, parse_cache_control
from httpsim._synchronization import StoreLock
from httpsim._utils import (
    BaseClock,
    Clock,
    body_size,
    generate_etag,
    generate_http_date,
    parse_date,
    to_iso,
)
from httpsim.models import (
    CacheEntry,
    CacheEntryStats,
    CacheHit,
    CacheLookupResult,
    CacheMetadata,
    CacheMiss,
    CacheStats,
    StoredResponse,
)

logger = logging.getLogger("httpsim.cache")

__all__ = ("CacheStore", "generate_cache_key", "DEFAULT_MAX_AGE")

DEFAULT_MAX_AGE = 3600
HIT_HEADERS = {
    "X-Cache": "HIT",
    "X-Cache-Lookup": "HIT from cache",
}


def generate_cache_key(url: str, method: str = "GET") -> str:
    return f"{(method or 'GET').upper()}:{url}"


class CacheStore:
    """
    In-memory HTTP cache with conditional-request validation.

    Entries are keyed by method and URL and expire `max-age` seconds after
    they were stored. Expired entries are dropped lazily on the next lookup,
    `cleanup` sweeps them explicitly.

    :param default_max_age: Freshness lifetime in seconds used when the
        Cache-Control value has no usable max-age, defaults to 3600
    :type default_max_age: int, optional
    :param revalidation_threshold: Share of max-age after which
        `should_revalidate` starts answering True, defaults to 0.8
    :type revalidation_threshold: float, optional
    :param clock: Source of the current time in milliseconds, defaults to the wall clock
    :type clock: tp.Optional[BaseClock], optional
    """

    def __init__(
        self,
        default_max_age: int = DEFAULT_MAX_AGE,
        revalidation_threshold: float = 0.8,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        self._default_max_age = default_max_age
        self._revalidation_threshold = revalidation_threshold
        self._clock = clock if clock else Clock()
        self._entries: tp.Dict[str, CacheEntry] = {}
        self._lock = StoreLock("cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def store(
        self,
        url: str,
        method: str,
        response: StoredResponse,
        cache_control: tp.Optional[str] = None,
    ) -> str:
        """
        Stores the response, replacing any entry with the same method and URL.

        :param url: The requested URL
        :type url: str
        :param method: The HTTP method
        :type method: str
        :param response: The response to memoize
        :type response: StoredResponse
        :param cache_control: The Cache-Control value the response should be cached under
        :type cache_control: tp.Optional[str]
        :return: The ETag of the stored entry
        :rtype: str
        """
        method = (method or "GET").upper()
        key = generate_cache_key(url, method)
        now = self._clock.now()

        directives = parse_cache_control(cache_control)
        max_age = directives.max_age if directives.max_age is not None else self._default_max_age

        stored = StoredResponse(
            status_code=response.status_code,
            status_text=response.status_text,
            headers=response.headers.copy(),
            body=deepcopy(response.body),
            cookies=list(response.cookies),
        )
        etag = stored.headers.get("ETag") or generate_etag(stored.body)
        stored.headers["ETag"] = etag
        last_modified = stored.headers.get("Last-Modified") or generate_http_date(now)

        entry = CacheEntry(
            key=key,
            response=stored,
            metadata=CacheMetadata(
                url=url,
                method=method,
                size=body_size(stored.body),
                max_age=max_age,
                directives=directives,
            ),
            etag=etag,
            last_modified=last_modified,
            stored_at=now,
            expires_at=now + max_age * 1000,
            access_count=0,
            last_accessed_at=now,
        )

        with self._lock:
            self._entries[key] = entry

        logger.debug(f"Cached {key} (expires in {max_age}s, etag {etag}).")
        return etag

    def retrieve(
        self,
        url: str,
        method: str = "GET",
        request_headers: tp.Optional[tp.Mapping[str, str]] = None,
    ) -> CacheLookupResult:
        """
        Looks up a stored response and validates it against the request.

        Returns a `CacheMiss` when nothing usable is stored, a conditional
        `CacheHit` (304, no body) when the request validators match, and a
        full `CacheHit` (200) otherwise.
        """
        key = generate_cache_key(url, method)
        headers = Headers(request_headers)

        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                logger.debug(f"Cache lookup for {key} missed, nothing is stored.")
                return CacheMiss(reason="not-found")

            now = self._clock.now()

            if entry.is_expired(now):
                del self._entries[key]
                logger.debug(f"Cache lookup for {key} missed, the entry expired and was evicted.")
                return CacheMiss(reason="expired", expired_at=entry.expires_at)

            if_none_match = headers.get("If-None-Match")
            if if_none_match and if_none_match == entry.etag:
                logger.debug(f"Cache lookup for {key} validated by If-None-Match.")
                return self._not_modified(entry, now, include_etag=True)

            if self._not_modified_since(entry, headers.get("If-Modified-Since")):
                logger.debug(f"Cache lookup for {key} validated by If-Modified-Since.")
                return self._not_modified(entry, now, include_etag=False)

            self._touch(entry, now)
            response_headers = entry.response.headers.copy()
            response_headers["Age"] = str(self._age(entry, now))
            response_headers.update(HIT_HEADERS)

            logger.debug(f"Cache lookup for {key} is a full hit.")
            return CacheHit(
                status_code=200,
                status_text="OK",
                headers=response_headers,
                body=deepcopy(entry.response.body),
                cache_age=now - entry.stored_at,
                remaining_time=entry.expires_at - now,
                type="full",
            )

    def should_revalidate(self, url: str, method: str = "GET") -> bool:
        """True when the entry is older than the revalidation threshold of its max-age."""
        with self._lock:
            entry = self._entries.get(generate_cache_key(url, method))

            if entry is None:
                return False

            age = self._clock.now() - entry.stored_at
            return age > entry.metadata.max_age * 1000 * self._revalidation_threshold

    def invalidate(self, url: str, method: str = "GET") -> bool:
        key = generate_cache_key(url, method)

        with self._lock:
            deleted = self._entries.pop(key, None) is not None

        if deleted:
            logger.debug(f"Cache invalidated: {key}.")
        return deleted

    def clear(self) -> int:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()

        logger.debug(f"Cleared {size} cache entries.")
        return size

    def get_stats(self) -> CacheStats:
        now = self._clock.now()

        with self._lock:
            entries = list(self._entries.values())

        entry_stats: tp.List[CacheEntryStats] = [
            {
                "key": entry.key,
                "url": entry.metadata.url,
                "method": entry.metadata.method,
                "size": entry.metadata.size,
                "age": (now - entry.stored_at) // 1000,
                "remaining_time": max(0, (entry.expires_at - now) // 1000),
                "access_count": entry.access_count,
                "last_accessed": to_iso(entry.last_accessed_at),
            }
            for entry in entries
        ]

        return {
            "total_entries": len(entry_stats),
            "total_size": sum(stats["size"] for stats in entry_stats),
            "entries": entry_stats,
        }

    def cleanup(self) -> int:
        """Removes every expired entry and returns how many were removed."""
        now = self._clock.now()

        with self._lock:
            expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]

            for key in expired_keys:
                del self._entries[key]

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries.")
        return len(expired_keys)

    def _touch(self, entry: CacheEntry, now: int) -> None:
        entry.access_count += 1
        entry.last_accessed_at = now

    def _age(self, entry: CacheEntry, now: int) -> int:
        return (now - entry.stored_at) // 1000

    def _not_modified_since(self, entry: CacheEntry, if_modified_since: tp.Optional[str]) -> bool:
        if not if_modified_since:
            return False

        since = parse_date(if_modified_since)
        modified = parse_date(entry.last_modified)

        # An unparsable date on either side never validates.
        if since is None or modified is None:
            return False
        return modified <= since

    def _not_modified(self, entry: CacheEntry, now: int, include_etag: bool) -> CacheHit:
        self._touch(entry, now)

        headers = Headers({"Cache-Control": entry.metadata.directives.original or f"max-age={self._default_max_age}"})
        if include_etag:
            headers["ETag"] = entry.etag
        headers["Last-Modified"] = entry.last_modified
        headers["Age"] = str(self._age(entry, now))
        headers.update(HIT_HEADERS)

        return CacheHit(
            status_code=304,
            status_text="Not Modified",
            headers=headers,
            body=None,
            cache_age=now - entry.stored_at,
            remaining_time=entry.expires_at - now,
            type="conditional",
        )
