from __future__ import annotations

import logging
import typing as tp
from copy import deepcopy

from httpsim._synchronization import StoreLock
from httpsim._utils import (
    BaseClock,
    Clock,
    extract_domain,
    extract_path,
    is_secure_url,
    parse_date,
    to_iso,
)
from httpsim.models import (
    CookieDetails,
    CookieDomainStats,
    CookieRecord,
    CookieStats,
    CookieValidation,
)

logger = logging.getLogger("httpsim.cookies")

__all__ = ("CookieJar", "SESSION_COOKIE_LIFETIME", "SENSITIVE_NAME_PARTS")

# Session cookies live for a fixed day instead of "until the browser closes".
SESSION_COOKIE_LIFETIME = 24 * 60 * 60
SENSITIVE_NAME_PARTS = ("session", "token", "auth")


def _parse_int(value: tp.Optional[str]) -> tp.Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class CookieJar:
    """
    Per-domain cookie storage.

    Cookies are grouped by the exact hostname of the URL that set them and,
    inside a domain, by name. A cookie stored again under the same name
    replaces the previous one.

    :param session_lifetime: Lifetime in seconds given to cookies without
        Max-Age or Expires, defaults to one day
    :type session_lifetime: int, optional
    :param clock: Source of the current time in milliseconds, defaults to the wall clock
    :type clock: tp.Optional[BaseClock], optional
    """

    def __init__(
        self,
        session_lifetime: int = SESSION_COOKIE_LIFETIME,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        self._session_lifetime = session_lifetime
        self._clock = clock if clock else Clock()
        self._jar: tp.Dict[str, tp.Dict[str, CookieRecord]] = {}
        self._lock = StoreLock("cookies")

    def parse_cookie(self, set_cookie: tp.Optional[str]) -> tp.Optional[CookieRecord]:
        """
        Parses a single Set-Cookie value.

        Attribute names are case-insensitive and unknown attributes are
        ignored. Max-Age wins over Expires; without either the cookie is a
        session cookie with a synthetic lifetime.

        Examples:
            >>> jar = CookieJar()
            >>> cookie = jar.parse_cookie("theme=dark; Path=/; Secure")
            >>> cookie.name, cookie.value, cookie.attributes.path, cookie.attributes.secure
            ('theme', 'dark', '/', True)
            >>> jar.parse_cookie("") is None
            True
        """
        if not set_cookie:
            return None

        now = self._clock.now()
        name_value, *attributes = [part.strip() for part in set_cookie.split(";")]
        name, _, value = name_value.partition("=")

        cookie = CookieRecord(
            name=name.strip(),
            value=value.strip(),
            raw=set_cookie,
            created_at=now,
        )

        has_expires = False
        for attribute in attributes:
            key, separator, raw_value = attribute.partition("=")
            attribute_name = key.strip().lower()
            attribute_value = raw_value.strip() if separator else None

            if attribute_name == "max-age":
                max_age = _parse_int(attribute_value)
                if max_age is not None:
                    cookie.attributes.max_age = max_age
            elif attribute_name == "expires":
                cookie.attributes.expires = attribute_value
                has_expires = True
            elif attribute_name == "domain":
                cookie.attributes.domain = attribute_value
            elif attribute_name == "path":
                cookie.attributes.path = attribute_value
            elif attribute_name == "samesite":
                cookie.attributes.same_site = attribute_value
            elif attribute_name == "secure":
                cookie.attributes.secure = True
            elif attribute_name == "httponly":
                cookie.attributes.http_only = True

        if cookie.attributes.max_age is not None:
            cookie.expires_at = now + cookie.attributes.max_age * 1000
        elif has_expires:
            # None marks an unparsable date, such a cookie is expired from the start.
            cookie.expires_at = parse_date(cookie.attributes.expires)
        else:
            cookie.attributes.session = True
            cookie.expires_at = now + self._session_lifetime * 1000

        return cookie

    def store_cookies(self, url: str, set_cookies: tp.Union[str, tp.Sequence[str], None]) -> int:
        """
        Stores every Set-Cookie value under the URL's hostname.

        :return: The number of cookies held for that hostname afterwards
        :rtype: int
        """
        domain = extract_domain(url)
        values = [set_cookies] if isinstance(set_cookies, str) or set_cookies is None else list(set_cookies)

        with self._lock:
            domain_cookies = self._jar.get(domain, {})

            for value in values:
                cookie = self.parse_cookie(value)
                if cookie is None:
                    continue
                cookie.domain = domain
                domain_cookies[cookie.name] = cookie
                logger.debug(f"Stored cookie {cookie.name} for {domain}.")

            if domain_cookies:
                self._jar[domain] = domain_cookies
            return len(domain_cookies)

    def get_cookies(self, url: str) -> tp.List[CookieRecord]:
        """
        Returns the cookies that apply to a request for the URL.

        Expired cookies are evicted on the way. Cookies whose Path does not
        prefix the URL path, and Secure cookies on non-https URLs, are
        skipped. Insertion order is kept.
        """
        domain = extract_domain(url)
        now = self._clock.now()
        path = extract_path(url)
        secure = is_secure_url(url)

        with self._lock:
            domain_cookies = self._jar.get(domain)

            if not domain_cookies:
                return []

            expired = [name for name, cookie in domain_cookies.items() if cookie.is_expired(now)]
            for name in expired:
                del domain_cookies[name]
                logger.debug(f"Expired cookie {name} removed from {domain}.")

            return [
                deepcopy(cookie)
                for cookie in domain_cookies.values()
                if (not cookie.attributes.path or path.startswith(cookie.attributes.path))
                and (not cookie.attributes.secure or secure)
            ]

    def get_cookie_header(self, url: str) -> tp.Optional[str]:
        """The `Cookie` request header value for the URL, or None when no cookie applies."""
        cookies = self.get_cookies(url)

        if not cookies:
            return None

        return "; ".join(f"{cookie.name}={cookie.value}" for cookie in cookies)

    def get_cookie_details(self, url: str) -> tp.List[CookieDetails]:
        now = self._clock.now()

        return [
            CookieDetails(
                name=cookie.name,
                value=cookie.value,
                domain=cookie.domain,
                path=cookie.attributes.path or "/",
                secure=cookie.attributes.secure,
                http_only=cookie.attributes.http_only,
                same_site=cookie.attributes.same_site or "None",
                session=cookie.attributes.session,
                age=(now - cookie.created_at) // 1000,
                remaining_time=None if cookie.expires_at is None else (cookie.expires_at - now) // 1000,
                expires_at=None if cookie.expires_at is None else to_iso(cookie.expires_at),
                size=len(cookie.raw),
                raw=cookie.raw,
            )
            for cookie in self.get_cookies(url)
        ]

    @tp.overload
    def clear_cookies(self, domain: str) -> bool: ...
    @tp.overload
    def clear_cookies(self, domain: None = None) -> int: ...
    def clear_cookies(self, domain: tp.Optional[str] = None) -> tp.Union[bool, int]:
        """
        Clears one domain (returns whether it existed) or every domain
        (returns how many domains there were).
        """
        with self._lock:
            if domain:
                deleted = self._jar.pop(domain, None) is not None
                if deleted:
                    logger.debug(f"Cleared cookies for {domain}.")
                return deleted

            count = len(self._jar)
            self._jar.clear()

        logger.debug(f"Cleared all cookies ({count} domains).")
        return count

    def get_stats(self) -> CookieStats:
        with self._lock:
            domains: tp.List[CookieDomainStats] = [
                {
                    "domain": domain,
                    "cookie_count": len(cookies),
                    "cookies": list(cookies),
                }
                for domain, cookies in self._jar.items()
            ]

        return {
            "total_domains": len(domains),
            "total_cookies": sum(stats["cookie_count"] for stats in domains),
            "domains": domains,
        }

    def cleanup(self) -> int:
        """Removes expired cookies and empty domains, returns how many cookies were removed."""
        now = self._clock.now()
        cleaned = 0

        with self._lock:
            for domain, domain_cookies in list(self._jar.items()):
                expired = [name for name, cookie in domain_cookies.items() if cookie.is_expired(now)]
                for name in expired:
                    del domain_cookies[name]
                cleaned += len(expired)

                if not domain_cookies:
                    del self._jar[domain]

        if cleaned:
            logger.debug(f"Cleaned up {cleaned} expired cookies.")
        return cleaned

    def validate_cookie(self, cookie: CookieRecord) -> CookieValidation:
        """
        Lints a cookie against common security practice.

        Sensitive-looking names (session, token, auth) must be Secure and
        HttpOnly. Missing SameSite and missing explicit expiry only produce
        recommendations.
        """
        warnings: tp.List[str] = []
        recommendations: tp.List[str] = []
        attributes = cookie.attributes

        if any(part in cookie.name.lower() for part in SENSITIVE_NAME_PARTS):
            if not attributes.secure:
                warnings.append("Sensitive cookie should have Secure flag")
            if not attributes.http_only:
                warnings.append("Sensitive cookie should have HttpOnly flag")

        if not attributes.same_site:
            recommendations.append("Consider adding SameSite attribute")

        if cookie.expires_at is None and not attributes.session:
            recommendations.append("Consider setting expiration time")

        return CookieValidation(
            valid=not warnings,
            warnings=warnings,
            recommendations=recommendations,
        )
