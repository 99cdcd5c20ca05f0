from __future__ import annotations

from typing import (
    Any,
    Dict,
    Iterator,
    Mapping,
    MutableMapping,
    Optional,
    Tuple,
    Union,
)

__all__ = (
    "Headers",
    "CacheDirectives",
    "parse_cache_control",
)

"""
HTTP token and quoted-string parsing utilities.

These functions implement RFC 7230 parsing rules for HTTP/1.1 tokens
and quoted strings.
"""


def is_char(c: str) -> bool:
    """
    Check if character is a valid ASCII character (0-127).

    Per RFC 7230: CHAR = any US-ASCII character (octets 0 - 127)
    """
    if not c:
        return False
    return ord(c) <= 127


def is_ctl(c: str) -> bool:
    """
    Check if character is a control character.

    Per RFC 7230: CTL = control characters (0-31 and 127)
    """
    if not c:
        return False
    b = ord(c)
    return b <= 31 or b == 127


def is_separator(c: str) -> bool:
    """
    Check if character is an HTTP separator.

    Per RFC 2616 Section 2.2:
    separators = "(" | ")" | "<" | ">" | "@"
               | "," | ";" | ":" | "\" | <">
               | "/" | "[" | "]" | "?" | "="
               | "{" | "}" | SP | HT
    """
    if not c:
        return False
    return c in '()<>@,;:\\"/[]?={} \t'


def is_token(c: str) -> bool:
    """
    Check if character is valid in an HTTP token.

    Examples:
        >>> is_token('a')
        True
        >>> is_token('-')
        True
        >>> is_token(',')
        False
        >>> is_token('=')
        False
    """
    return is_char(c) and not is_ctl(c) and not is_separator(c)


def http_unquote(raw: str) -> Tuple[int, str]:
    """
    Unquote an HTTP quoted-string.

    The raw string must begin with a double quote ("). Only the first
    quoted string is parsed. Returns the number of characters consumed
    and the unquoted result, or (-1, "") when the closing quote is missing.

    Examples:
        >>> http_unquote('"hello"')
        (7, 'hello')
        >>> http_unquote('"hello\\\\"world"')
        (14, 'hello"world')
        >>> http_unquote('"test')
        (-1, '')
    """
    if not raw or raw[0] != '"':
        return -1, ""

    buf: list[str] = []
    i = 1

    while i < len(raw):
        b = raw[i]

        if b == '"':
            return i + 1, "".join(buf)

        elif b == "\\":
            if i + 1 >= len(raw):
                return -1, ""
            buf.append(raw[i + 1])
            i += 2

        else:
            buf.append(b)
            i += 1

    return -1, ""


class Headers(MutableMapping[str, str]):
    """
    Header mapping with case-insensitive lookups.

    The spelling used when a header was first set is kept for iteration,
    so `Headers({"ETag": '"x"'})["etag"]` works and `dict(headers)` still
    yields `{"ETag": '"x"'}`.
    """

    def __init__(self, headers: Optional[Mapping[str, Any]] = None) -> None:
        self._headers: Dict[str, Tuple[str, str]] = {}
        for key, value in (headers or {}).items():
            self[key] = value

    def __getitem__(self, key: str) -> str:
        return self._headers[key.lower()][1]

    def __setitem__(self, key: str, value: Any) -> None:
        lowered = key.lower()
        original_key = self._headers[lowered][0] if lowered in self._headers else key
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        self._headers[lowered] = (original_key, str(value))

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        return (original_key for original_key, _ in self._headers.values())

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self)!r})"

    def __eq__(self, other_headers: Any) -> bool:
        if isinstance(other_headers, Headers):
            return self._lowered() == other_headers._lowered()
        if isinstance(other_headers, Mapping):
            return self._lowered() == Headers(other_headers)._lowered()
        return False

    def _lowered(self) -> Dict[str, str]:
        return {key: value for key, (_, value) in self._headers.items()}

    def copy(self) -> "Headers":
        return Headers(dict(self))


DirectiveValue = Union[int, str, bool]


class CacheDirectives(Dict[str, Optional[DirectiveValue]]):
    """
    Parsed Cache-Control directives.

    Directives with a value map to an int when the value is a non-negative
    integer and to the raw string otherwise; bare directives map to True.
    The unparsed header is kept under the reserved `original` key.

    Examples:
        >>> directives = parse_cache_control("public, max-age=600")
        >>> directives["public"], directives["max-age"]
        (True, 600)
        >>> directives.original
        'public, max-age=600'
    """

    ORIGINAL = "original"

    @property
    def original(self) -> Optional[str]:
        value = self.get(self.ORIGINAL)
        return value if isinstance(value, str) else None

    @property
    def max_age(self) -> Optional[int]:
        value = self.get("max-age")
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value


def parse_int_value(value: str) -> Optional[int]:
    """Parse integer value, return None if invalid."""
    try:
        val = int(value)
    except (ValueError, OverflowError):
        return None
    return val if val >= 0 else None


def handle_directive_with_value(directives: CacheDirectives, token: str, value: str) -> None:
    if token == CacheDirectives.ORIGINAL:
        return
    number = parse_int_value(value)
    directives[token] = number if number is not None else value


def handle_directive_without_value(directives: CacheDirectives, token: str) -> None:
    if token == CacheDirectives.ORIGINAL:
        return
    directives[token] = True


def parse(value: str) -> CacheDirectives:
    """
    Parse a Cache-Control header value character by character.

    This parser handles quoted values, so commas inside a quoted
    field-name list do not split the directive.
    """
    directives = CacheDirectives()
    directives[CacheDirectives.ORIGINAL] = value

    i = 0
    length = len(value)

    while i < length:
        # Skip leading whitespace and commas
        while i < length and (value[i] in (" ", "\t", ",")):
            i += 1

        if i >= length:
            break

        j = i
        while j < length and is_token(value[j]):
            j += 1

        if j == i:
            # No valid token found, skip this character
            i += 1
            continue

        token = value[i:j].lower()

        while j < length and value[j] in (" ", "\t"):
            j += 1

        if j < length and value[j] == "=":
            k = j + 1

            while k < length and value[k] in (" ", "\t"):
                k += 1

            if k >= length:
                # Directive ends with '=' but no value
                i = k
                continue

            if value[k] == '"':
                eaten, result = http_unquote(value[k:])
                if eaten == -1:
                    # Quote mismatch, skip to next directive
                    i = k + 1
                    continue

                i = k + eaten
                handle_directive_with_value(directives, token, result)
            else:
                z = k
                while z < length and value[z] not in (" ", "\t", ","):
                    z += 1

                i = z
                handle_directive_with_value(directives, token, value[k:z])
        else:
            handle_directive_without_value(directives, token)
            i = j

    return directives


def parse_cache_control(value: Optional[str]) -> CacheDirectives:
    """
    Parse a Cache-Control header into a `CacheDirectives` mapping.

    Never raises: unknown or malformed pieces are kept verbatim or skipped.

    Examples:
        >>> directives = parse_cache_control("no-cache, max-age=0")
        >>> directives["no-cache"], directives.max_age
        (True, 0)
        >>> parse_cache_control("max-age=soon").max_age is None
        True
        >>> parse_cache_control(None).original is None
        True
    """
    if not value:
        directives = CacheDirectives()
        directives[CacheDirectives.ORIGINAL] = value
        return directives
    return parse(value)
