import pytest

from httpsim._headers import Headers, http_unquote, is_token, parse_cache_control


def test_headers_are_case_insensitive():
    headers = Headers({"ETag": '"abc"'})

    assert headers["etag"] == '"abc"'
    assert "ETAG" in headers
    assert dict(headers) == {"ETag": '"abc"'}


def test_headers_keep_first_spelling():
    headers = Headers({"Content-Type": "text/plain"})
    headers["content-type"] = "application/json"

    assert dict(headers) == {"Content-Type": "application/json"}


def test_headers_join_list_values():
    headers = Headers({"Vary": ["Accept", "Cookie"]})

    assert headers["vary"] == "Accept, Cookie"


def test_headers_equality():
    assert Headers({"X-Cache": "HIT"}) == {"x-cache": "HIT"}
    assert Headers({"X-Cache": "HIT"}) == Headers({"X-CACHE": "HIT"})
    assert Headers({"X-Cache": "HIT"}) != "X-Cache: HIT"


def test_headers_copy_is_independent():
    headers = Headers({"Age": "0"})
    copied = headers.copy()
    copied["Age"] = "10"

    assert headers["age"] == "0"


def test_headers_delete():
    headers = Headers({"Age": "0"})
    del headers["AGE"]

    assert len(headers) == 0
    with pytest.raises(KeyError):
        headers["age"]


def test_is_token():
    assert is_token("a")
    assert not is_token(",")
    assert not is_token("\x7f")


def test_http_unquote():
    assert http_unquote('"set-cookie, x" rest') == (15, "set-cookie, x")
    assert http_unquote('"open') == (-1, "")


def test_parse_cache_control():
    directives = parse_cache_control("public, max-age=600")

    assert directives == {"original": "public, max-age=600", "public": True, "max-age": 600}
    assert directives.max_age == 600
    assert directives.original == "public, max-age=600"


def test_parse_cache_control_lowercases_names():
    assert parse_cache_control("Max-Age=10, No-Store").max_age == 10
    assert parse_cache_control("Max-Age=10, No-Store")["no-store"] is True


def test_parse_cache_control_quoted_value():
    directives = parse_cache_control('private="set-cookie, x", max-age=60')

    assert directives["private"] == "set-cookie, x"
    assert directives.max_age == 60


@pytest.mark.parametrize("value", ["max-age=-1", "max-age=soon", "max-age=1.5"])
def test_parse_cache_control_unusable_max_age(value: str):
    directives = parse_cache_control(value)

    assert directives.max_age is None
    assert isinstance(directives["max-age"], str)


def test_parse_cache_control_empty():
    assert parse_cache_control(None) == {"original": None}
    assert parse_cache_control("") == {"original": ""}


def test_parse_cache_control_keeps_original_reserved():
    directives = parse_cache_control("original=foo, no-store")

    assert directives.original == "original=foo, no-store"
    assert directives["no-store"] is True


def test_parse_cache_control_never_raises():
    directives = parse_cache_control('no-cache, private="unterminated, max-age=')

    assert directives["no-cache"] is True
    assert "private" not in directives
    assert "max-age" not in directives
