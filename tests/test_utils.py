from httpsim._utils import (
    body_size,
    dump_body,
    extract_domain,
    extract_path,
    generate_etag,
    generate_http_date,
    is_secure_url,
    parse_date,
    to_iso,
)


def test_parse_date():
    assert parse_date("Mon, 01 Jan 2024 00:00:00 GMT") == 1704067200000


def test_parse_date_with_offset():
    assert parse_date("Mon, 01 Jan 2024 02:00:00 +0200") == 1704067200000


def test_parse_invalid_date():
    assert parse_date("not a date") is None
    assert parse_date("") is None
    assert parse_date(None) is None


def test_generate_http_date():
    assert generate_http_date(1704067200000) == "Mon, 01 Jan 2024 00:00:00 GMT"


def test_generate_http_date_parses_back():
    assert parse_date(generate_http_date(1704067200000)) == 1704067200000


def test_to_iso():
    assert to_iso(1704067200500) == "2024-01-01T00:00:00.500Z"


def test_to_iso_clamps_out_of_range_timestamps():
    assert to_iso(999_999_999_999_000 + 1704067200000) == "9999-12-31T23:59:59.999Z"
    assert to_iso(-(10**18)) == "0001-01-01T00:00:00.000Z"
    assert to_iso(-1) == "1969-12-31T23:59:59.999Z"


def test_dump_body_is_compact():
    assert dump_body({"a": [1, 2], "b": None}) == '{"a":[1,2],"b":null}'


def test_body_size_counts_characters():
    assert body_size({"a": "é"}) == 9
    assert body_size(None) == 4


def test_generate_etag():
    assert generate_etag({"v": 1}) == '"nj2ood"'


def test_generate_etag_is_stable():
    assert generate_etag({"a": [1, 2, 3]}) == generate_etag({"a": [1, 2, 3]})
    assert generate_etag({"a": 1}) != generate_etag({"a": 2})


def test_extract_domain():
    assert extract_domain("https://Example.com:8080/x") == "example.com"


def test_extract_domain_falls_back_to_localhost():
    assert extract_domain("not a url") == "localhost"
    assert extract_domain("http://[::1") == "localhost"


def test_extract_path():
    assert extract_path("https://a.test/admin/users?x=1") == "/admin/users"
    assert extract_path("https://a.test") == "/"


def test_is_secure_url():
    assert is_secure_url("https://a.test/")
    assert not is_secure_url("http://a.test/")
    assert not is_secure_url("garbage")
