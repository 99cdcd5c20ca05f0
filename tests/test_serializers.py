from httpsim import CacheHit, CacheMiss, CookieJar, Headers, SimulationResult, StoredResponse, TimelineStage
from httpsim._serializers import dump, dump_cookie, dump_lookup, dump_simulation, snake_to_camel


def test_snake_to_camel():
    assert snake_to_camel("remaining_time") == "remainingTime"
    assert snake_to_camel("x_cache_lookup") == "xCacheLookup"
    assert snake_to_camel("etag") == "etag"


def test_dump_keeps_header_spelling():
    assert dump({"response_headers": Headers({"X-Cache": "HIT"})}) == {"responseHeaders": {"X-Cache": "HIT"}}


def test_dump_dataclasses():
    assert dump([TimelineStage(stage="DNS Lookup", duration=5, start_time=0)]) == [
        {"stage": "DNS Lookup", "duration": 5, "startTime": 0}
    ]


def test_dump_miss():
    assert dump_lookup(CacheMiss(reason="not-found")) == {"hit": False, "reason": "not-found"}
    assert dump_lookup(CacheMiss(reason="expired", expired_at=10)) == {
        "hit": False,
        "reason": "expired",
        "expiredAt": 10,
    }


def test_dump_hit():
    hit = CacheHit(
        status_code=304,
        status_text="Not Modified",
        headers=Headers({"ETag": '"x"'}),
        body=None,
        cache_age=1000,
        remaining_time=59_000,
        type="conditional",
    )

    assert dump_lookup(hit) == {
        "hit": True,
        "type": "conditional",
        "statusCode": 304,
        "statusText": "Not Modified",
        "headers": {"ETag": '"x"'},
        "body": None,
        "cached": True,
        "cacheAge": 1000,
        "remainingTime": 59_000,
    }


def test_dump_cookie_drops_unset_attributes():
    cookie = CookieJar().parse_cookie("a=1; Secure; Max-Age=10")
    assert cookie is not None

    assert dump_cookie(cookie)["attributes"] == {"maxAge": 10, "secure": True}


def test_dump_simulation():
    result = SimulationResult(
        timeline=[],
        total_time=12,
        response=StoredResponse(headers={"ETag": '"x"'}, body={"ok": True}),
        connection_type="close",
        real=False,
    )

    assert dump_simulation(result) == {
        "success": True,
        "timeline": [],
        "totalTime": 12,
        "response": {
            "statusCode": 200,
            "statusText": "OK",
            "headers": {"ETag": '"x"'},
            "body": {"ok": True},
            "cached": False,
            "cookies": [],
        },
        "connectionType": "close",
        "real": False,
        "cached": False,
        "cookieInfo": None,
    }
