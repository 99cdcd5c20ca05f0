import random
from datetime import datetime, timezone

import httpx
import pytest
from time_machine import travel

from httpsim import (
    ConcurrentRequest,
    InvalidURLError,
    PacketLossError,
    RealRequestFailed,
    SimulationRequest,
    Simulator,
    SimulatorOptions,
)


@pytest.fixture
def real_simulator(options: SimulatorOptions, make_transport):
    """A simulator whose real requests are answered by `handler`."""

    def factory(handler) -> Simulator:
        return Simulator(options, transport=make_transport(handler), random=random.Random(7))

    return factory


@pytest.mark.anyio
async def test_mock_request(simulator: Simulator):
    result = await simulator.simulate_request(SimulationRequest(url="https://a.test/x"))

    assert result.real is False
    assert result.cached is False
    assert result.response.status_code == 200
    assert len(result.timeline) == 6
    assert result.total_time == round(sum(stage.duration for stage in result.timeline))
    assert result.connection_type == "keep-alive"
    assert result.cache_info is None
    assert result.cookie_info is None
    assert len(simulator.cache) == 0


@pytest.mark.anyio
async def test_second_request_is_served_from_cache(simulator: Simulator):
    request = SimulationRequest(url="https://a.test/x", use_cache=True)

    with travel(datetime(2024, 1, 1, tzinfo=timezone.utc), tick=False):
        first = await simulator.simulate_request(request)
        second = await simulator.simulate_request(request)

    assert first.cached is False
    assert second.cached is True
    assert second.total_time == 10
    assert [stage.stage for stage in second.timeline] == ["Cache Lookup", "Validation", "Cache Hit"]
    assert second.response.status_code == 200
    assert second.response.body == first.response.body
    assert second.response.headers["X-Cache"] == "HIT"
    assert second.cache_info == {
        "hit": True,
        "type": "full",
        "age": 0,
        "remaining_time": 3_600_000,
        "should_revalidate": False,
    }


@pytest.mark.anyio
async def test_conditional_cache_hit(simulator: Simulator):
    first = await simulator.simulate_request(SimulationRequest(url="https://a.test/x", use_cache=True))

    second = await simulator.simulate_request(
        SimulationRequest(
            url="https://a.test/x",
            use_cache=True,
            request_headers={"If-None-Match": first.response.headers["ETag"]},
        )
    )

    assert second.cached is True
    assert second.response.status_code == 304
    assert second.response.body is None
    assert second.cache_info is not None
    assert second.cache_info["type"] == "conditional"


@pytest.mark.anyio
async def test_mock_cookies_are_stored(simulator: Simulator):
    result = await simulator.simulate_request(SimulationRequest(url="https://a.test/x", use_cookies=True))

    assert result.cookie_info is not None
    assert result.cookie_info["stored"] == 6
    assert [details.name for details in result.cookie_info["details"]][:2] == ["sessionId", "userId"]


@pytest.mark.anyio
async def test_secure_mock_cookies_are_hidden_on_http(simulator: Simulator):
    result = await simulator.simulate_request(SimulationRequest(url="http://a.test/x", use_cookies=True))

    assert result.cookie_info is not None
    assert result.cookie_info["stored"] == 4


@pytest.mark.anyio
async def test_packet_loss(simulator: Simulator):
    with pytest.raises(PacketLossError, match="100% packet loss"):
        await simulator.simulate_request(SimulationRequest(url="https://a.test/x", packet_loss=100))


@pytest.mark.anyio
async def test_packet_loss_is_clamped():
    simulator = Simulator(SimulatorOptions(default_delay=0, max_packet_loss=0))

    result = await simulator.simulate_request(SimulationRequest(url="https://a.test/x", packet_loss=100))

    assert result.response.status_code == 200


@pytest.mark.anyio
async def test_real_request(real_simulator):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"real": True},
            headers=[("Cache-Control", "max-age=120"), ("Set-Cookie", "sid=abc; Max-Age=60")],
        )

    simulator = real_simulator(handler)
    result = await simulator.simulate_request(
        SimulationRequest(url="https://example.com/data", use_real_request=True, use_cache=True, use_cookies=True)
    )

    assert result.real is True
    assert result.response.body == {"real": True}
    assert result.response.cookies == ["sid=abc; Max-Age=60"]
    assert [stage.stage for stage in result.timeline][0] == "DNS Lookup"
    assert result.cookie_info is not None
    assert result.cookie_info["stored"] == 1
    assert simulator.cookies.get_cookie_header("https://example.com/") == "sid=abc"
    assert simulator.cache.get_stats()["entries"][0]["remaining_time"] in (119, 120)


@pytest.mark.anyio
async def test_real_request_sends_stored_cookies(real_simulator):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("cookie"))
        return httpx.Response(200, json={})

    simulator = real_simulator(handler)
    simulator.cookies.store_cookies("https://example.com/", "sid=abc")

    await simulator.simulate_request(SimulationRequest(url="https://example.com/", use_real_request=True))

    assert seen == ["sid=abc"]


@pytest.mark.anyio
async def test_real_request_without_cache_control_uses_fallback(real_simulator):
    simulator = real_simulator(lambda request: httpx.Response(200, json={}))

    await simulator.simulate_request(
        SimulationRequest(url="https://example.com/", use_real_request=True, use_cache=True)
    )

    assert simulator.cache.get_stats()["entries"][0]["remaining_time"] in (3599, 3600)


@pytest.mark.anyio
async def test_real_error_responses_are_not_cached(real_simulator):
    simulator = real_simulator(lambda request: httpx.Response(404, json={}))

    result = await simulator.simulate_request(
        SimulationRequest(url="https://example.com/", use_real_request=True, use_cache=True)
    )

    assert result.response.status_code == 404
    assert len(simulator.cache) == 0


@pytest.mark.anyio
async def test_real_request_failure(real_simulator):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused")

    simulator = real_simulator(handler)

    with pytest.raises(RealRequestFailed) as excinfo:
        await simulator.simulate_request(SimulationRequest(url="https://example.com/", use_real_request=True))

    assert excinfo.value.error_type == "Connection Refused"
    assert excinfo.value.result.error_code == "ECONNREFUSED"


@pytest.mark.anyio
async def test_real_request_to_private_host(simulator: Simulator):
    with pytest.raises(InvalidURLError):
        await simulator.simulate_request(SimulationRequest(url="http://localhost:8080/", use_real_request=True))


@pytest.mark.anyio
async def test_http2_batch_runs_concurrently(simulator: Simulator):
    requests = [ConcurrentRequest(url=f"https://a.test/{i}") for i in range(3)]

    batch = await simulator.simulate_concurrent(requests, delay=50, protocol="HTTP/2")

    assert batch.protocol == "HTTP/2"
    assert batch.concurrent is True
    assert batch.real is False
    assert [result.id for result in batch.requests] == [1, 2, 3]
    assert [result.url for result in batch.requests] == [request.url for request in requests]
    assert all(result.started_at < 50 for result in batch.requests)


@pytest.mark.anyio
async def test_http1_batch_runs_sequentially(simulator: Simulator):
    requests = [ConcurrentRequest(url=f"https://a.test/{i}", method="post") for i in range(3)]

    batch = await simulator.simulate_concurrent(requests, delay=50, protocol="HTTP/1.1")

    assert batch.concurrent is False
    assert [result.method for result in batch.requests] == ["POST"] * 3
    assert batch.requests[2].started_at >= 90
    assert batch.total_time >= 140


@pytest.mark.anyio
async def test_real_concurrent_batch(real_simulator):
    simulator = real_simulator(lambda request: httpx.Response(201))

    batch = await simulator.simulate_concurrent(
        [ConcurrentRequest(url="https://example.com/a"), ConcurrentRequest(url="http://localhost/")],
        delay=0,
        use_real_request=True,
    )

    assert [(result.real, result.status_code) for result in batch.requests] == [(True, 201), (False, 200)]


@pytest.mark.anyio
async def test_diagnose(real_simulator):
    simulator = real_simulator(lambda request: httpx.Response(200))
    simulator.cookies.store_cookies("https://example.com/", "a=1")

    assert await simulator.diagnose("https://example.com/") == {
        "url": "https://example.com/",
        "valid": True,
        "reachable": True,
        "domain": "example.com",
        "secure": True,
        "cookies": 1,
        "cached": False,
        "should_revalidate": False,
    }


@pytest.mark.anyio
async def test_diagnose_invalid_url(simulator: Simulator):
    result = await simulator.diagnose("http://localhost/")

    assert result["valid"] is False
    assert result["reachable"] is False
    assert result["secure"] is False


def test_cleanup(simulator: Simulator):
    assert simulator.cleanup() == (0, 0)
